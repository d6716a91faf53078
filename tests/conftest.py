"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene data before and after each test.

    This ensures tests are isolated from each other.
    """
    # Import here so Taichi is initialized before any field is touched
    from src.pathtracer.core.integrator import set_pixel_filter
    from src.pathtracer.lights.alias_table import clear_light_alias_table
    from src.pathtracer.materials import clear_materials
    from src.pathtracer.scene.oracle import clear_geometry
    from src.pathtracer.scene.sky import set_sky_none
    from src.pathtracer.textures import clear_textures

    def _clear_all():
        clear_geometry()
        clear_textures()
        clear_materials()
        clear_light_alias_table()
        set_sky_none()
        set_pixel_filter("box")

    _clear_all()

    yield

    _clear_all()
