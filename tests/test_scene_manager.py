"""Tests for the SceneManager.

This module tests:
- Unified material IDs over the per-kind material tables
- Property coercion (RGB tuples and textures)
- Primitive builders placing instances with materials
- Light table construction and scene statistics
- Clearing the scene

Note: Imports are done inside test methods to avoid Taichi initialization issues.
"""

import numpy as np
import pytest
import taichi as ti


@pytest.fixture
def fresh_scene():
    """Create a fresh SceneManager for each test."""
    from src.pathtracer.scene.manager import SceneManager

    return SceneManager()


class TestMaterials:
    """Tests for material registration."""

    def test_ids_are_sequential_across_kinds(self, fresh_scene):
        from src.pathtracer.materials import MaterialType

        ids = [
            fresh_scene.add_lambertian_material((0.5, 0.5, 0.5)),
            fresh_scene.add_metal_material((0.8, 0.8, 0.8), fuzz=0.1),
            fresh_scene.add_dielectric_material(1.5),
            fresh_scene.add_diffuse_light_material((4.0, 4.0, 4.0)),
            fresh_scene.add_lambertian_material((0.1, 0.2, 0.3)),
        ]
        assert ids == [0, 1, 2, 3, 4]
        assert fresh_scene.get_material_count() == 5

        info = fresh_scene.get_material_info(4)
        assert info.material_type == MaterialType.LAMBERTIAN
        assert info.type_index == 1
        assert fresh_scene.get_material_info(3).material_type == MaterialType.DIFFUSE_LIGHT

    def test_invalid_material_info(self, fresh_scene):
        assert fresh_scene.get_material_info(0) is None
        assert fresh_scene.get_material_info(-1) is None

    @pytest.mark.parametrize("fuzz", [-0.1, 1.5])
    def test_metal_fuzz_validation(self, fresh_scene, fuzz):
        with pytest.raises(ValueError, match="fuzz"):
            fresh_scene.add_metal_material((0.8, 0.8, 0.8), fuzz=fuzz)
        assert fresh_scene.get_material_count() == 0

    def test_dielectric_validation(self, fresh_scene):
        with pytest.raises(ValueError):
            fresh_scene.add_dielectric_material(0.5)

    def test_textured_albedo(self, fresh_scene):
        from src.pathtracer.textures import PropertyKind

        checker = fresh_scene.add_checker_texture(2.0, (1.0, 1.0, 1.0), (0.0, 0.0, 0.0))
        material_id = fresh_scene.add_lambertian_material(checker)
        params = fresh_scene.get_material_info(material_id).params
        assert params["albedo"].kind == PropertyKind.CHECKER

    def test_image_texture_from_array_and_file(self, fresh_scene, tmp_path):
        from PIL import Image

        from src.pathtracer.textures import PropertyKind

        pixels = np.zeros((4, 4, 3), dtype=np.uint8)
        pixels[:, :, 0] = 255
        Image.fromarray(pixels).save(tmp_path / "red.png")

        from_array = fresh_scene.add_image_texture(pixels)
        from_file = fresh_scene.add_image_texture(tmp_path / "red.png")
        assert from_array.kind == PropertyKind.IMAGE
        assert from_file.kind == PropertyKind.IMAGE
        assert from_file.index == from_array.index + 1

    def test_rejects_bad_property(self, fresh_scene):
        with pytest.raises(ValueError, match="RGB"):
            fresh_scene.add_lambertian_material((0.5, 0.5))


class TestGeometry:
    """Tests for adding instances."""

    def test_quad_instance(self, fresh_scene):
        material = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        instance = fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (0, 1, 0), material)
        assert instance == 0
        info = fresh_scene.instances[0]
        assert info.primitive == "quad"
        assert info.triangle_count == 2
        assert info.material_id == material

    def test_primitive_counts(self, fresh_scene):
        material = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        fresh_scene.add_triangle(((0, 0, 0), (1, 0, 0), (0, 1, 0)), material)
        fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (0, 1, 0), material)
        fresh_scene.add_box((0, 0, 0), (1, 1, 1), material)
        fresh_scene.add_uv_sphere((0, 0, 0), 1.0, material, rings=4, segments=6)

        assert fresh_scene.get_instance_count() == 4
        assert fresh_scene.get_triangle_count() == 1 + 2 + 12 + (2 * 4 * 6 - 2 * 6)
        stats = fresh_scene.stats()
        assert stats.meshes == 4
        assert stats.by_primitive == {"triangle": 1, "quad": 1, "box": 1, "uv_sphere": 1}

    def test_mesh_reused_by_instances(self, fresh_scene):
        from src.pathtracer.geometry import box_mesh, make_transform

        material = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        mesh_id = fresh_scene.add_mesh(box_mesh((0, 0, 0), (1, 1, 1)))
        for x in range(3):
            fresh_scene.add_instance(mesh_id, material, make_transform(translate=(2.0 * x, 0.0, 0.0)))
        stats = fresh_scene.stats()
        assert stats.meshes == 1
        assert stats.instances == 3
        assert stats.triangles == 36

    @pytest.mark.parametrize("material_id", [-1, 0, 5])
    def test_invalid_material_id(self, fresh_scene, material_id):
        with pytest.raises(ValueError, match="Invalid material_id"):
            fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (0, 1, 0), material_id)
        assert fresh_scene.get_instance_count() == 0

    def test_instance_material_on_device(self, fresh_scene):
        from src.pathtracer.materials import MaterialType
        from src.pathtracer.scene.oracle import get_instance_material

        fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        glass = fresh_scene.add_dielectric_material(1.5)
        fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (0, 1, 0), glass)

        result = ti.Vector.field(2, dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            mt, mi = get_instance_material(0)
            result[None] = ti.Vector([mt, mi])

        test_kernel()
        assert result.to_numpy().tolist() == [int(MaterialType.DIELECTRIC), 0]


class TestLightsAndClear:
    """Tests for the light table and clearing."""

    def test_build_light_table(self, fresh_scene):
        light = fresh_scene.add_diffuse_light_material((5.0, 5.0, 5.0))
        white = fresh_scene.add_lambertian_material((0.7, 0.7, 0.7))
        fresh_scene.add_quad((0, 2, 0), (3, 0, 0), (0, 0, 2), light)
        fresh_scene.add_box((0, 0, 0), (1, 1, 1), white)

        assert fresh_scene.build_light_table() == 2
        stats = fresh_scene.stats()
        assert stats.light_triangles == 2
        assert stats.light_area == pytest.approx(6.0, rel=1e-6)

    def test_no_lights_logged(self, fresh_scene, caplog):
        import logging

        with caplog.at_level(logging.INFO, logger="src.pathtracer.scene.manager"):
            assert fresh_scene.build_light_table() == 0
        assert "no area lights" in caplog.text

    def test_clear(self, fresh_scene):
        from src.pathtracer.lights.alias_table import get_light_triangle_count
        from src.pathtracer.scene.oracle import get_instance_count
        from src.pathtracer.scene.sky import SkyType, get_sky_type

        light = fresh_scene.add_diffuse_light_material((5.0, 5.0, 5.0))
        fresh_scene.add_quad((0, 2, 0), (1, 0, 0), (0, 0, 1), light)
        fresh_scene.set_sky_solid((0.1, 0.1, 0.1))
        fresh_scene.build_light_table()

        fresh_scene.clear()
        assert fresh_scene.get_material_count() == 0
        assert fresh_scene.get_instance_count() == 0
        assert get_instance_count() == 0
        assert get_light_triangle_count() == 0
        assert get_sky_type() == SkyType.NONE

    def test_new_manager_replaces_scene(self, fresh_scene):
        from src.pathtracer.scene.manager import SceneManager
        from src.pathtracer.scene.oracle import get_instance_count

        material = fresh_scene.add_lambertian_material((0.5, 0.5, 0.5))
        fresh_scene.add_quad((0, 0, 0), (1, 0, 0), (0, 1, 0), material)
        SceneManager()
        assert get_instance_count() == 0
