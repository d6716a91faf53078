"""Scene module: geometry queries, background and scene building.

Components:
    oracle: Mesh/instance tables, closest-hit and occlusion queries, HitRecord
    sky: Background radiance for escaped rays
    manager: SceneManager, the programmatic scene builder
    cornell_box: Cornell box scene factory

Only ``oracle`` and ``sky`` are imported here. ``manager`` and ``cornell_box``
depend on the materials and lights modules, which import ``oracle`` themselves;
import them directly:

    from src.pathtracer.scene.manager import SceneManager
    from src.pathtracer.scene.cornell_box import create_cornell_box_scene
"""

from .oracle import (
    MAX_INSTANCES,
    MAX_MESHES,
    T_MAX,
    T_MIN,
    HitRecord,
    OracleHit,
    add_instance,
    add_mesh,
    clear_geometry,
    get_instance_count,
    get_instance_material,
    get_mesh_count,
    make_hit_record,
    trace,
    trace_occluded,
    triangle_world_vertices,
)
from .sky import (
    SkyType,
    background,
    get_sky_type,
    set_sky_none,
    set_sky_solid,
    set_sky_vertical_gradient,
)

__all__ = [
    "HitRecord",
    "OracleHit",
    "add_mesh",
    "add_instance",
    "clear_geometry",
    "get_mesh_count",
    "get_instance_count",
    "get_instance_material",
    "make_hit_record",
    "trace",
    "trace_occluded",
    "triangle_world_vertices",
    "T_MIN",
    "T_MAX",
    "MAX_MESHES",
    "MAX_INSTANCES",
    "SkyType",
    "background",
    "get_sky_type",
    "set_sky_none",
    "set_sky_solid",
    "set_sky_vertical_gradient",
]
