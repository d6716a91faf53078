"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    rng: Per-path PCG random number generator and sampling routines
    mis: One-sample MIS mixture of material and light sampling
    integrator: Path tracing loop and per-pixel batch estimator
    progressive: Accumulation buffer and the ProgressiveRenderer

All compute-intensive operations use Taichi kernels for GPU acceleration.
"""

from .ray import (
    Ray,
    build_onb_from_normal,
    local_to_world,
    near_zero,
    reflect,
    refract,
    safe_normalize,
    schlick_reflectance,
    transform_point,
    transform_vector,
)
from .rng import (
    random_cosine_direction,
    random_gaussian_2d,
    random_in_unit_disk,
    random_triangle_point,
    random_unit_vec3,
    random_vec2,
    random_vec3,
    rng_next_float,
    rng_next_u32,
    rng_seed,
    sample_square_stratified,
)

# Note: mis, integrator and progressive are NOT imported here to avoid circular
# imports (they depend on scene, materials and lights, which import core.ray).
#
# For progressive rendering, use:
#   from src.pathtracer.core.progressive import ProgressiveRenderer

__all__ = [
    "Ray",
    "safe_normalize",
    "reflect",
    "refract",
    "schlick_reflectance",
    "near_zero",
    "build_onb_from_normal",
    "local_to_world",
    "transform_point",
    "transform_vector",
    "rng_seed",
    "rng_next_u32",
    "rng_next_float",
    "random_vec2",
    "random_vec3",
    "random_unit_vec3",
    "random_gaussian_2d",
    "random_in_unit_disk",
    "sample_square_stratified",
    "random_cosine_direction",
    "random_triangle_point",
]
