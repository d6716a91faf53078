"""Path tracing integrator for Monte Carlo light transport.

This module implements the per-pixel estimator: camera ray generation with a
stratified (box) or gaussian pixel filter, and an iterative path loop that
combines material sampling and area light sampling through one-sample MIS.

For each bounce along a path:
    - a miss adds ``throughput * background(direction)`` and ends the path
    - a hit adds ``throughput * emitted`` and asks the material to scatter
    - absorbed paths end
    - specular materials (``skip_pdf``) multiply throughput by attenuation and
      continue along the ray they chose
    - all other materials continue along a direction drawn from the
      light/material mixture, weighted by attenuation * scattering_pdf / pdf

Paths stop after ``max_depth`` bounces. Next rays start exactly at the hit
point; self-intersection is avoided by ``T_MIN``.

Every path owns its RNG state, seeded from (batch, pixel, resolution), so a
batch renders the same image every time.

Example:
    >>> from src.pathtracer.config import RenderConfig
    >>> from src.pathtracer.core.integrator import render_sample_batch
    >>> colour = render_sample_batch((10, 20), (64, 64), 0, RenderConfig())
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.pathtracer.camera.thin_lens import get_ray
from src.pathtracer.config import RenderConfig
from src.pathtracer.core.mis import sample_mixture_direction
from src.pathtracer.core.ray import Ray
from src.pathtracer.core.rng import random_gaussian_2d, rng_seed, sample_square_stratified
from src.pathtracer.materials.dispatch import emitted, scatter, scattering_pdf
from src.pathtracer.scene.oracle import (
    T_MAX,
    T_MIN,
    get_instance_material,
    make_hit_record,
    trace,
)
from src.pathtracer.scene.sky import background

# Type alias for 3D vectors
vec3 = tm.vec3

# Standard deviation of the gaussian pixel filter, in pixels
GAUSSIAN_FILTER_SIGMA = 0.5


class PixelFilter(IntEnum):
    BOX = 0
    GAUSSIAN = 1


_pixel_filter = ti.field(dtype=ti.i32, shape=())


def set_pixel_filter(name: str) -> None:
    """Select the pixel filter used by subsequent renders.

    Raises:
        ValueError: If the name is not "box" or "gaussian".
    """
    try:
        _pixel_filter[None] = int(PixelFilter[name.upper()])
    except KeyError as e:
        raise ValueError(f"Unknown pixel filter: {name!r}") from e


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_path(ray: Ray, state: ti.u32, max_depth: ti.i32):
    """Estimate the radiance arriving along a ray.

    Args:
        ray: The primary ray.
        state: RNG state for this path.
        max_depth: Maximum number of bounces.

    Returns:
        A tuple (new_state, radiance).
    """
    s = state
    origin = ray.origin
    direction = ray.direction

    # Accumulated radiance for this path
    radiance = vec3(0.0, 0.0, 0.0)

    # Product of all attenuation * pdf ratios along the path
    throughput = vec3(1.0, 1.0, 1.0)

    active = 1

    for _ in range(max_depth):
        if active == 1:
            oracle_hit = trace(origin, direction, T_MIN, T_MAX)

            if oracle_hit.hit == 0:
                radiance += throughput * background(direction)
                active = 0
            else:
                hit = make_hit_record(oracle_hit)
                material_type, material_index = get_instance_material(oracle_hit.instance_id)

                radiance += throughput * emitted(material_type, material_index, hit)

                s, srec = scatter(s, material_type, material_index, Ray(origin=origin, direction=direction), hit)

                if srec.is_scattered == 0:
                    active = 0
                elif srec.skip_pdf == 1:
                    throughput *= srec.attenuation
                    origin = srec.skip_pdf_ray.origin
                    direction = srec.skip_pdf_ray.direction
                else:
                    s, next_direction, pdf = sample_mixture_direction(s, srec.pdf_kind, hit)
                    if pdf <= 0.0:
                        active = 0
                    else:
                        weight = scattering_pdf(srec.pdf_kind, hit.normal, next_direction) / pdf
                        throughput *= srec.attenuation * weight
                        origin = hit.position
                        direction = next_direction

    return s, radiance


@ti.func
def render_sample_batch_impl(
    pixel_x: ti.i32,
    pixel_y: ti.i32,
    width: ti.i32,
    height: ti.i32,
    sample_batch: ti.i32,
    samples_per_pixel: ti.i32,
    max_depth: ti.i32,
) -> vec3:
    """Mean radiance of one batch of samples for a pixel.

    Samples are laid out on a floor(sqrt(spp)) x floor(sqrt(spp)) grid of
    sub-pixel strata. Samples with NaN or infinite components have those
    components replaced by zero before averaging.

    Args:
        pixel_x: Pixel column (0 = left).
        pixel_y: Pixel row (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        sample_batch: Batch index, used to seed the RNG.
        samples_per_pixel: Requested samples for this batch.
        max_depth: Maximum number of bounces per path.
    """
    s = rng_seed(sample_batch, pixel_x, pixel_y, width, height)

    strata = tm.max(ti.cast(ti.floor(ti.sqrt(ti.cast(samples_per_pixel, ti.f32) + 0.5)), ti.i32), 1)
    inv_strata = 1.0 / ti.cast(strata, ti.f32)
    use_gaussian = _pixel_filter[None] == int(PixelFilter.GAUSSIAN)

    total = vec3(0.0, 0.0, 0.0)
    for si in range(strata):
        for sj in range(strata):
            offset = tm.vec2(0.0, 0.0)
            if use_gaussian:
                s, offset = random_gaussian_2d(s)
                offset *= GAUSSIAN_FILTER_SIGMA
            else:
                s, offset = sample_square_stratified(s, si, sj, inv_strata)

            u = (ti.cast(pixel_x, ti.f32) + 0.5 + offset.x) / ti.cast(width, ti.f32)
            v = (ti.cast(pixel_y, ti.f32) + 0.5 + offset.y) / ti.cast(height, ti.f32)
            s, ray = get_ray(s, u, v)
            s, colour = trace_path(ray, s, max_depth)

            # Check for NaN/Inf and replace with zero
            for c in ti.static(range(3)):
                if tm.isnan(colour[c]) or tm.isinf(colour[c]):
                    colour[c] = 0.0

            total += colour

    return total / ti.cast(strata * strata, ti.f32)


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_single_pixel(
    pixel_x: ti.i32,
    pixel_y: ti.i32,
    width: ti.i32,
    height: ti.i32,
    sample_batch: ti.i32,
    samples_per_pixel: ti.i32,
    max_depth: ti.i32,
) -> vec3:
    """Render one batch for a specific pixel (testing and debugging)."""
    return render_sample_batch_impl(
        pixel_x, pixel_y, width, height, sample_batch, samples_per_pixel, max_depth
    )


# =============================================================================
# Public Rendering API
# =============================================================================


def render_sample_batch(
    pixel: tuple[int, int],
    resolution: tuple[int, int],
    batch_index: int,
    config: RenderConfig,
) -> tuple[float, float, float]:
    """Render one batch of samples for a single pixel.

    This is a Python-callable function for testing. For full images use the
    ProgressiveRenderer, which processes all pixels in parallel.

    Args:
        pixel: (x, y) with x = 0 at the left and y = 0 at the bottom.
        resolution: (width, height) of the image.
        batch_index: Batch number; different batches use different samples.
        config: Sampling settings.

    Returns:
        Tuple of (R, G, B) linear radiance.

    Raises:
        ValueError: If the pixel lies outside the resolution.
    """
    x, y = pixel
    width, height = resolution
    if not (0 <= x < width and 0 <= y < height):
        raise ValueError(f"Pixel {pixel} outside resolution {resolution}")

    set_pixel_filter(config.pixel_filter)
    colour = _render_single_pixel(
        x, y, width, height, batch_index, config.samples_per_pixel, config.max_ray_depth
    )
    return (float(colour[0]), float(colour[1]), float(colour[2]))
