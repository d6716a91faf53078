"""One-sample multiple importance sampling for non-specular bounces.

The next direction is drawn from an equal-weight mixture of the material's
own distribution (cosine or uniform sphere) and area light sampling:

    p(w) = 0.5 * p_light(w) + 0.5 * p_material(w)

When the scene has no lights the mixture degenerates to the material
distribution alone. The integrator then weights the path by

    attenuation * scattering_pdf(w) / p(w)

and ends the path if p(w) is not positive.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import near_zero, safe_normalize
from src.pathtracer.core.rng import random_cosine_direction, random_unit_vec3, rng_next_float
from src.pathtracer.lights.alias_table import light_total_area, light_triangle_count
from src.pathtracer.lights.sampler import light_pdf_value, sample_light
from src.pathtracer.materials.dispatch import scattering_pdf
from src.pathtracer.materials.records import PdfKind
from src.pathtracer.scene.oracle import HitRecord

vec3 = tm.vec3

# Probability of choosing light sampling when lights exist
LIGHT_SAMPLING_WEIGHT = 0.5


@ti.func
def lights_available() -> ti.i32:
    """1 if the light alias table can be sampled."""
    available = 0
    if light_triangle_count[None] > 0 and light_total_area[None] > 0.0:
        available = 1
    return available


@ti.func
def sample_material_direction(state: ti.u32, pdf_kind: ti.i32, normal: vec3):
    """Draw a unit direction from the material's proposal distribution.

    Cosine proposals that come out (near) zero are replaced by the normal.

    Returns:
        A tuple (new_state, direction).
    """
    s = state
    direction = normal
    if pdf_kind == int(PdfKind.COSINE):
        s, direction = random_cosine_direction(s, normal)
        if near_zero(direction):
            direction = normal
    elif pdf_kind == int(PdfKind.SPHERE):
        s, direction = random_unit_vec3(s)
    return s, safe_normalize(direction, normal)


@ti.func
def material_pdf_value(pdf_kind: ti.i32, normal: vec3, direction: vec3) -> ti.f32:
    """Density of ``sample_material_direction`` for a unit direction."""
    return scattering_pdf(pdf_kind, normal, direction)


@ti.func
def sample_mixture_direction(state: ti.u32, pdf_kind: ti.i32, hit: HitRecord):
    """Draw the next direction from the light/material mixture.

    Args:
        state: RNG state.
        pdf_kind: PdfKind code from the scatter record.
        hit: The surface hit.

    Returns:
        A tuple (new_state, direction, combined_pdf); direction is unit length.
    """
    use_lights = lights_available()
    s, u = rng_next_float(state)
    direction = hit.normal
    if use_lights == 1 and u < LIGHT_SAMPLING_WEIGHT:
        s, light_point, _ = sample_light(s)
        direction = safe_normalize(light_point - hit.position, hit.normal)
    else:
        s, direction = sample_material_direction(s, pdf_kind, hit.normal)

    pdf_material = material_pdf_value(pdf_kind, hit.normal, direction)
    combined_pdf = pdf_material
    if use_lights == 1:
        combined_pdf = (
            LIGHT_SAMPLING_WEIGHT * light_pdf_value(hit.position, direction)
            + (1.0 - LIGHT_SAMPLING_WEIGHT) * pdf_material
        )
    return s, direction, combined_pdf
