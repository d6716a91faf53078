"""Metal (specular reflective) material implementation.

This module implements the metal BSDF, which models specular reflection with
optional fuzziness. A fuzz of 0 produces mirror-like reflections, while larger
values perturb the reflected direction by a random unit vector scaled by fuzz.

The reflection formula is:
    R = I - 2(I . N)N

where I is the normalized incident direction and N is the surface normal.

Both albedo and fuzz are property references; fuzz is read from the red
channel of its resolved colour. The ray is absorbed when the perturbed
direction points below the surface.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import Ray, reflect
from src.pathtracer.core.rng import random_unit_vec3
from src.pathtracer.materials.records import PdfKind, ScatterRecord
from src.pathtracer.scene.oracle import HitRecord
from src.pathtracer.textures import constant
from src.pathtracer.textures.property import (
    PropertyKind,
    PropertyRef,
    PropertyValue,
    as_property_value,
)
from src.pathtracer.textures.resolver import resolve

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_metal(
    state: ti.u32,
    albedo: PropertyRef,
    fuzz: PropertyRef,
    incident_direction: vec3,
    hit: HitRecord,
):
    """Reflect the incident ray about the normal with optional fuzz.

    Args:
        state: RNG state.
        albedo: Property reference for the reflective tint.
        fuzz: Property reference whose red channel is the fuzz amount.
        incident_direction: The incoming ray direction (any length).
        hit: The surface hit.

    Returns:
        A tuple (new_state, ScatterRecord). The record has ``skip_pdf = 1``
        and is scattered only if the outgoing direction is above the surface.
    """
    reflected = reflect(tm.normalize(incident_direction), hit.normal)
    s, offset = random_unit_vec3(state)
    fuzz_amount = resolve(fuzz, hit).x
    direction = reflected + fuzz_amount * offset

    is_scattered = 0
    if tm.dot(direction, hit.normal) > 0.0:
        is_scattered = 1

    rec = ScatterRecord(
        is_scattered=is_scattered,
        attenuation=resolve(albedo, hit),
        skip_pdf=1,
        skip_pdf_ray=Ray(origin=hit.position, direction=direction),
        pdf_kind=int(PdfKind.NONE),
    )
    return s, rec


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of metal materials in the scene
MAX_METAL_MATERIALS = 256

# Storage for metal material properties
metal_albedo_kinds = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_albedo_indices = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_fuzz_kinds = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_fuzz_indices = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_metal_materials[None] = 0


def add_metal_material(
    albedo: PropertyValue | tuple[int, int],
    fuzz: PropertyValue | tuple[int, int],
) -> int:
    """Add a metal material to the material registry.

    Args:
        albedo: Property reference for the reflective tint.
        fuzz: Property reference for the fuzz amount (red channel).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If a constant fuzz is outside [0, 1] or a reference has
            an unknown kind.
    """
    albedo = as_property_value(albedo)
    fuzz = as_property_value(fuzz)

    if fuzz.kind == PropertyKind.RGB and 0 <= fuzz.index < constant.get_constant_colour_count():
        fuzz_amount = float(constant.constant_colours[fuzz.index][0])
        if fuzz_amount < 0.0 or fuzz_amount > 1.0:
            raise ValueError(f"Metal fuzz must be in [0, 1], got {fuzz_amount}")

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedo_kinds[idx] = int(albedo.kind)
    metal_albedo_indices[idx] = albedo.index
    metal_fuzz_kinds[idx] = int(fuzz.kind)
    metal_fuzz_indices[idx] = fuzz.index
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Get the number of metal materials in the registry."""
    return int(num_metal_materials[None])


@ti.func
def lookup_metal_material(material_idx: ti.i32):
    """Bounds-checked read of a metal material.

    Returns:
        A tuple (found, albedo_ref, fuzz_ref).
    """
    found = 0
    albedo = PropertyRef(kind=-1, index=-1)
    fuzz = PropertyRef(kind=-1, index=-1)
    if material_idx >= 0 and material_idx < num_metal_materials[None]:
        found = 1
        albedo = PropertyRef(kind=metal_albedo_kinds[material_idx], index=metal_albedo_indices[material_idx])
        fuzz = PropertyRef(kind=metal_fuzz_kinds[material_idx], index=metal_fuzz_indices[material_idx])
    return found, albedo, fuzz
