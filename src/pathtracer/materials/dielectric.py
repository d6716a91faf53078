"""Dielectric (glass/water) material implementation.

This module implements the dielectric BSDF, which models transparent materials
like glass and water with refraction and Fresnel reflectance.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance
    - Total internal reflection when sin(theta_t) > 1

The material randomly chooses between reflection and refraction based on
the Fresnel reflectance probability, which increases at grazing angles.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import Ray, reflect, refract, schlick_reflectance
from src.pathtracer.core.rng import rng_next_float
from src.pathtracer.materials.records import PdfKind, ScatterRecord
from src.pathtracer.scene.oracle import HitRecord

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_dielectric(
    state: ti.u32,
    refraction_index: ti.f32,
    incident_direction: vec3,
    hit: HitRecord,
):
    """Reflect or refract the incident ray through a dielectric surface.

    Dielectrics never absorb: the record always scatters with white
    attenuation and ``skip_pdf = 1``.

    Args:
        state: RNG state.
        refraction_index: Index of refraction of the material.
        incident_direction: The incoming ray direction (any length).
        hit: The surface hit; ``hit.front_face`` selects entering or leaving.

    Returns:
        A tuple (new_state, ScatterRecord).
    """
    # Entering the material: eta = 1/ior, leaving: eta = ior
    refraction_ratio = refraction_index
    if hit.front_face == 1:
        refraction_ratio = 1.0 / refraction_index

    unit_direction = tm.normalize(incident_direction)
    cos_theta = tm.min(tm.dot(-unit_direction, hit.normal), 1.0)
    sin_theta = ti.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))

    s, u = rng_next_float(state)
    direction = vec3(0.0, 0.0, 0.0)
    if refraction_ratio * sin_theta > 1.0 or schlick_reflectance(cos_theta, refraction_ratio) > u:
        direction = reflect(unit_direction, hit.normal)
    else:
        direction = refract(unit_direction, hit.normal, refraction_ratio)

    rec = ScatterRecord(
        is_scattered=1,
        attenuation=vec3(1.0, 1.0, 1.0),
        skip_pdf=1,
        skip_pdf_ray=Ray(origin=hit.position, direction=direction),
        pdf_kind=int(PdfKind.NONE),
    )
    return s, rec


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of dielectric materials in the scene
MAX_DIELECTRIC_MATERIALS = 256

# Storage for dielectric material properties
dielectric_refraction_indices = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_dielectric_materials[None] = 0


def add_dielectric_material(refraction_index: float = 1.5) -> int:
    """Add a dielectric material to the material registry.

    Args:
        refraction_index: Index of refraction. Common values:
            - Air: 1.0
            - Water: 1.33
            - Glass: 1.5
            - Diamond: 2.4

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If refraction_index is less than 1.0.
    """
    if refraction_index < 1.0:
        raise ValueError(
            f"Refraction index {refraction_index} is less than 1.0. "
            "Physical materials have IOR >= 1.0."
        )

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_refraction_indices[idx] = refraction_index
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def lookup_dielectric_material(material_idx: ti.i32):
    """Bounds-checked read of a dielectric material.

    Returns:
        A tuple (found, refraction_index).
    """
    found = 0
    refraction_index = 1.0
    if material_idx >= 0 and material_idx < num_dielectric_materials[None]:
        found = 1
        refraction_index = dielectric_refraction_indices[material_idx]
    return found, refraction_index
