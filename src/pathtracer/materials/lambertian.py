"""Lambertian (ideal diffuse) material implementation.

This module implements the Lambertian BRDF, which models ideal diffuse reflection
where incident light is scattered uniformly in all directions weighted by the
cosine of the angle from the surface normal.

The Lambertian BRDF is:
    f_r(wi, wo) = albedo / pi

The scattering pdf used by the MIS combiner is:
    pdf(wi) = max(cos(theta), 0) / pi

A Lambertian surface does not pick its own outgoing direction. Its scatter
record carries ``pdf_kind = COSINE`` and the MIS combiner draws the direction
from a mixture of the cosine distribution and light sampling.

Example:
    >>> from src.pathtracer.materials.lambertian import add_lambertian_material
    >>> from src.pathtracer.textures import add_constant_colour
    >>> red = add_lambertian_material(add_constant_colour((0.65, 0.05, 0.05)))
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import Ray
from src.pathtracer.materials.records import PdfKind, ScatterRecord
from src.pathtracer.scene.oracle import HitRecord
from src.pathtracer.textures.property import PropertyRef, PropertyValue, as_property_value
from src.pathtracer.textures.resolver import resolve

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def pdf_lambertian(normal: vec3, scattered_direction: vec3) -> ti.f32:
    """Compute the scattering PDF for a Lambertian surface.

    Args:
        normal: The surface normal (should be normalized).
        scattered_direction: The outgoing direction (should be normalized).

    Returns:
        cos(theta) / pi, or 0 if the direction is below the surface.
    """
    cos_theta = tm.dot(normal, scattered_direction)
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


@ti.func
def scatter_lambertian(albedo: PropertyRef, hit: HitRecord) -> ScatterRecord:
    """Scatter record for a Lambertian surface.

    The attenuation is the resolved albedo. The outgoing direction is left to
    the MIS combiner (``skip_pdf = 0``, ``pdf_kind = COSINE``).
    """
    return ScatterRecord(
        is_scattered=1,
        attenuation=resolve(albedo, hit),
        skip_pdf=0,
        skip_pdf_ray=Ray(origin=hit.position, direction=hit.normal),
        pdf_kind=int(PdfKind.COSINE),
    )


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 256

# Albedo property reference per material
lambertian_albedo_kinds = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
lambertian_albedo_indices = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo: PropertyValue | tuple[int, int]) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        albedo: Property reference for the diffuse reflectance.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If the albedo reference has an unknown kind.
    """
    albedo = as_property_value(albedo)

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_albedo_kinds[idx] = int(albedo.kind)
    lambertian_albedo_indices[idx] = albedo.index
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def lookup_lambertian_material(material_idx: ti.i32):
    """Bounds-checked read of a Lambertian material.

    Returns:
        A tuple (found, albedo_ref).
    """
    found = 0
    albedo = PropertyRef(kind=-1, index=-1)
    if material_idx >= 0 and material_idx < num_lambertian_materials[None]:
        found = 1
        albedo = PropertyRef(
            kind=lambertian_albedo_kinds[material_idx],
            index=lambertian_albedo_indices[material_idx],
        )
    return found, albedo
