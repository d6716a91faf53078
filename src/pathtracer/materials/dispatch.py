"""Material dispatch by (material_type, material_index).

The integrator never calls a material model directly; it passes the pair
stored on the hit instance to these functions. An unknown type or an
out-of-range index behaves like a black absorber: the path ends and nothing is
emitted.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import Ray
from src.pathtracer.materials.dielectric import lookup_dielectric_material, scatter_dielectric
from src.pathtracer.materials.diffuse_light import emitted_diffuse_light, lookup_diffuse_light_material
from src.pathtracer.materials.lambertian import (
    lookup_lambertian_material,
    pdf_lambertian,
    scatter_lambertian,
)
from src.pathtracer.materials.metal import lookup_metal_material, scatter_metal
from src.pathtracer.materials.records import MaterialType, PdfKind, ScatterRecord, absorbed_record
from src.pathtracer.scene.oracle import HitRecord

vec3 = tm.vec3

# Density of the uniform sphere distribution, 1 / (4 pi)
UNIFORM_SPHERE_PDF = 0.25 / tm.pi


@ti.func
def scatter(
    state: ti.u32,
    material_type: ti.i32,
    material_index: ti.i32,
    ray: Ray,
    hit: HitRecord,
):
    """Scatter an incoming ray off the material of the hit instance.

    Returns:
        A tuple (new_state, ScatterRecord).
    """
    s = state
    rec = absorbed_record(hit.position)
    if material_type == int(MaterialType.LAMBERTIAN):
        found, albedo = lookup_lambertian_material(material_index)
        if found == 1:
            rec = scatter_lambertian(albedo, hit)
    elif material_type == int(MaterialType.METAL):
        found, albedo, fuzz = lookup_metal_material(material_index)
        if found == 1:
            s, rec = scatter_metal(s, albedo, fuzz, ray.direction, hit)
    elif material_type == int(MaterialType.DIELECTRIC):
        found, refraction_index = lookup_dielectric_material(material_index)
        if found == 1:
            s, rec = scatter_dielectric(s, refraction_index, ray.direction, hit)
    return s, rec


@ti.func
def emitted(material_type: ti.i32, material_index: ti.i32, hit: HitRecord) -> vec3:
    """Radiance emitted by the material at the hit point."""
    radiance = vec3(0.0, 0.0, 0.0)
    if material_type == int(MaterialType.DIFFUSE_LIGHT):
        found, emit = lookup_diffuse_light_material(material_index)
        if found == 1:
            radiance = emitted_diffuse_light(emit, hit)
    return radiance


@ti.func
def scattering_pdf(pdf_kind: ti.i32, normal: vec3, direction: vec3) -> ti.f32:
    """Scattering density of a material's proposal distribution.

    Args:
        pdf_kind: PdfKind code from the scatter record.
        normal: Shading normal facing the incoming ray.
        direction: Normalized outgoing direction.
    """
    pdf = 0.0
    if pdf_kind == int(PdfKind.COSINE):
        pdf = pdf_lambertian(normal, direction)
    elif pdf_kind == int(PdfKind.SPHERE):
        pdf = UNIFORM_SPHERE_PDF
    return pdf
