"""Materials module for BSDF models.

Components:
    records: MaterialType / PdfKind codes and the ScatterRecord struct
    lambertian: Ideal diffuse reflection (direction chosen by the MIS combiner)
    metal: Specular reflection with fuzz
    dielectric: Glass-like refraction with Schlick Fresnel
    diffuse_light: Front-face area emitter
    dispatch: scatter / emitted / scattering_pdf by (material_type, index)

Every material parameter is a texture property reference, resolved at the hit
point through ``textures.resolve``. All BSDF computations are Taichi functions.
"""

from .dielectric import (
    MAX_DIELECTRIC_MATERIALS,
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_material_count,
    scatter_dielectric,
)
from .diffuse_light import (
    MAX_DIFFUSE_LIGHT_MATERIALS,
    add_diffuse_light_material,
    clear_diffuse_light_materials,
    emitted_diffuse_light,
    get_diffuse_light_material_count,
)
from .dispatch import emitted, scatter, scattering_pdf
from .lambertian import (
    MAX_LAMBERTIAN_MATERIALS,
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_material_count,
    pdf_lambertian,
    scatter_lambertian,
)
from .metal import (
    MAX_METAL_MATERIALS,
    add_metal_material,
    clear_metal_materials,
    get_metal_material_count,
    scatter_metal,
)
from .records import MaterialType, PdfKind, ScatterRecord


def clear_materials() -> None:
    """Clear every material table."""
    clear_lambertian_materials()
    clear_metal_materials()
    clear_dielectric_materials()
    clear_diffuse_light_materials()


__all__ = [
    "MaterialType",
    "PdfKind",
    "ScatterRecord",
    "scatter",
    "emitted",
    "scattering_pdf",
    "clear_materials",
    # Lambertian
    "scatter_lambertian",
    "pdf_lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "MAX_LAMBERTIAN_MATERIALS",
    # Metal
    "scatter_metal",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "MAX_METAL_MATERIALS",
    # Dielectric
    "scatter_dielectric",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "MAX_DIELECTRIC_MATERIALS",
    # Diffuse light
    "emitted_diffuse_light",
    "add_diffuse_light_material",
    "clear_diffuse_light_materials",
    "get_diffuse_light_material_count",
    "MAX_DIFFUSE_LIGHT_MATERIALS",
]
