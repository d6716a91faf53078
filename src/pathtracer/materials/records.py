"""Material type codes and the scatter record shared by all material models."""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import Ray

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Material kind stored on each mesh instance."""

    NONE = 0
    LAMBERTIAN = 1
    METAL = 2
    DIELECTRIC = 3
    DIFFUSE_LIGHT = 4


class PdfKind(IntEnum):
    """Direction distribution a scattering material proposes for MIS."""

    NONE = 0
    COSINE = 1
    SPHERE = 2


@ti.dataclass
class ScatterRecord:
    """Result of scattering a ray off a surface.

    Attributes:
        is_scattered: 1 if the path continues, 0 if it was absorbed.
        attenuation: Colour the path throughput is multiplied by.
        skip_pdf: 1 for specular materials that chose the outgoing ray
            themselves (``skip_pdf_ray``); 0 when the direction is chosen by
            the MIS combiner from ``pdf_kind``.
        skip_pdf_ray: Outgoing ray, valid when ``skip_pdf`` is 1.
        pdf_kind: PdfKind code of the material's own proposal distribution.
    """

    is_scattered: ti.i32
    attenuation: vec3
    skip_pdf: ti.i32
    skip_pdf_ray: Ray
    pdf_kind: ti.i32


@ti.func
def absorbed_record(position: vec3) -> ScatterRecord:
    """Scatter record for a path that ends at this surface."""
    return ScatterRecord(
        is_scattered=0,
        attenuation=vec3(0.0, 0.0, 0.0),
        skip_pdf=0,
        skip_pdf_ray=Ray(origin=position, direction=vec3(0.0, 0.0, 0.0)),
        pdf_kind=int(PdfKind.NONE),
    )
