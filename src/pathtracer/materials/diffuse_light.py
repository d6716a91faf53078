"""Diffuse area light material.

An emitter never scatters. It emits its resolved ``emit`` colour from the
front face only; the back face is black. Mesh instances using this material
are what the light alias table is built from.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.scene.oracle import HitRecord
from src.pathtracer.textures.property import PropertyRef, PropertyValue, as_property_value
from src.pathtracer.textures.resolver import resolve

vec3 = tm.vec3

MAX_DIFFUSE_LIGHT_MATERIALS = 256

diffuse_light_emit_kinds = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
diffuse_light_emit_indices = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


@ti.func
def emitted_diffuse_light(emit: PropertyRef, hit: HitRecord) -> vec3:
    """Emitted radiance: the resolved colour on front faces, black otherwise."""
    radiance = vec3(0.0, 0.0, 0.0)
    if hit.front_face == 1:
        radiance = resolve(emit, hit)
    return radiance


def clear_diffuse_light_materials() -> None:
    """Clear all diffuse light materials."""
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(emit: PropertyValue | tuple[int, int]) -> int:
    """Add a diffuse light material.

    Args:
        emit: Property reference for the emitted radiance.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If the reference has an unknown kind.
    """
    emit = as_property_value(emit)

    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )

    diffuse_light_emit_kinds[idx] = int(emit.kind)
    diffuse_light_emit_indices[idx] = emit.index
    num_diffuse_light_materials[None] = idx + 1
    return idx


def get_diffuse_light_material_count() -> int:
    """Get the number of diffuse light materials."""
    return int(num_diffuse_light_materials[None])


@ti.func
def lookup_diffuse_light_material(material_idx: ti.i32):
    """Bounds-checked read of a diffuse light material.

    Returns:
        A tuple (found, emit_ref).
    """
    found = 0
    emit = PropertyRef(kind=-1, index=-1)
    if material_idx >= 0 and material_idx < num_diffuse_light_materials[None]:
        found = 1
        emit = PropertyRef(
            kind=diffuse_light_emit_kinds[material_idx],
            index=diffuse_light_emit_indices[material_idx],
        )
    return found, emit
