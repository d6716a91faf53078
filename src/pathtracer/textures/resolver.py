"""Property resolution: PropertyRef + HitRecord -> linear RGB.

Resolution never fails on the device. Unknown kinds and out-of-range indices
produce black.

Checker textures are resolved one level deep: the selected ``odd``/``even``
reference goes through ``resolve_basic``, which does not handle checkers.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.scene.oracle import HitRecord
from src.pathtracer.textures.checker import checker_is_even, lookup_checker_texture
from src.pathtracer.textures.constant import lookup_constant_colour
from src.pathtracer.textures.image import lookup_image_texture
from src.pathtracer.textures.noise import lookup_noise_texture, marble
from src.pathtracer.textures.property import PropertyKind, PropertyRef

vec3 = tm.vec3


@ti.func
def resolve_basic(ref: PropertyRef, hit: HitRecord) -> vec3:
    """Resolve an RGB, IMAGE or NOISE reference; anything else is black."""
    colour = vec3(0.0, 0.0, 0.0)
    if ref.kind == int(PropertyKind.RGB):
        _, colour = lookup_constant_colour(ref.index)
    elif ref.kind == int(PropertyKind.IMAGE):
        _, colour = lookup_image_texture(ref.index, hit.u, hit.v)
    elif ref.kind == int(PropertyKind.NOISE):
        found, scale = lookup_noise_texture(ref.index)
        if found == 1:
            colour = marble(hit.local_position, scale)
    return colour


@ti.func
def resolve(ref: PropertyRef, hit: HitRecord) -> vec3:
    """Resolve any property reference at a hit point."""
    colour = vec3(0.0, 0.0, 0.0)
    if ref.kind == int(PropertyKind.CHECKER):
        found, scale, odd, even = lookup_checker_texture(ref.index)
        if found == 1:
            if checker_is_even(hit.local_position, scale) == 1:
                colour = resolve_basic(even, hit)
            else:
                colour = resolve_basic(odd, hit)
    else:
        colour = resolve_basic(ref, hit)
    return colour
