"""Background radiance for rays that leave the scene.

Three sky models are supported:

    NONE               black
    SOLID              a constant colour
    VERTICAL_GRADIENT  lerp(bottom, top, a), a = clamp(0.5 * (factor * dir.y + 1), 0, 1)

The gradient uses the normalized ray direction.
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


class SkyType(IntEnum):
    NONE = 0
    SOLID = 1
    VERTICAL_GRADIENT = 2


_sky_type = ti.field(dtype=ti.i32, shape=())
_sky_factor = ti.field(dtype=ti.f32, shape=())
_sky_top = ti.Vector.field(3, dtype=ti.f32, shape=())
_sky_bottom = ti.Vector.field(3, dtype=ti.f32, shape=())


def _check_colour(name: str, colour: tuple[float, float, float]) -> None:
    if len(colour) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(colour)}")
    if any(c < 0.0 for c in colour):
        raise ValueError(f"{name} components must be non-negative, got {colour}")


def set_sky_none() -> None:
    """Black background."""
    _sky_type[None] = int(SkyType.NONE)


def set_sky_solid(colour: tuple[float, float, float]) -> None:
    """Constant background colour.

    Raises:
        ValueError: If the colour is malformed or negative.
    """
    _check_colour("colour", colour)
    _sky_type[None] = int(SkyType.SOLID)
    _sky_top[None] = list(colour)
    _sky_bottom[None] = list(colour)


def set_sky_vertical_gradient(
    factor: float,
    top: tuple[float, float, float],
    bottom: tuple[float, float, float],
) -> None:
    """Blend from ``bottom`` (looking down) to ``top`` (looking up).

    Raises:
        ValueError: If a colour is malformed or negative.
    """
    _check_colour("top", top)
    _check_colour("bottom", bottom)
    _sky_type[None] = int(SkyType.VERTICAL_GRADIENT)
    _sky_factor[None] = factor
    _sky_top[None] = list(top)
    _sky_bottom[None] = list(bottom)


def get_sky_type() -> SkyType:
    return SkyType(int(_sky_type[None]))


@ti.func
def background(direction: vec3) -> vec3:
    """Radiance arriving along a ray that missed all geometry."""
    colour = vec3(0.0, 0.0, 0.0)
    sky = _sky_type[None]
    if sky == int(SkyType.SOLID):
        colour = _sky_top[None]
    elif sky == int(SkyType.VERTICAL_GRADIENT):
        unit_direction = tm.normalize(direction)
        a = tm.clamp(0.5 * (_sky_factor[None] * unit_direction.y + 1.0), 0.0, 1.0)
        colour = (1.0 - a) * _sky_bottom[None] + a * _sky_top[None]
    return colour
