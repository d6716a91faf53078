"""Constant colour table.

Each entry is a linear RGB colour. Components are only required to be finite
and non-negative; emission colours are expected to exceed 1.
"""

import math

import taichi as ti
import taichi.math as tm

from src.pathtracer.textures.property import PropertyKind, PropertyValue

vec3 = tm.vec3

MAX_CONSTANT_COLOURS = 1024

constant_colours = ti.Vector.field(3, dtype=ti.f32, shape=MAX_CONSTANT_COLOURS)
num_constant_colours = ti.field(dtype=ti.i32, shape=())


def clear_constant_colours() -> None:
    """Clear all constant colours."""
    num_constant_colours[None] = 0


def add_constant_colour(rgb: tuple[float, float, float]) -> PropertyValue:
    """Add a constant colour.

    Args:
        rgb: Linear (R, G, B) components.

    Returns:
        A PropertyValue referencing the new entry.

    Raises:
        ValueError: If the colour does not have three finite, non-negative
            components.
        RuntimeError: If the table is full.
    """
    if len(rgb) != 3:
        raise ValueError(f"Colour must have 3 components, got {len(rgb)}")
    for i, component in enumerate(rgb):
        if not math.isfinite(component) or component < 0.0:
            raise ValueError(f"Colour component {i} = {component} must be finite and >= 0")

    idx = num_constant_colours[None]
    if idx >= MAX_CONSTANT_COLOURS:
        raise RuntimeError(f"Maximum number of constant colours ({MAX_CONSTANT_COLOURS}) exceeded")

    constant_colours[idx] = vec3(rgb[0], rgb[1], rgb[2])
    num_constant_colours[None] = idx + 1
    return PropertyValue(kind=PropertyKind.RGB, index=idx)


def get_constant_colour_count() -> int:
    """Get the number of constant colours."""
    return int(num_constant_colours[None])


@ti.func
def lookup_constant_colour(index: ti.i32):
    """Bounds-checked read of a constant colour.

    Returns:
        A tuple (found, colour); colour is black when found is 0.
    """
    found = 0
    colour = vec3(0.0, 0.0, 0.0)
    if index >= 0 and index < num_constant_colours[None]:
        found = 1
        colour = constant_colours[index]
    return found, colour
