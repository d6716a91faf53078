"""Solid checker texture table.

A checker texture partitions object space into cubes of edge ``scale`` and
alternates between two property references, ``even`` and ``odd``. The
sub-references must not be checkers themselves.
"""

import taichi as ti

from src.pathtracer.textures.property import (
    PropertyKind,
    PropertyRef,
    PropertyValue,
    as_property_value,
)

MAX_CHECKER_TEXTURES = 256

checker_scales = ti.field(dtype=ti.f32, shape=MAX_CHECKER_TEXTURES)
checker_odd_kinds = ti.field(dtype=ti.i32, shape=MAX_CHECKER_TEXTURES)
checker_odd_indices = ti.field(dtype=ti.i32, shape=MAX_CHECKER_TEXTURES)
checker_even_kinds = ti.field(dtype=ti.i32, shape=MAX_CHECKER_TEXTURES)
checker_even_indices = ti.field(dtype=ti.i32, shape=MAX_CHECKER_TEXTURES)
num_checker_textures = ti.field(dtype=ti.i32, shape=())


def clear_checker_textures() -> None:
    """Clear all checker textures."""
    num_checker_textures[None] = 0


def add_checker_texture(
    scale: float,
    odd: PropertyValue | tuple[int, int],
    even: PropertyValue | tuple[int, int],
) -> PropertyValue:
    """Add a checker texture.

    Args:
        scale: Edge length of one checker cell in object space.
        odd: Property used where the cell coordinate sum is odd.
        even: Property used where the cell coordinate sum is even.

    Returns:
        A PropertyValue referencing the new checker.

    Raises:
        ValueError: If scale is not positive or a sub-property is a checker.
        RuntimeError: If the table is full.
    """
    if scale <= 0.0:
        raise ValueError(f"Checker scale must be positive, got {scale}")
    odd = as_property_value(odd)
    even = as_property_value(even)
    for name, value in (("odd", odd), ("even", even)):
        if value.kind == PropertyKind.CHECKER:
            raise ValueError(f"Checker {name} property must not be another checker")

    idx = num_checker_textures[None]
    if idx >= MAX_CHECKER_TEXTURES:
        raise RuntimeError(f"Maximum number of checker textures ({MAX_CHECKER_TEXTURES}) exceeded")

    checker_scales[idx] = scale
    checker_odd_kinds[idx] = int(odd.kind)
    checker_odd_indices[idx] = odd.index
    checker_even_kinds[idx] = int(even.kind)
    checker_even_indices[idx] = even.index
    num_checker_textures[None] = idx + 1
    return PropertyValue(kind=PropertyKind.CHECKER, index=idx)


def get_checker_texture_count() -> int:
    """Get the number of checker textures."""
    return int(num_checker_textures[None])


@ti.func
def lookup_checker_texture(index: ti.i32):
    """Bounds-checked read of a checker texture.

    Returns:
        A tuple (found, scale, odd, even) where odd and even are PropertyRefs.
    """
    found = 0
    scale = 1.0
    odd = PropertyRef(kind=-1, index=-1)
    even = PropertyRef(kind=-1, index=-1)
    if index >= 0 and index < num_checker_textures[None]:
        found = 1
        scale = checker_scales[index]
        odd = PropertyRef(kind=checker_odd_kinds[index], index=checker_odd_indices[index])
        even = PropertyRef(kind=checker_even_kinds[index], index=checker_even_indices[index])
    return found, scale, odd, even


@ti.func
def checker_is_even(p, scale: ti.f32) -> ti.i32:
    """1 if the checker cell containing p has an even coordinate sum."""
    cell = ti.cast(ti.floor(p / scale), ti.i32)
    even = 0
    if ((cell.x + cell.y + cell.z) & 1) == 0:
        even = 1
    return even
