"""Textures module: material property tables and their resolution.

Components:
    property: PropertyKind codes, host PropertyValue handle, device PropertyRef
    constant: Constant linear RGB colours
    image: Bilinear image textures in a packed texel buffer (Pillow loading)
    checker: Solid 3D checker alternating between two properties
    noise: Perlin turbulence marble texture
    resolver: resolve() / resolve_basic() used by the material models
"""

from .checker import (
    MAX_CHECKER_TEXTURES,
    add_checker_texture,
    clear_checker_textures,
    get_checker_texture_count,
)
from .constant import (
    MAX_CONSTANT_COLOURS,
    add_constant_colour,
    clear_constant_colours,
    get_constant_colour_count,
)
from .image import (
    MAX_IMAGE_TEXTURES,
    add_image_texture,
    clear_image_textures,
    get_image_texture_count,
    load_image_texture,
)
from .noise import (
    MAX_NOISE_TEXTURES,
    add_noise_texture,
    clear_noise_textures,
    get_noise_texture_count,
    init_perlin_tables,
)
from .property import PropertyKind, PropertyRef, PropertyValue, as_property_value
from .resolver import resolve, resolve_basic


def clear_textures() -> None:
    """Clear every texture table."""
    clear_constant_colours()
    clear_image_textures()
    clear_checker_textures()
    clear_noise_textures()


__all__ = [
    "PropertyKind",
    "PropertyRef",
    "PropertyValue",
    "as_property_value",
    "add_constant_colour",
    "clear_constant_colours",
    "get_constant_colour_count",
    "add_image_texture",
    "load_image_texture",
    "clear_image_textures",
    "get_image_texture_count",
    "add_checker_texture",
    "clear_checker_textures",
    "get_checker_texture_count",
    "add_noise_texture",
    "clear_noise_textures",
    "get_noise_texture_count",
    "init_perlin_tables",
    "clear_textures",
    "resolve",
    "resolve_basic",
    "MAX_CONSTANT_COLOURS",
    "MAX_IMAGE_TEXTURES",
    "MAX_CHECKER_TEXTURES",
    "MAX_NOISE_TEXTURES",
]
