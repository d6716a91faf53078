"""Image texture table.

All images share one packed texel buffer; each image records its offset,
width and height. Sampling is bilinear with repeat wrapping. Texture
coordinate ``v = 0`` maps to the bottom row of the image, ``v = 1`` to the top
row. Alpha channels are dropped.

8-bit images are treated as sRGB encoded and converted to linear RGB when
uploaded; float images are assumed to be linear already.

Example:
    >>> from src.pathtracer.textures.image import load_image_texture
    >>> earth = load_image_texture("assets/earthmap.jpg")
    >>> # earth is a PropertyValue usable as a material albedo
"""

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image

from src.pathtracer.textures.property import PropertyKind, PropertyValue

logger = logging.getLogger(__name__)

vec3 = tm.vec3

MAX_IMAGE_TEXTURES = 64
MAX_TEXELS = 1 << 21

texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
image_offsets = ti.field(dtype=ti.i32, shape=MAX_IMAGE_TEXTURES)
image_widths = ti.field(dtype=ti.i32, shape=MAX_IMAGE_TEXTURES)
image_heights = ti.field(dtype=ti.i32, shape=MAX_IMAGE_TEXTURES)
num_image_textures = ti.field(dtype=ti.i32, shape=())
num_texels = ti.field(dtype=ti.i32, shape=())


def srgb_to_linear(values: np.ndarray) -> np.ndarray:
    """Decode sRGB-encoded values in [0, 1] to linear RGB."""
    return np.where(
        values <= 0.04045,
        values / 12.92,
        ((values + 0.055) / 1.055) ** 2.4,
    )


def clear_image_textures() -> None:
    """Clear all image textures."""
    num_image_textures[None] = 0
    num_texels[None] = 0


@ti.kernel
def _upload_texels(offset: ti.i32, pixels: ti.types.ndarray()):
    # pixels has shape (height, width, 3), row 0 at the top
    for y, x in ti.ndrange(pixels.shape[0], pixels.shape[1]):
        texels[offset + y * pixels.shape[1] + x] = vec3(pixels[y, x, 0], pixels[y, x, 1], pixels[y, x, 2])


def add_image_texture(pixels: npt.ArrayLike) -> PropertyValue:
    """Add an image texture from a pixel array.

    Args:
        pixels: Array of shape (height, width, 3) or (height, width, 4), row 0
            at the top of the image. uint8 data is sRGB decoded; float data is
            used as linear RGB.

    Returns:
        A PropertyValue referencing the new texture.

    Raises:
        ValueError: If the array does not have a supported shape.
        RuntimeError: If the image or texel capacity is exceeded.
    """
    array = np.asarray(pixels)
    if array.ndim == 2:
        array = np.repeat(array[:, :, None], 3, axis=2)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (H, W, 3) or (H, W, 4) array, got shape {array.shape}")
    height, width = array.shape[0], array.shape[1]
    if height == 0 or width == 0:
        raise ValueError("Image texture must not be empty")

    rgb = array[:, :, :3]
    if rgb.dtype == np.uint8:
        rgb = srgb_to_linear(rgb.astype(np.float32) / 255.0)
    rgb = np.ascontiguousarray(rgb, dtype=np.float32)

    idx = num_image_textures[None]
    if idx >= MAX_IMAGE_TEXTURES:
        raise RuntimeError(f"Maximum number of image textures ({MAX_IMAGE_TEXTURES}) exceeded")
    offset = num_texels[None]
    if offset + width * height > MAX_TEXELS:
        raise RuntimeError(f"Texel buffer capacity ({MAX_TEXELS}) exceeded")

    _upload_texels(offset, rgb)
    image_offsets[idx] = offset
    image_widths[idx] = width
    image_heights[idx] = height
    num_texels[None] = offset + width * height
    num_image_textures[None] = idx + 1

    logger.debug("Added image texture %d (%dx%d)", idx, width, height)
    return PropertyValue(kind=PropertyKind.IMAGE, index=idx)


def load_image_texture(path: str | Path) -> PropertyValue:
    """Load an image file with Pillow and add it as a texture.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with Image.open(path) as img:
        pixels = np.asarray(img.convert("RGB"))
    logger.info("Loaded texture %s", path)
    return add_image_texture(pixels)


def get_image_texture_count() -> int:
    """Get the number of image textures."""
    return int(num_image_textures[None])


@ti.func
def _wrap(i: ti.i32, n: ti.i32) -> ti.i32:
    return ((i % n) + n) % n


@ti.func
def _texel(offset: ti.i32, width: ti.i32, height: ti.i32, x: ti.i32, y: ti.i32) -> vec3:
    return texels[offset + _wrap(y, height) * width + _wrap(x, width)]


@ti.func
def lookup_image_texture(index: ti.i32, u: ti.f32, v: ti.f32):
    """Bilinearly sample an image texture at (u, v).

    Returns:
        A tuple (found, colour); colour is black when found is 0.
    """
    found = 0
    colour = vec3(0.0, 0.0, 0.0)
    if index >= 0 and index < num_image_textures[None]:
        found = 1
        offset = image_offsets[index]
        width = image_widths[index]
        height = image_heights[index]

        # Texel centers sit at half-integer coordinates
        x = u * width - 0.5
        y = (1.0 - v) * height - 0.5
        x0 = ti.floor(x)
        y0 = ti.floor(y)
        fx = x - x0
        fy = y - y0
        ix = ti.cast(x0, ti.i32)
        iy = ti.cast(y0, ti.i32)

        c00 = _texel(offset, width, height, ix, iy)
        c10 = _texel(offset, width, height, ix + 1, iy)
        c01 = _texel(offset, width, height, ix, iy + 1)
        c11 = _texel(offset, width, height, ix + 1, iy + 1)
        top = c00 * (1.0 - fx) + c10 * fx
        bottom = c01 * (1.0 - fx) + c11 * fx
        colour = top * (1.0 - fy) + bottom * fy
    return found, colour
