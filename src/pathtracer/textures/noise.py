"""Perlin noise (marble) texture table.

The noise value at a point is a marble pattern built from Perlin turbulence:

    0.5 * (1 + sin(scale * p.z + 10 * turbulence(p, 7)))

evaluated at the object-space hit position and returned as a grey colour.

All noise textures share one set of Perlin tables: 256 random unit gradient
vectors and three permutation tables. The tables are generated host-side with
numpy from a fixed seed the first time a noise texture is added, so renders
are reproducible.
"""

import logging

import numpy as np
import taichi as ti
import taichi.math as tm

from src.pathtracer.textures.property import PropertyKind, PropertyValue

logger = logging.getLogger(__name__)

vec3 = tm.vec3

MAX_NOISE_TEXTURES = 256
PERLIN_POINT_COUNT = 256
PERLIN_SEED = 0x5EED
TURBULENCE_DEPTH = 7

noise_scales = ti.field(dtype=ti.f32, shape=MAX_NOISE_TEXTURES)
num_noise_textures = ti.field(dtype=ti.i32, shape=())

perlin_gradients = ti.Vector.field(3, dtype=ti.f32, shape=PERLIN_POINT_COUNT)
perlin_perm_x = ti.field(dtype=ti.i32, shape=PERLIN_POINT_COUNT)
perlin_perm_y = ti.field(dtype=ti.i32, shape=PERLIN_POINT_COUNT)
perlin_perm_z = ti.field(dtype=ti.i32, shape=PERLIN_POINT_COUNT)

_perlin_seed: int | None = None


def init_perlin_tables(seed: int = PERLIN_SEED) -> None:
    """Generate the shared Perlin gradient and permutation tables."""
    global _perlin_seed

    rng = np.random.default_rng(seed)
    gradients = rng.uniform(-1.0, 1.0, size=(PERLIN_POINT_COUNT, 3))
    norms = np.linalg.norm(gradients, axis=1, keepdims=True)
    gradients = gradients / np.maximum(norms, 1e-8)

    perlin_gradients.from_numpy(gradients.astype(np.float32))
    perlin_perm_x.from_numpy(rng.permutation(PERLIN_POINT_COUNT).astype(np.int32))
    perlin_perm_y.from_numpy(rng.permutation(PERLIN_POINT_COUNT).astype(np.int32))
    perlin_perm_z.from_numpy(rng.permutation(PERLIN_POINT_COUNT).astype(np.int32))
    _perlin_seed = seed
    logger.debug("Initialized Perlin tables with seed %d", seed)


def clear_noise_textures() -> None:
    """Clear all noise textures. The Perlin tables are kept."""
    num_noise_textures[None] = 0


def add_noise_texture(scale: float) -> PropertyValue:
    """Add a marble noise texture.

    Args:
        scale: Frequency of the marble stripes along z.

    Returns:
        A PropertyValue referencing the new texture.

    Raises:
        ValueError: If scale is negative.
        RuntimeError: If the table is full.
    """
    if scale < 0.0:
        raise ValueError(f"Noise scale must be non-negative, got {scale}")
    if _perlin_seed is None:
        init_perlin_tables()

    idx = num_noise_textures[None]
    if idx >= MAX_NOISE_TEXTURES:
        raise RuntimeError(f"Maximum number of noise textures ({MAX_NOISE_TEXTURES}) exceeded")

    noise_scales[idx] = scale
    num_noise_textures[None] = idx + 1
    return PropertyValue(kind=PropertyKind.NOISE, index=idx)


def get_noise_texture_count() -> int:
    """Get the number of noise textures."""
    return int(num_noise_textures[None])


@ti.func
def lookup_noise_texture(index: ti.i32):
    """Bounds-checked read of a noise texture.

    Returns:
        A tuple (found, scale).
    """
    found = 0
    scale = 0.0
    if index >= 0 and index < num_noise_textures[None]:
        found = 1
        scale = noise_scales[index]
    return found, scale


@ti.func
def perlin_noise(p: vec3) -> ti.f32:
    """Gradient noise in roughly [-1, 1] with Hermite-smoothed trilinear blending."""
    f = ti.floor(p)
    u = p.x - f.x
    v = p.y - f.y
    w = p.z - f.z
    i = ti.cast(f.x, ti.i32)
    j = ti.cast(f.y, ti.i32)
    k = ti.cast(f.z, ti.i32)

    uu = u * u * (3.0 - 2.0 * u)
    vv = v * v * (3.0 - 2.0 * v)
    ww = w * w * (3.0 - 2.0 * w)

    accum = 0.0
    for di, dj, dk in ti.static(ti.ndrange(2, 2, 2)):
        h = (
            perlin_perm_x[(i + di) & 255]
            ^ perlin_perm_y[(j + dj) & 255]
            ^ perlin_perm_z[(k + dk) & 255]
        )
        weight = vec3(u - di, v - dj, w - dk)
        accum += (
            (di * uu + (1 - di) * (1.0 - uu))
            * (dj * vv + (1 - dj) * (1.0 - vv))
            * (dk * ww + (1 - dk) * (1.0 - ww))
            * tm.dot(perlin_gradients[h], weight)
        )
    return accum


@ti.func
def turbulence(p: vec3, depth: ti.template()) -> ti.f32:
    """Sum of |depth| octaves of noise with halving weight, absolute value."""
    accum = 0.0
    temp_p = p
    weight = 1.0
    for _ in ti.static(range(depth)):
        accum += weight * perlin_noise(temp_p)
        weight *= 0.5
        temp_p *= 2.0
    return ti.abs(accum)


@ti.func
def marble(p: vec3, scale: ti.f32) -> vec3:
    """Grey marble colour at object-space point p."""
    g = 0.5 * (1.0 + ti.sin(scale * p.z + 10.0 * turbulence(p, TURBULENCE_DEPTH)))
    return vec3(g, g, g)
