"""Deterministic per-path random number generation.

Every path owns a single unsigned 32-bit state. Each draw takes the current
state and returns the advanced state together with the sample, so the state is
threaded explicitly through every function that consumes randomness:

    state = rng_seed(batch, px, py, width, height)
    state, u = rng_next_float(state)
    state, direction = random_unit_vec3(state)

The generator is a PCG-style hash (multiply-add step, variable xorshift,
multiply, final xorshift). It is bit-reproducible for a given seed, which makes
re-renders and tests deterministic.

The seed is ``(batch * height + py) * width + px``; it is distinct for every
(pixel, batch) pair of a render.
"""

import math

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import build_onb_from_normal, local_to_world

vec2 = tm.vec2
vec3 = tm.vec3

PCG_MULTIPLIER = 747796405
PCG_INCREMENT = 1
PCG_WORD_MULTIPLIER = 277803737

# 2^32 - 1
U32_MAX_FLOAT = 4294967295.0

# Largest float32 below 1.0
ONE_MINUS_EPSILON = 0.99999994

# Lower bound on |p|^2 in rejection sampling (float32-representable)
MIN_LENGTH_SQUARED = 1e-30

# Guards log(0) in the Box-Muller transform
MIN_BOX_MULLER_U = 1e-7


@ti.func
def rng_seed(
    sample_batch: ti.i32,
    pixel_x: ti.i32,
    pixel_y: ti.i32,
    width: ti.i32,
    height: ti.i32,
) -> ti.u32:
    """Compute the starting RNG state for one pixel in one sample batch."""
    b = ti.cast(sample_batch, ti.u32)
    x = ti.cast(pixel_x, ti.u32)
    y = ti.cast(pixel_y, ti.u32)
    w = ti.cast(width, ti.u32)
    h = ti.cast(height, ti.u32)
    return (b * h + y) * w + x


@ti.func
def rng_next_u32(state: ti.u32):
    """Advance the state and produce a 32-bit output word.

    Args:
        state: The current RNG state.

    Returns:
        A tuple (new_state, word).
    """
    s = state * ti.cast(PCG_MULTIPLIER, ti.u32) + ti.cast(PCG_INCREMENT, ti.u32)
    shift = (s >> ti.cast(28, ti.u32)) + ti.cast(4, ti.u32)
    word = ((s >> shift) ^ s) * ti.cast(PCG_WORD_MULTIPLIER, ti.u32)
    word = (word >> ti.cast(22, ti.u32)) ^ word
    return s, word


@ti.func
def rng_next_float(state: ti.u32):
    """Draw a uniform float in [0, 1).

    Returns:
        A tuple (new_state, u).
    """
    s, word = rng_next_u32(state)
    # Split into 16-bit halves so the conversion never sees a negative i32
    hi = ti.cast(word >> ti.cast(16, ti.u32), ti.f32)
    lo = ti.cast(word & ti.cast(0xFFFF, ti.u32), ti.f32)
    u = (hi * 65536.0 + lo) / U32_MAX_FLOAT
    return s, tm.min(u, ONE_MINUS_EPSILON)


@ti.func
def random_vec2(state: ti.u32):
    """Draw two independent uniform floats in [0, 1)."""
    s, a = rng_next_float(state)
    s, b = rng_next_float(s)
    return s, vec2(a, b)


@ti.func
def random_vec3(state: ti.u32):
    """Draw three independent uniform floats in [0, 1)."""
    s, a = rng_next_float(state)
    s, b = rng_next_float(s)
    s, c = rng_next_float(s)
    return s, vec3(a, b, c)


@ti.func
def random_unit_vec3(state: ti.u32):
    """Draw a unit vector uniformly distributed on the sphere.

    Rejection-samples the cube [-1, 1]^3, keeping points with
    MIN_LENGTH_SQUARED < |p|^2 <= 1, and normalizes. Terminates with
    probability 1.

    Returns:
        A tuple (new_state, direction).
    """
    s = state
    result = vec3(0.0, 0.0, 1.0)
    while True:
        s, p = random_vec3(s)
        p = 2.0 * p - 1.0
        len_sq = tm.dot(p, p)
        if len_sq > MIN_LENGTH_SQUARED and len_sq <= 1.0:
            result = p / ti.sqrt(len_sq)
            break
    return s, result


@ti.func
def random_gaussian_2d(state: ti.u32):
    """Draw a pair of independent standard normal values (Box-Muller).

    Returns:
        A tuple (new_state, vec2 of N(0, 1) samples).
    """
    s, u1 = rng_next_float(state)
    s, u2 = rng_next_float(s)
    u1 = tm.max(u1, MIN_BOX_MULLER_U)
    r = ti.sqrt(-2.0 * ti.log(u1))
    theta = 2.0 * math.pi * u2
    return s, vec2(r * ti.cos(theta), r * ti.sin(theta))


@ti.func
def random_in_unit_disk(state: ti.u32):
    """Draw a point in the unit disk with the concentric (Shirley-Chiu) map.

    Used for thin-lens depth of field. The mapping preserves stratification
    and has no rejection loop.

    Returns:
        A tuple (new_state, vec2 with |p| <= 1).
    """
    s, u = random_vec2(state)
    a = 2.0 * u.x - 1.0
    b = 2.0 * u.y - 1.0
    result = vec2(0.0, 0.0)
    if a != 0.0 or b != 0.0:
        r = 0.0
        phi = 0.0
        if a * a > b * b:
            r = a
            phi = (math.pi / 4.0) * (b / a)
        else:
            r = b
            phi = (math.pi / 2.0) - (math.pi / 4.0) * (a / b)
        result = vec2(r * ti.cos(phi), r * ti.sin(phi))
    return s, result


@ti.func
def sample_square_stratified(
    state: ti.u32,
    s_i: ti.i32,
    s_j: ti.i32,
    inv_sqrt_spp: ti.f32,
):
    """Jittered offset inside sub-pixel stratum (s_i, s_j).

    The pixel is split into a grid of 1/inv_sqrt_spp strata per axis. The
    offset is relative to the pixel center and lies in [-0.5, 0.5)^2.

    Returns:
        A tuple (new_state, vec2 offset).
    """
    s, r = random_vec2(state)
    px = (ti.cast(s_i, ti.f32) + r.x) * inv_sqrt_spp - 0.5
    py = (ti.cast(s_j, ti.f32) + r.y) * inv_sqrt_spp - 0.5
    return s, vec2(px, py)


@ti.func
def random_cosine_direction(state: ti.u32, normal: vec3):
    """Cosine-weighted direction in the hemisphere around ``normal``.

    The density is cos(theta) / pi with respect to solid angle.

    Returns:
        A tuple (new_state, world-space direction).
    """
    s, r1 = rng_next_float(state)
    s, r2 = rng_next_float(s)
    phi = 2.0 * math.pi * r1
    sqrt_r2 = ti.sqrt(r2)
    local = vec3(ti.cos(phi) * sqrt_r2, ti.sin(phi) * sqrt_r2, ti.sqrt(1.0 - r2))
    tangent, bitangent, n = build_onb_from_normal(normal)
    return s, local_to_world(local, tangent, bitangent, n)


@ti.func
def random_triangle_point(state: ti.u32, v0: vec3, v1: vec3, v2: vec3):
    """Uniform-area point on the triangle (v0, v1, v2).

    Uses the square-root barycentric mapping, which is uniform in area rather
    than in barycentric coordinates.

    Returns:
        A tuple (new_state, point).
    """
    s, r1 = rng_next_float(state)
    s, r2 = rng_next_float(s)
    sqrt_r1 = ti.sqrt(r1)
    p = v0 + sqrt_r1 * (1.0 - r2) * (v1 - v0) + sqrt_r1 * r2 * (v2 - v0)
    return s, p
