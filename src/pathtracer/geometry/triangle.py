"""Ray-triangle intersection.

Implements the Moller-Trumbore test. The test is two-sided: a triangle is hit
regardless of winding, and the caller decides front/back facing from the
normal afterwards.

The hit is reported as the ray parameter ``t`` plus two barycentric
coordinates ``(b1, b2)``; the point is ``(1 - b1 - b2) * v0 + b1 * v1 + b2 * v2``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.geometry.triangle import hit_triangle
    >>> # Inside a Taichi kernel:
    >>> # hit, t, b1, b2 = hit_triangle(origin, direction, v0, v1, v2, 0.001, 1e4)
"""

import taichi as ti
import taichi.math as tm

vec3 = tm.vec3

# Determinant threshold below which the ray is treated as parallel
PARALLEL_EPSILON = 1e-12


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    v0: vec3,
    v1: vec3,
    v2: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
):
    """Test a ray against a triangle.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (need not be normalized).
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        t_min: Minimum accepted ray parameter.
        t_max: Maximum accepted ray parameter.

    Returns:
        A tuple (hit, t, b1, b2) where hit is 1 if the ray intersects the
        triangle with t in (t_min, t_max), and b1/b2 are the barycentric
        weights of v1 and v2.
    """
    hit = 0
    t = 0.0
    b1 = 0.0
    b2 = 0.0

    edge1 = v1 - v0
    edge2 = v2 - v0
    pvec = tm.cross(ray_direction, edge2)
    det = tm.dot(edge1, pvec)

    if ti.abs(det) > PARALLEL_EPSILON:
        inv_det = 1.0 / det
        tvec = ray_origin - v0
        u = tm.dot(tvec, pvec) * inv_det
        if u >= 0.0 and u <= 1.0:
            qvec = tm.cross(tvec, edge1)
            v = tm.dot(ray_direction, qvec) * inv_det
            if v >= 0.0 and u + v <= 1.0:
                t_hit = tm.dot(edge2, qvec) * inv_det
                if t_hit > t_min and t_hit < t_max:
                    hit = 1
                    t = t_hit
                    b1 = u
                    b2 = v

    return hit, t, b1, b2


@ti.func
def triangle_normal(v0: vec3, v1: vec3, v2: vec3) -> vec3:
    """Geometric normal from the cross product of two edges (unit length).

    Degenerate triangles yield a zero vector.
    """
    n = tm.cross(v1 - v0, v2 - v0)
    len_sq = tm.dot(n, n)
    result = vec3(0.0, 0.0, 0.0)
    if len_sq > 1e-20:
        result = n / ti.sqrt(len_sq)
    return result
