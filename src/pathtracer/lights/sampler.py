"""Device-side light sampling from the alias table.

``sample_light`` picks a light triangle proportionally to its area and a
uniform point on it, so the resulting point is uniform over the total light
area. ``light_pdf_value`` gives the matching density with respect to solid
angle for a direction leaving a surface point:

    pdf = sum over light triangles hit by the ray of  d^2 / (cos(theta_light) * total_area)

where d is the distance to the triangle and theta_light the angle between the
triangle normal and the reversed ray. Triangles seen from behind contribute 0.

Callers must check ``light_triangle_count[None] > 0`` before sampling.
"""

import taichi as ti
import taichi.math as tm

from src.pathtracer.core.rng import random_triangle_point, rng_next_float
from src.pathtracer.geometry.triangle import hit_triangle, triangle_normal
from src.pathtracer.lights.alias_table import (
    light_aliases,
    light_instance_ids,
    light_primitive_ids,
    light_probabilities,
    light_total_area,
    light_triangle_count,
)
from src.pathtracer.scene.oracle import T_MAX, T_MIN, triangle_world_vertices

vec3 = tm.vec3


@ti.func
def sample_alias_row(state: ti.u32):
    """Draw a row of the alias table.

    Returns:
        A tuple (new_state, row).
    """
    n = light_triangle_count[None]
    s, u1 = rng_next_float(state)
    s, u2 = rng_next_float(s)
    i = tm.min(ti.cast(ti.floor(u1 * n), ti.i32), n - 1)
    row = i
    if u2 >= light_probabilities[i]:
        row = light_aliases[i]
    return s, row


@ti.func
def sample_light(state: ti.u32):
    """Sample a point uniformly over the total light area.

    Returns:
        A tuple (new_state, position, normal) in world space. The normal is
        the unit geometric normal of the chosen triangle.
    """
    s, row = sample_alias_row(state)
    v0, v1, v2 = triangle_world_vertices(light_instance_ids[row], light_primitive_ids[row])
    s, position = random_triangle_point(s, v0, v1, v2)
    return s, position, triangle_normal(v0, v1, v2)


@ti.func
def light_pdf_value(origin: vec3, direction: vec3) -> ti.f32:
    """Solid-angle density of ``sample_light`` for the given direction.

    Args:
        origin: Surface point the direction leaves from.
        direction: Outgoing direction (any non-zero length).

    Returns:
        The density, or 0 when there are no lights or no light is hit.
    """
    pdf = 0.0
    total_area = light_total_area[None]
    if light_triangle_count[None] > 0 and total_area > 0.0:
        unit_direction = tm.normalize(direction)
        for k in range(light_triangle_count[None]):
            v0, v1, v2 = triangle_world_vertices(light_instance_ids[k], light_primitive_ids[k])
            hit, t, _, _ = hit_triangle(origin, unit_direction, v0, v1, v2, T_MIN, T_MAX)
            if hit == 1:
                cosine = -tm.dot(unit_direction, triangle_normal(v0, v1, v2))
                if cosine > 0.0:
                    pdf += t * t / (cosine * total_area)
    return pdf
