"""Light source alias table.

Area lights are sampled per triangle, proportionally to world-space triangle
area, with Vose's alias method (https://en.wikipedia.org/wiki/Alias_method).
Each table row stores:

    probability   chance of keeping the row when it is drawn
    alias         row used otherwise
    instance_id   instance the triangle belongs to
    primitive_id  triangle index within the instance's mesh

The table is built on the host with numpy and uploaded into Taichi fields.
``light_triangle_count`` of 0 means there are no lights and light sampling must
be skipped.

Example:
    >>> from src.pathtracer.lights.alias_table import build_light_source_alias_table
    >>> build_light_source_alias_table()  # after the scene's instances are added
    >>> get_light_triangle_count()
    2
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import taichi as ti

from src.pathtracer.materials.records import MaterialType
from src.pathtracer.scene import oracle

logger = logging.getLogger(__name__)

MAX_LIGHT_TRIANGLES = 1 << 16

# Triangles with a world-space area at or below this are discarded
MIN_LIGHT_TRIANGLE_AREA = 1e-8

light_probabilities = ti.field(dtype=ti.f32, shape=MAX_LIGHT_TRIANGLES)
light_aliases = ti.field(dtype=ti.i32, shape=MAX_LIGHT_TRIANGLES)
light_instance_ids = ti.field(dtype=ti.i32, shape=MAX_LIGHT_TRIANGLES)
light_primitive_ids = ti.field(dtype=ti.i32, shape=MAX_LIGHT_TRIANGLES)
light_triangle_count = ti.field(dtype=ti.i32, shape=())
light_total_area = ti.field(dtype=ti.f32, shape=())


@dataclass(frozen=True)
class LightTriangle:
    """A light-emitting triangle and its world-space area."""

    instance_id: int
    primitive_id: int
    area: float


def build_alias_table(weights: Sequence[float]) -> tuple[np.ndarray, np.ndarray, float]:
    """Build an alias table with Vose's method.

    Args:
        weights: Non-negative weights, at least one of them positive.

    Returns:
        A tuple (probabilities, aliases, total). Drawing row ``i`` uniformly,
        keeping it with probability ``probabilities[i]`` and otherwise taking
        ``aliases[i]`` selects row ``k`` with probability ``weights[k] / total``.

    Raises:
        ValueError: If weights is empty, has negative entries or sums to zero.
    """
    w = np.asarray(weights, dtype=np.float64)
    n = w.shape[0]
    if n == 0:
        raise ValueError("Cannot build an alias table from no weights")
    if np.any(w < 0.0) or not np.all(np.isfinite(w)):
        raise ValueError("Alias table weights must be finite and non-negative")
    total = float(w.sum())
    if total <= 0.0:
        raise ValueError("Alias table weights sum to zero")

    scaled = w * n / total
    small = [i for i in range(n) if scaled[i] < 1.0]
    large = [i for i in range(n) if scaled[i] >= 1.0]

    probabilities = np.ones(n, dtype=np.float32)
    aliases = np.arange(n, dtype=np.int32)

    while small and large:
        s = small.pop()
        g = large.pop()
        probabilities[s] = scaled[s]
        aliases[s] = g
        scaled[g] -= 1.0 - scaled[s]
        if scaled[g] < 1.0:
            small.append(g)
        else:
            large.append(g)

    # Leftovers are 1 up to rounding error
    for i in small + large:
        probabilities[i] = 1.0
        aliases[i] = i

    return probabilities, aliases, total


def clear_light_alias_table() -> None:
    """Remove all light triangles, disabling light sampling."""
    light_triangle_count[None] = 0
    light_total_area[None] = 0.0


def upload_light_alias_table(triangles: Sequence[LightTriangle]) -> None:
    """Build the alias table for the given triangles and upload it.

    Triangles with area at or below MIN_LIGHT_TRIANGLE_AREA are dropped. An
    empty (or fully degenerate) list clears the table.

    Raises:
        RuntimeError: If there are more triangles than the table can hold.
    """
    kept = [tri for tri in triangles if tri.area > MIN_LIGHT_TRIANGLE_AREA]
    if not kept:
        clear_light_alias_table()
        logger.debug("No light triangles with non-zero area, light sampling disabled")
        return
    if len(kept) > MAX_LIGHT_TRIANGLES:
        raise RuntimeError(f"Maximum number of light triangles ({MAX_LIGHT_TRIANGLES}) exceeded")

    probabilities, aliases, total = build_alias_table([tri.area for tri in kept])
    n = len(kept)

    padded_prob = np.zeros(MAX_LIGHT_TRIANGLES, dtype=np.float32)
    padded_alias = np.zeros(MAX_LIGHT_TRIANGLES, dtype=np.int32)
    padded_instance = np.zeros(MAX_LIGHT_TRIANGLES, dtype=np.int32)
    padded_primitive = np.zeros(MAX_LIGHT_TRIANGLES, dtype=np.int32)
    padded_prob[:n] = probabilities
    padded_alias[:n] = aliases
    padded_instance[:n] = [tri.instance_id for tri in kept]
    padded_primitive[:n] = [tri.primitive_id for tri in kept]

    light_probabilities.from_numpy(padded_prob)
    light_aliases.from_numpy(padded_alias)
    light_instance_ids.from_numpy(padded_instance)
    light_primitive_ids.from_numpy(padded_primitive)
    light_triangle_count[None] = n
    light_total_area[None] = total

    logger.debug("Light alias table: %d triangles, total area %.6g", n, total)


def collect_light_triangles() -> list[LightTriangle]:
    """World-space areas of every triangle on a DIFFUSE_LIGHT instance."""
    n_instances = oracle.get_instance_count()
    if n_instances == 0:
        return []

    material_types = oracle.instance_material_type.to_numpy()[:n_instances]
    instance_meshes = oracle.instance_mesh.to_numpy()[:n_instances]
    object_to_world = oracle.instance_object_to_world.to_numpy()[:n_instances]
    positions = oracle.vertex_positions.to_numpy()
    indices = oracle.triangle_indices.to_numpy()
    vertex_offsets = oracle.mesh_vertex_offset.to_numpy()
    triangle_offsets = oracle.mesh_triangle_offset.to_numpy()
    triangle_counts = oracle.mesh_triangle_count.to_numpy()

    triangles = []
    for instance_id in range(n_instances):
        if material_types[instance_id] != MaterialType.DIFFUSE_LIGHT:
            continue
        mesh = instance_meshes[instance_id]
        start = triangle_offsets[mesh]
        tris = indices[start:start + triangle_counts[mesh]] + vertex_offsets[mesh]

        m = object_to_world[instance_id].astype(np.float64)
        p = positions[tris].astype(np.float64)  # (t, 3, 3)
        world = p @ m[:3, :3].T + m[:3, 3]
        cross = np.cross(world[:, 1] - world[:, 0], world[:, 2] - world[:, 0])
        areas = 0.5 * np.linalg.norm(cross, axis=1)

        triangles.extend(
            LightTriangle(instance_id=instance_id, primitive_id=k, area=float(a))
            for k, a in enumerate(areas)
        )
    return triangles


def build_light_source_alias_table() -> int:
    """Rebuild the light table from the current instances.

    Returns:
        The number of light triangles in the table.
    """
    upload_light_alias_table(collect_light_triangles())
    return get_light_triangle_count()


def get_light_triangle_count() -> int:
    """Number of rows in the light alias table."""
    return int(light_triangle_count[None])


def get_light_total_area() -> float:
    """Summed world-space area of all light triangles."""
    return float(light_total_area[None])
