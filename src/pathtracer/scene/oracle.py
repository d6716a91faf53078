"""Scene-level geometry queries over instanced triangle meshes.

This module is the geometry oracle consumed by the integrator. It stores
indexed triangle meshes and mesh instances in Taichi fields and answers two
queries:

- ``trace``: closest hit, reported as instance id, primitive id, barycentric
  coordinates and the instance transforms
- ``trace_occluded``: any hit, for shadow rays

Traversal is a brute-force loop over instances and triangles. Each instance
carries an object-to-world and a world-to-object transform; rays are moved into
object space with the world-to-object transform without renormalizing the
direction, so ``t`` is the same in both spaces.

``make_hit_record`` turns a raw hit into a HitRecord by interpolating the
per-vertex attributes of the hit triangle.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.pathtracer.scene.oracle import add_mesh, add_instance, trace
    >>> mesh_id = add_mesh(positions, indices)
    >>> add_instance(mesh_id, material_type=1, material_index=0)
    >>> # Inside a Taichi kernel:
    >>> # oh = trace(origin, direction, T_MIN, T_MAX)
    >>> # if oh.hit == 1:
    >>> #     rec = make_hit_record(oh)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.pathtracer.core.ray import (
    safe_normalize,
    transform_point,
    transform_vector,
)
from src.pathtracer.geometry.triangle import hit_triangle, triangle_normal

logger = logging.getLogger(__name__)

vec2 = tm.vec2
vec3 = tm.vec3

# Intersection interval used by the integrator for every bounce
T_MIN = 0.001
T_MAX = 10000.0

# Capacities (preallocated to avoid kernel recompilation)
MAX_MESHES = 256
MAX_INSTANCES = 512
MAX_VERTICES = 1 << 18
MAX_TRIANGLES = 1 << 18


@ti.dataclass
class OracleHit:
    """Raw result of a closest-hit query.

    Attributes:
        hit: 1 if the ray intersected the scene, 0 if it missed.
        t: Ray parameter of the closest hit.
        instance_id: Index of the hit instance (-1 on miss).
        primitive_id: Triangle index within the instance's mesh (-1 on miss).
        barycentrics: (b1, b2); the weight of the first vertex is 1 - b1 - b2.
        object_to_world: The instance's object-to-world transform.
        world_to_object: The instance's world-to-object transform.
        ray_direction: The incoming world-space ray direction.
    """

    hit: ti.i32
    t: ti.f32
    instance_id: ti.i32
    primitive_id: ti.i32
    barycentrics: vec2
    object_to_world: tm.mat4
    world_to_object: tm.mat4
    ray_direction: vec3


@ti.dataclass
class HitRecord:
    """Shading information at a ray-surface intersection.

    Attributes:
        position: World-space hit point.
        local_position: Object-space (pre-transform) hit point.
        u: Interpolated texture coordinate u.
        v: Interpolated texture coordinate v.
        normal: Unit world-space normal, always facing against the ray.
        front_face: 1 if the un-flipped normal already faced against the ray.
        t: Ray parameter of the hit.
    """

    position: vec3
    local_position: vec3
    u: ti.f32
    v: ti.f32
    normal: vec3
    front_face: ti.i32
    t: ti.f32


# Vertex storage: Structure of Arrays layout
vertex_positions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_VERTICES)
vertex_normals = ti.Vector.field(3, dtype=ti.f32, shape=MAX_VERTICES)
vertex_uvs = ti.Vector.field(2, dtype=ti.f32, shape=MAX_VERTICES)
triangle_indices = ti.Vector.field(3, dtype=ti.i32, shape=MAX_TRIANGLES)
num_vertices = ti.field(dtype=ti.i32, shape=())
num_triangles = ti.field(dtype=ti.i32, shape=())

# Mesh ranges into the vertex and triangle arrays
mesh_vertex_offset = ti.field(dtype=ti.i32, shape=MAX_MESHES)
mesh_triangle_offset = ti.field(dtype=ti.i32, shape=MAX_MESHES)
mesh_triangle_count = ti.field(dtype=ti.i32, shape=MAX_MESHES)
num_meshes = ti.field(dtype=ti.i32, shape=())

# Instances
instance_mesh = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_object_to_world = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_INSTANCES)
instance_world_to_object = ti.Matrix.field(4, 4, dtype=ti.f32, shape=MAX_INSTANCES)
instance_material_type = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
instance_material_index = ti.field(dtype=ti.i32, shape=MAX_INSTANCES)
num_instances = ti.field(dtype=ti.i32, shape=())


def clear_geometry() -> None:
    """Remove all meshes and instances.

    Field contents are left in place and overwritten by later additions.
    """
    num_vertices[None] = 0
    num_triangles[None] = 0
    num_meshes[None] = 0
    num_instances[None] = 0


@ti.kernel
def _upload_mesh(
    vertex_offset: ti.i32,
    triangle_offset: ti.i32,
    positions: ti.types.ndarray(),
    normals: ti.types.ndarray(),
    uvs: ti.types.ndarray(),
    indices: ti.types.ndarray(),
):
    for k in range(positions.shape[0]):
        vertex_positions[vertex_offset + k] = vec3(positions[k, 0], positions[k, 1], positions[k, 2])
        vertex_normals[vertex_offset + k] = vec3(normals[k, 0], normals[k, 1], normals[k, 2])
        vertex_uvs[vertex_offset + k] = vec2(uvs[k, 0], uvs[k, 1])
    for k in range(indices.shape[0]):
        triangle_indices[triangle_offset + k] = ti.Vector(
            [indices[k, 0], indices[k, 1], indices[k, 2]], dt=ti.i32
        )


def add_mesh(
    positions: npt.ArrayLike,
    indices: npt.ArrayLike,
    normals: npt.ArrayLike | None = None,
    uvs: npt.ArrayLike | None = None,
) -> int:
    """Add an indexed triangle mesh.

    Args:
        positions: Object-space vertex positions, shape (n, 3).
        indices: Vertex indices per triangle, shape (m, 3), relative to this mesh.
        normals: Optional per-vertex normals, shape (n, 3). Missing or zero
            normals fall back to the geometric normal at shading time.
        uvs: Optional per-vertex texture coordinates, shape (n, 2).

    Returns:
        The mesh id.

    Raises:
        ValueError: If array shapes are inconsistent or an index is out of range.
        RuntimeError: If a capacity limit is exceeded.
    """
    pos = np.ascontiguousarray(positions, dtype=np.float32).reshape(-1, 3)
    idx = np.ascontiguousarray(indices, dtype=np.int32).reshape(-1, 3)
    n_vertices = pos.shape[0]

    if normals is None:
        nrm = np.zeros_like(pos)
    else:
        nrm = np.ascontiguousarray(normals, dtype=np.float32).reshape(-1, 3)
    if uvs is None:
        uv = np.zeros((n_vertices, 2), dtype=np.float32)
    else:
        uv = np.ascontiguousarray(uvs, dtype=np.float32).reshape(-1, 2)

    if nrm.shape[0] != n_vertices or uv.shape[0] != n_vertices:
        raise ValueError(
            f"Vertex attribute counts differ: {n_vertices} positions, "
            f"{nrm.shape[0]} normals, {uv.shape[0]} uvs"
        )
    if idx.shape[0] == 0:
        raise ValueError("Mesh has no triangles")
    if idx.min() < 0 or idx.max() >= n_vertices:
        raise ValueError(f"Triangle index out of range for mesh with {n_vertices} vertices")

    mesh_id = num_meshes[None]
    if mesh_id >= MAX_MESHES:
        raise RuntimeError(f"Maximum number of meshes ({MAX_MESHES}) exceeded")
    vertex_offset = num_vertices[None]
    triangle_offset = num_triangles[None]
    if vertex_offset + n_vertices > MAX_VERTICES:
        raise RuntimeError(f"Maximum number of vertices ({MAX_VERTICES}) exceeded")
    if triangle_offset + idx.shape[0] > MAX_TRIANGLES:
        raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")

    _upload_mesh(vertex_offset, triangle_offset, pos, nrm, uv, idx)

    mesh_vertex_offset[mesh_id] = vertex_offset
    mesh_triangle_offset[mesh_id] = triangle_offset
    mesh_triangle_count[mesh_id] = idx.shape[0]
    num_vertices[None] = vertex_offset + n_vertices
    num_triangles[None] = triangle_offset + idx.shape[0]
    num_meshes[None] = mesh_id + 1

    logger.debug("Added mesh %d: %d vertices, %d triangles", mesh_id, n_vertices, idx.shape[0])
    return mesh_id


def add_instance(
    mesh_id: int,
    material_type: int,
    material_index: int,
    object_to_world: npt.ArrayLike | None = None,
) -> int:
    """Place a mesh in the scene.

    Args:
        mesh_id: The mesh to instance.
        material_type: Material kind code (see ``materials.MaterialType``).
        material_index: Index into the table for that material kind.
        object_to_world: Optional 4x4 affine transform. Defaults to identity.

    Returns:
        The instance id.

    Raises:
        ValueError: If the mesh id is invalid or the transform is singular.
        RuntimeError: If the maximum number of instances is exceeded.
    """
    if mesh_id < 0 or mesh_id >= num_meshes[None]:
        raise ValueError(f"Invalid mesh_id: {mesh_id}")

    if object_to_world is None:
        o2w = np.eye(4, dtype=np.float64)
    else:
        o2w = np.asarray(object_to_world, dtype=np.float64).reshape(4, 4)
    try:
        w2o = np.linalg.inv(o2w)
    except np.linalg.LinAlgError as e:
        raise ValueError("Instance transform is not invertible") from e

    instance_id = num_instances[None]
    if instance_id >= MAX_INSTANCES:
        raise RuntimeError(f"Maximum number of instances ({MAX_INSTANCES}) exceeded")

    instance_mesh[instance_id] = mesh_id
    instance_object_to_world[instance_id] = o2w.astype(np.float32).tolist()
    instance_world_to_object[instance_id] = w2o.astype(np.float32).tolist()
    instance_material_type[instance_id] = int(material_type)
    instance_material_index[instance_id] = int(material_index)
    num_instances[None] = instance_id + 1
    return instance_id


def get_mesh_count() -> int:
    """Get the number of meshes."""
    return int(num_meshes[None])


def get_instance_count() -> int:
    """Get the number of instances."""
    return int(num_instances[None])


# =============================================================================
# Device-side queries
# =============================================================================


@ti.func
def _triangle_vertex_ids(mesh: ti.i32, primitive_id: ti.i32):
    idx = triangle_indices[mesh_triangle_offset[mesh] + primitive_id]
    base = mesh_vertex_offset[mesh]
    return base + idx[0], base + idx[1], base + idx[2]


@ti.func
def trace(ray_origin: vec3, ray_direction: vec3, t_min: ti.f32, t_max: ti.f32) -> OracleHit:
    """Find the closest intersection along a ray.

    Args:
        ray_origin: World-space ray origin.
        ray_direction: World-space ray direction.
        t_min: Minimum accepted ray parameter.
        t_max: Maximum accepted ray parameter.

    Returns:
        An OracleHit; ``hit == 0`` means the ray missed.
    """
    closest_t = t_max
    hit = 0
    hit_instance = -1
    hit_primitive = -1
    bary = vec2(0.0, 0.0)

    for i in range(num_instances[None]):
        w2o = instance_world_to_object[i]
        o = transform_point(w2o, ray_origin)
        d = transform_vector(w2o, ray_direction)
        mesh = instance_mesh[i]
        for k in range(mesh_triangle_count[mesh]):
            i0, i1, i2 = _triangle_vertex_ids(mesh, k)
            h, t, b1, b2 = hit_triangle(
                o, d, vertex_positions[i0], vertex_positions[i1], vertex_positions[i2],
                t_min, closest_t,
            )
            if h == 1:
                hit = 1
                closest_t = t
                hit_instance = i
                hit_primitive = k
                bary = vec2(b1, b2)

    identity = ti.Matrix.identity(ti.f32, 4)
    result = OracleHit(
        hit=hit,
        t=closest_t,
        instance_id=hit_instance,
        primitive_id=hit_primitive,
        barycentrics=bary,
        object_to_world=identity,
        world_to_object=identity,
        ray_direction=ray_direction,
    )
    if hit == 1:
        result.object_to_world = instance_object_to_world[hit_instance]
        result.world_to_object = instance_world_to_object[hit_instance]
    return result


@ti.func
def trace_occluded(ray_origin: vec3, ray_direction: vec3, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Test whether anything blocks the ray segment (shadow query).

    Stops at the first intersection found and skips hit processing.

    Returns:
        1 if occluded, 0 otherwise.
    """
    occluded = 0
    for i in range(num_instances[None]):
        if occluded == 0:
            w2o = instance_world_to_object[i]
            o = transform_point(w2o, ray_origin)
            d = transform_vector(w2o, ray_direction)
            mesh = instance_mesh[i]
            for k in range(mesh_triangle_count[mesh]):
                if occluded == 0:
                    i0, i1, i2 = _triangle_vertex_ids(mesh, k)
                    h, _, _, _ = hit_triangle(
                        o, d, vertex_positions[i0], vertex_positions[i1], vertex_positions[i2],
                        t_min, t_max,
                    )
                    if h == 1:
                        occluded = 1
    return occluded


@ti.func
def make_hit_record(oh: OracleHit) -> HitRecord:
    """Interpolate vertex attributes of the hit triangle into a HitRecord.

    ``front_face`` is decided by the world-space geometric normal, the cross
    product of the transformed triangle edges, so it agrees with the light
    sampler for every transform, mirroring ones included. The shading normal
    is the interpolated vertex normal moved by the inverse transpose of the
    instance transform, turned to the geometric side; when it is degenerate
    the geometric normal is used instead. The returned normal faces against
    the incoming ray.

    Args:
        oh: A hit produced by ``trace`` with ``oh.hit == 1``.

    Returns:
        The shading record for the hit.
    """
    mesh = instance_mesh[oh.instance_id]
    i0, i1, i2 = _triangle_vertex_ids(mesh, oh.primitive_id)
    b1 = oh.barycentrics.x
    b2 = oh.barycentrics.y
    b0 = 1.0 - b1 - b2

    p0 = vertex_positions[i0]
    p1 = vertex_positions[i1]
    p2 = vertex_positions[i2]
    local_position = b0 * p0 + b1 * p1 + b2 * p2

    geometric = triangle_normal(p0, p1, p2)
    interpolated = b0 * vertex_normals[i0] + b1 * vertex_normals[i1] + b2 * vertex_normals[i2]
    local_normal = safe_normalize(interpolated, geometric)

    uv = b0 * vertex_uvs[i0] + b1 * vertex_uvs[i1] + b2 * vertex_uvs[i2]

    position = transform_point(oh.object_to_world, local_position)
    world_geometric = triangle_normal(
        transform_point(oh.object_to_world, p0),
        transform_point(oh.object_to_world, p1),
        transform_point(oh.object_to_world, p2),
    )
    world_normal = safe_normalize(
        transform_vector(oh.world_to_object.transpose(), local_normal),
        world_geometric,
    )
    if tm.dot(world_normal, world_geometric) < 0.0:
        world_normal = -world_normal

    front_face = 0
    normal = -world_normal
    if tm.dot(oh.ray_direction, world_geometric) < 0.0:
        front_face = 1
        normal = world_normal

    return HitRecord(
        position=position,
        local_position=local_position,
        u=uv.x,
        v=uv.y,
        normal=normal,
        front_face=front_face,
        t=oh.t,
    )


@ti.func
def get_instance_material(instance_id: ti.i32):
    """Material (type, index) of an instance; (0, -1) for an invalid id."""
    material_type = 0
    material_index = -1
    if instance_id >= 0 and instance_id < num_instances[None]:
        material_type = instance_material_type[instance_id]
        material_index = instance_material_index[instance_id]
    return material_type, material_index


@ti.func
def triangle_world_vertices(instance_id: ti.i32, primitive_id: ti.i32):
    """World-space vertices of one triangle of an instance."""
    mesh = instance_mesh[instance_id]
    i0, i1, i2 = _triangle_vertex_ids(mesh, primitive_id)
    o2w = instance_object_to_world[instance_id]
    return (
        transform_point(o2w, vertex_positions[i0]),
        transform_point(o2w, vertex_positions[i1]),
        transform_point(o2w, vertex_positions[i2]),
    )
