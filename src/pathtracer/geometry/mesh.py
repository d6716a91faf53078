"""Host-side triangle mesh builders and instance transforms.

Every builder returns a ``MeshData`` (positions, triangle indices, per-vertex
normals and uvs as numpy arrays) ready for ``scene.oracle.add_mesh``.

A quad is defined by a corner Q and two edge vectors u and v; it spans the
parallelogram Q, Q+u, Q+u+v, Q+v and faces along normalize(cross(u, v)).
Boxes and spheres face outward.

Example:
    >>> from src.pathtracer.geometry.mesh import box_mesh, make_transform
    >>> mesh = box_mesh((0, 0, 0), (165, 330, 165))
    >>> m = make_transform(translate=(265, 0, 295), rotate_axis=(0, 1, 0), rotate_degrees=15)
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

Vec3Like = Sequence[float]


@dataclass
class MeshData:
    """Indexed triangle mesh in object space.

    Attributes:
        positions: (n, 3) float32 vertex positions.
        indices: (m, 3) int32 vertex indices per triangle.
        normals: (n, 3) float32 unit vertex normals.
        uvs: (n, 2) float32 texture coordinates.
    """

    positions: npt.NDArray[np.float32]
    indices: npt.NDArray[np.int32]
    normals: npt.NDArray[np.float32]
    uvs: npt.NDArray[np.float32]

    @property
    def triangle_count(self) -> int:
        return int(self.indices.shape[0])


def _normalized(v: np.ndarray) -> np.ndarray:
    length = np.linalg.norm(v)
    if length < 1e-12:
        raise ValueError("Degenerate geometry: zero-length normal")
    return v / length


def triangle_mesh(
    points: Sequence[Vec3Like],
    uvs: Sequence[Sequence[float]] | None = None,
) -> MeshData:
    """Single triangle facing along cross(p1 - p0, p2 - p0).

    Raises:
        ValueError: If the triangle is degenerate.
    """
    p = np.asarray(points, dtype=np.float64).reshape(3, 3)
    normal = _normalized(np.cross(p[1] - p[0], p[2] - p[0]))
    uv = np.asarray(uvs if uvs is not None else [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)], dtype=np.float32)
    return MeshData(
        positions=p.astype(np.float32),
        indices=np.array([[0, 1, 2]], dtype=np.int32),
        normals=np.tile(normal, (3, 1)).astype(np.float32),
        uvs=uv.reshape(3, 2),
    )


def quad_mesh(corner: Vec3Like, edge_u: Vec3Like, edge_v: Vec3Like) -> MeshData:
    """Parallelogram as two triangles, uv (0, 0) at the corner.

    Raises:
        ValueError: If the edges are parallel or zero.
    """
    q = np.asarray(corner, dtype=np.float64)
    u = np.asarray(edge_u, dtype=np.float64)
    v = np.asarray(edge_v, dtype=np.float64)
    normal = _normalized(np.cross(u, v))
    positions = np.stack([q, q + u, q + u + v, q + v])
    return MeshData(
        positions=positions.astype(np.float32),
        indices=np.array([[0, 1, 2], [0, 2, 3]], dtype=np.int32),
        normals=np.tile(normal, (4, 1)).astype(np.float32),
        uvs=np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]], dtype=np.float32),
    )


def merge_meshes(meshes: Sequence[MeshData]) -> MeshData:
    """Concatenate meshes into one, re-basing the triangle indices."""
    offsets = np.cumsum([0] + [m.positions.shape[0] for m in meshes[:-1]])
    return MeshData(
        positions=np.concatenate([m.positions for m in meshes]),
        indices=np.concatenate([m.indices + off for m, off in zip(meshes, offsets)]).astype(np.int32),
        normals=np.concatenate([m.normals for m in meshes]),
        uvs=np.concatenate([m.uvs for m in meshes]),
    )


def box_mesh(corner_a: Vec3Like, corner_b: Vec3Like) -> MeshData:
    """Axis-aligned box between two opposite corners, six outward quads.

    Raises:
        ValueError: If the box has zero extent along an axis.
    """
    a = np.minimum(corner_a, corner_b).astype(np.float64)
    b = np.maximum(corner_a, corner_b).astype(np.float64)
    dx = np.array([b[0] - a[0], 0.0, 0.0])
    dy = np.array([0.0, b[1] - a[1], 0.0])
    dz = np.array([0.0, 0.0, b[2] - a[2]])

    faces = [
        quad_mesh((b[0], a[1], a[2]), dy, dz),  # +x
        quad_mesh(a, dz, dy),  # -x
        quad_mesh((a[0], b[1], a[2]), dz, dx),  # +y
        quad_mesh(a, dx, dz),  # -y
        quad_mesh((a[0], a[1], b[2]), dx, dy),  # +z
        quad_mesh(a, dy, dx),  # -z
    ]
    return merge_meshes(faces)


def uv_sphere_mesh(
    center: Vec3Like,
    radius: float,
    rings: int = 16,
    segments: int = 32,
) -> MeshData:
    """Latitude/longitude sphere with smooth outward normals.

    ``u`` runs once around the equator, ``v`` from 0 at the south pole to 1
    at the north pole.

    Raises:
        ValueError: If radius is not positive or the tessellation is too coarse.
    """
    if radius <= 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    if rings < 2 or segments < 3:
        raise ValueError(f"Sphere needs rings >= 2 and segments >= 3, got {rings}, {segments}")

    c = np.asarray(center, dtype=np.float64)
    theta = np.linspace(0.0, math.pi, rings + 1)  # from the north pole
    phi = np.linspace(0.0, 2.0 * math.pi, segments + 1)
    tt, pp = np.meshgrid(theta, phi, indexing="ij")

    normals = np.stack([np.sin(tt) * np.cos(pp), np.cos(tt), -np.sin(tt) * np.sin(pp)], axis=-1)
    positions = c + radius * normals
    uvs = np.stack([pp / (2.0 * math.pi), 1.0 - tt / math.pi], axis=-1)

    indices = []
    stride = segments + 1
    for r in range(rings):
        for s in range(segments):
            i0 = r * stride + s
            i1 = i0 + stride
            if r != 0:
                indices.append((i0, i1, i0 + 1))
            if r != rings - 1:
                indices.append((i0 + 1, i1, i1 + 1))

    return MeshData(
        positions=positions.reshape(-1, 3).astype(np.float32),
        indices=np.asarray(indices, dtype=np.int32),
        normals=normals.reshape(-1, 3).astype(np.float32),
        uvs=uvs.reshape(-1, 2).astype(np.float32),
    )


def make_transform(
    translate: Vec3Like | None = None,
    rotate_axis: Vec3Like | None = None,
    rotate_degrees: float = 0.0,
    scale: Vec3Like | None = None,
) -> npt.NDArray[np.float64]:
    """Object-to-world matrix ``T @ R @ S`` (scale first, translate last).

    Raises:
        ValueError: If the rotation axis is zero.
    """
    t = np.eye(4)
    if translate is not None:
        t[:3, 3] = translate

    r = np.eye(4)
    if rotate_axis is not None and rotate_degrees != 0.0:
        k = _normalized(np.asarray(rotate_axis, dtype=np.float64))
        angle = math.radians(rotate_degrees)
        kx = np.array([[0.0, -k[2], k[1]], [k[2], 0.0, -k[0]], [-k[1], k[0], 0.0]])
        r[:3, :3] = np.eye(3) + math.sin(angle) * kx + (1.0 - math.cos(angle)) * (kx @ kx)

    s = np.eye(4)
    if scale is not None:
        s[0, 0], s[1, 1], s[2, 2] = scale

    return t @ r @ s
