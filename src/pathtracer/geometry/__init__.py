"""Geometry module for primitive intersection and mesh building.

Components:
    triangle: Moller-Trumbore ray-triangle test and geometric normals
    mesh: Host-side builders for triangles, quads, boxes and uv-spheres

Meshes are stored as indexed triangle lists; see ``scene.oracle`` for the
mesh/instance tables and the scene-level trace queries.
"""

from .mesh import (
    MeshData,
    box_mesh,
    make_transform,
    merge_meshes,
    quad_mesh,
    triangle_mesh,
    uv_sphere_mesh,
)
from .triangle import hit_triangle, triangle_normal

__all__ = [
    "hit_triangle",
    "triangle_normal",
    "MeshData",
    "triangle_mesh",
    "quad_mesh",
    "box_mesh",
    "uv_sphere_mesh",
    "merge_meshes",
    "make_transform",
]
