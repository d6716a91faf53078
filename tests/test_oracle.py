"""Tests for the geometry oracle (meshes, instances, trace queries).

Tests cover:
- Mesh and instance validation
- Closest-hit selection over several instances
- Instance transforms (t, world/object positions, normals)
- HitRecord normal orientation, front_face and uv interpolation
- Occlusion queries
"""

import numpy as np
import pytest
import taichi as ti

QUAD_POSITIONS = np.array([[-1, -1, 0], [1, -1, 0], [1, 1, 0], [-1, 1, 0]], dtype=np.float32)
QUAD_INDICES = np.array([[0, 1, 2], [0, 2, 3]], dtype=np.int32)
QUAD_UVS = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=np.float32)


def _trace(origin, direction):
    """Trace one ray, returning a dict of hit and hit-record fields."""
    from src.pathtracer.scene.oracle import T_MAX, T_MIN, get_instance_material, make_hit_record, trace

    ints = ti.field(dtype=ti.i32, shape=5)
    floats = ti.field(dtype=ti.f32, shape=3)
    vecs = ti.Vector.field(3, dtype=ti.f32, shape=3)

    @ti.kernel
    def test_kernel(ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32):
        oh = trace(ti.math.vec3(ox, oy, oz), ti.math.vec3(dx, dy, dz), T_MIN, T_MAX)
        ints[0] = oh.hit
        ints[1] = oh.instance_id
        ints[2] = oh.primitive_id
        if oh.hit == 1:
            rec = make_hit_record(oh)
            mt, mi = get_instance_material(oh.instance_id)
            ints[3] = rec.front_face
            ints[4] = mt * 1000 + mi
            floats[0] = rec.t
            floats[1] = rec.u
            floats[2] = rec.v
            vecs[0] = rec.position
            vecs[1] = rec.local_position
            vecs[2] = rec.normal

    test_kernel(*origin, *direction)
    i = ints.to_numpy()
    f = floats.to_numpy()
    v = vecs.to_numpy()
    return {
        "hit": int(i[0]),
        "instance_id": int(i[1]),
        "primitive_id": int(i[2]),
        "front_face": int(i[3]),
        "material": int(i[4]),
        "t": float(f[0]),
        "u": float(f[1]),
        "v": float(f[2]),
        "position": v[0],
        "local_position": v[1],
        "normal": v[2],
    }


def _add_quad(z=0.0, material_type=1, material_index=0, normals=True):
    from src.pathtracer.geometry.mesh import make_transform
    from src.pathtracer.scene.oracle import add_instance, add_mesh

    normal_array = np.tile([0.0, 0.0, 1.0], (4, 1)) if normals else None
    mesh_id = add_mesh(QUAD_POSITIONS, QUAD_INDICES, normal_array, QUAD_UVS)
    return add_instance(mesh_id, material_type, material_index, make_transform(translate=(0.0, 0.0, z)))


class TestMeshValidation:
    """Tests for add_mesh / add_instance validation."""

    def test_index_out_of_range(self):
        from src.pathtracer.scene.oracle import add_mesh

        with pytest.raises(ValueError, match="out of range"):
            add_mesh(QUAD_POSITIONS, [[0, 1, 4]])

    def test_empty_mesh(self):
        from src.pathtracer.scene.oracle import add_mesh

        with pytest.raises(ValueError, match="no triangles"):
            add_mesh(QUAD_POSITIONS, np.zeros((0, 3), dtype=np.int32))

    def test_attribute_count_mismatch(self):
        from src.pathtracer.scene.oracle import add_mesh

        with pytest.raises(ValueError, match="differ"):
            add_mesh(QUAD_POSITIONS, QUAD_INDICES, normals=np.zeros((3, 3)))

    def test_invalid_mesh_id(self):
        from src.pathtracer.scene.oracle import add_instance

        with pytest.raises(ValueError, match="mesh_id"):
            add_instance(0, 1, 0)

    def test_singular_transform(self):
        from src.pathtracer.scene.oracle import add_instance, add_mesh

        mesh_id = add_mesh(QUAD_POSITIONS, QUAD_INDICES)
        with pytest.raises(ValueError, match="invertible"):
            add_instance(mesh_id, 1, 0, np.zeros((4, 4)))

    def test_counts(self):
        from src.pathtracer.scene.oracle import clear_geometry, get_instance_count, get_mesh_count

        _add_quad(-1.0)
        _add_quad(-2.0)
        assert get_mesh_count() == 2
        assert get_instance_count() == 2
        clear_geometry()
        assert get_mesh_count() == 0
        assert get_instance_count() == 0


class TestTrace:
    """Tests for closest-hit queries."""

    def test_miss_on_empty_scene(self):
        result = _trace((0.0, 0.0, 1.0), (0.0, 0.0, -1.0))
        assert result["hit"] == 0
        assert result["instance_id"] == -1

    def test_closest_instance_wins(self):
        _add_quad(-3.0, material_index=7)
        _add_quad(-1.0, material_index=8)
        result = _trace((0.2, 0.3, 1.0), (0.0, 0.0, -1.0))
        assert result["hit"] == 1
        assert result["instance_id"] == 1
        assert abs(result["t"] - 2.0) < 1e-5
        assert result["material"] == 1008

    def test_world_and_local_positions(self):
        _add_quad(-4.0)
        result = _trace((0.5, -0.25, 1.0), (0.0, 0.0, -1.0))
        np.testing.assert_allclose(result["position"], [0.5, -0.25, -4.0], atol=1e-5)
        np.testing.assert_allclose(result["local_position"], [0.5, -0.25, 0.0], atol=1e-5)

    def test_uv_interpolation(self):
        _add_quad(0.0)
        result = _trace((0.5, -0.5, 1.0), (0.0, 0.0, -1.0))
        assert abs(result["u"] - 0.75) < 1e-5
        assert abs(result["v"] - 0.25) < 1e-5

    def test_front_face_and_normal_flip(self):
        _add_quad(0.0)
        front = _trace((0.0, 0.1, 1.0), (0.0, 0.0, -1.0))
        back = _trace((0.0, 0.1, -1.0), (0.0, 0.0, 1.0))
        assert front["front_face"] == 1
        np.testing.assert_allclose(front["normal"], [0.0, 0.0, 1.0], atol=1e-5)
        assert back["front_face"] == 0
        np.testing.assert_allclose(back["normal"], [0.0, 0.0, -1.0], atol=1e-5)

    def test_missing_normals_use_geometric_normal(self):
        _add_quad(0.0, normals=False)
        result = _trace((0.0, 0.1, 1.0), (0.0, 0.0, -1.0))
        assert result["front_face"] == 1
        np.testing.assert_allclose(result["normal"], [0.0, 0.0, 1.0], atol=1e-5)

    def test_mirrored_instance_follows_world_winding(self):
        from src.pathtracer.geometry.mesh import make_transform
        from src.pathtracer.scene.oracle import add_instance, add_mesh

        # Vertex normals say +z; after mirroring x the winding faces -z
        mesh_id = add_mesh(QUAD_POSITIONS, QUAD_INDICES, np.tile([0.0, 0.0, 1.0], (4, 1)))
        add_instance(mesh_id, 1, 0, make_transform(scale=(-1.0, 1.0, 1.0)))
        from_above = _trace((0.2, 0.1, 1.0), (0.0, 0.0, -1.0))
        from_below = _trace((0.2, 0.1, -1.0), (0.0, 0.0, 1.0))
        assert from_above["front_face"] == 0
        np.testing.assert_allclose(from_above["normal"], [0.0, 0.0, 1.0], atol=1e-5)
        assert from_below["front_face"] == 1
        np.testing.assert_allclose(from_below["normal"], [0.0, 0.0, -1.0], atol=1e-5)

    def test_vertex_normals_against_winding(self):
        from src.pathtracer.scene.oracle import add_instance, add_mesh

        mesh_id = add_mesh(QUAD_POSITIONS, QUAD_INDICES, np.tile([0.0, 0.0, -1.0], (4, 1)))
        add_instance(mesh_id, 1, 0)
        result = _trace((0.2, 0.1, 1.0), (0.0, 0.0, -1.0))
        assert result["front_face"] == 1
        np.testing.assert_allclose(result["normal"], [0.0, 0.0, 1.0], atol=1e-5)

    def test_rotated_instance_normal(self):
        from src.pathtracer.geometry.mesh import make_transform
        from src.pathtracer.scene.oracle import add_instance, add_mesh

        mesh_id = add_mesh(QUAD_POSITIONS, QUAD_INDICES, np.tile([0.0, 0.0, 1.0], (4, 1)))
        # Rotate +z onto +x and scale non-uniformly in the plane
        m = make_transform(rotate_axis=(0, 1, 0), rotate_degrees=90, scale=(3.0, 0.5, 1.0))
        add_instance(mesh_id, 1, 0, m)
        result = _trace((2.0, 0.1, 0.5), (-1.0, 0.0, 0.0))
        assert result["hit"] == 1
        assert abs(result["t"] - 2.0) < 1e-5
        np.testing.assert_allclose(result["normal"], [1.0, 0.0, 0.0], atol=1e-5)

    def test_t_min_excludes_origin_surface(self):
        _add_quad(0.0)
        result = _trace((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert result["hit"] == 0


class TestOcclusion:
    """Tests for trace_occluded and instance material lookup."""

    def test_occluded(self):
        from src.pathtracer.scene.oracle import T_MIN, trace_occluded

        _add_quad(-1.0)
        result = ti.field(dtype=ti.i32, shape=3)

        @ti.kernel
        def test_kernel():
            o = ti.math.vec3(0.0, 0.0, 1.0)
            d = ti.math.vec3(0.0, 0.0, -1.0)
            result[0] = trace_occluded(o, d, T_MIN, 10.0)
            result[1] = trace_occluded(o, d, T_MIN, 1.5)
            result[2] = trace_occluded(o, -d, T_MIN, 10.0)

        test_kernel()
        assert result.to_numpy().tolist() == [1, 0, 0]

    def test_invalid_instance_material(self):
        from src.pathtracer.scene.oracle import get_instance_material

        result = ti.Vector.field(2, dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            mt, mi = get_instance_material(3)
            result[None] = ti.Vector([mt, mi])

        test_kernel()
        assert result.to_numpy().tolist() == [0, -1]
