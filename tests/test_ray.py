"""Unit tests for the ray module.

Tests cover:
- safe_normalize and near_zero
- reflect, refract and Schlick reflectance
- Orthonormal basis construction
- Instance transform helpers
"""

import math

import taichi as ti


class TestVectorUtilities:
    """Tests for vector utility functions."""

    def test_safe_normalize(self):
        """Test normalization of a regular vector."""
        from src.pathtracer.core.ray import safe_normalize

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = safe_normalize(ti.math.vec3(3.0, 0.0, 4.0), ti.math.vec3(0.0, 1.0, 0.0))

        test_kernel()
        r = result[None]
        assert abs(r[0] - 0.6) < 1e-6
        assert abs(r[2] - 0.8) < 1e-6

    def test_safe_normalize_zero_returns_fallback(self):
        """Test the fallback is used for a zero vector."""
        from src.pathtracer.core.ray import safe_normalize

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = safe_normalize(ti.math.vec3(0.0, 0.0, 0.0), ti.math.vec3(0.0, 0.0, 1.0))

        test_kernel()
        r = result[None]
        assert r[0] == 0.0 and r[1] == 0.0 and r[2] == 1.0

    def test_reflect(self):
        """Test reflection about a normal."""
        from src.pathtracer.core.ray import reflect

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(1.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            result[None] = reflect(incident, normal)

        test_kernel()
        r = result[None]
        assert abs(r[0] - 1.0) < 1e-6
        assert abs(r[1] - 1.0) < 1e-6
        assert abs(r[2]) < 1e-6

    def test_refract_normal_incidence(self):
        """Test refraction at normal incidence passes straight through."""
        from src.pathtracer.core.ray import refract

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(0.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            result[None] = refract(incident, normal, 1.0 / 1.5)

        test_kernel()
        r = result[None]
        assert abs(r[0]) < 1e-6
        assert abs(r[1] + 1.0) < 1e-6

    def test_refract_obeys_snell(self):
        """Test n1 sin(theta1) = n2 sin(theta2)."""
        from src.pathtracer.core.ray import refract

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            inv_sqrt2 = 1.0 / ti.sqrt(2.0)
            incident = ti.math.vec3(inv_sqrt2, -inv_sqrt2, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            result[None] = refract(incident, normal, 1.0 / 1.5)

        test_kernel()
        r = result[None]
        sin_t = abs(r[0]) / math.sqrt(r[0] ** 2 + r[1] ** 2 + r[2] ** 2)
        assert abs(1.0 * math.sin(math.pi / 4) - 1.5 * sin_t) < 1e-5

    def test_schlick_reflectance(self):
        """Test Schlick at normal and grazing incidence."""
        from src.pathtracer.core.ray import schlick_reflectance

        normal = ti.field(dtype=ti.f32, shape=())
        grazing = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            normal[None] = schlick_reflectance(1.0, 1.0 / 1.5)
            grazing[None] = schlick_reflectance(0.0, 1.0 / 1.5)

        test_kernel()
        assert abs(normal[None] - 0.04) < 1e-5
        assert abs(grazing[None] - 1.0) < 1e-5

    def test_near_zero(self):
        """Test near-zero detection."""
        from src.pathtracer.core.ray import near_zero

        small = ti.field(dtype=ti.i32, shape=())
        large = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            small[None] = near_zero(ti.math.vec3(1e-9, -1e-9, 0.0))
            large[None] = near_zero(ti.math.vec3(1e-9, 1e-3, 0.0))

        test_kernel()
        assert small[None] == 1
        assert large[None] == 0

    def test_build_onb_orthogonality(self):
        """Test the basis is orthonormal for several normals."""
        from src.pathtracer.core.ray import build_onb_from_normal

        normals = [(0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (0.0, -1.0, 0.0), (0.577, 0.577, 0.577)]
        dots = ti.Vector.field(3, dtype=ti.f32, shape=len(normals))
        lengths = ti.Vector.field(3, dtype=ti.f32, shape=len(normals))
        inputs = ti.Vector.field(3, dtype=ti.f32, shape=len(normals))
        for i, n in enumerate(normals):
            inputs[i] = n

        @ti.kernel
        def test_kernel():
            for i in range(len(normals)):
                n = ti.math.normalize(inputs[i])
                t, b, nn = build_onb_from_normal(n)
                dots[i] = ti.math.vec3(ti.math.dot(t, b), ti.math.dot(t, nn), ti.math.dot(b, nn))
                lengths[i] = ti.math.vec3(ti.math.length(t), ti.math.length(b), ti.math.length(nn))

        test_kernel()
        for i in range(len(normals)):
            for k in range(3):
                assert abs(dots[i][k]) < 1e-5
                assert abs(lengths[i][k] - 1.0) < 1e-5


class TestTransforms:
    """Tests for transform_point and transform_vector."""

    def test_translation_moves_points_not_vectors(self):
        """Test the translation column only applies to points."""
        from src.pathtracer.core.ray import transform_point, transform_vector

        point = ti.Vector.field(3, dtype=ti.f32, shape=())
        vector = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            m = ti.Matrix.identity(ti.f32, 4)
            m[0, 3] = 5.0
            point[None] = transform_point(m, ti.math.vec3(1.0, 1.0, 1.0))
            vector[None] = transform_vector(m, ti.math.vec3(1.0, 1.0, 1.0))

        test_kernel()
        assert abs(point[None][0] - 6.0) < 1e-6
        assert abs(vector[None][0] - 1.0) < 1e-6
