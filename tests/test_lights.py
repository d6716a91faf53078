"""Tests for the light alias table and light sampling.

Tests cover:
- Vose alias table construction for uniform, skewed and single weights
- Device-side row sampling frequencies
- Light triangle collection from DIFFUSE_LIGHT instances
- Uniform-area light point sampling
- Solid-angle light pdf, including back faces and misses
"""

import math

import numpy as np
import pytest
import taichi as ti


def _table_distribution(probabilities, aliases):
    """Exact selection probabilities implied by an alias table."""
    n = len(probabilities)
    dist = np.zeros(n)
    for i in range(n):
        dist[i] += probabilities[i] / n
        dist[aliases[i]] += (1.0 - probabilities[i]) / n
    return dist


class TestBuildAliasTable:
    """Tests for the host-side table builder."""

    @pytest.mark.parametrize(
        "weights",
        [
            [1.0],
            [1.0, 1.0, 1.0, 1.0],
            [1.0, 2.0, 3.0, 4.0],
            [1000.0, 1.0, 1.0],
            [0.0, 5.0, 0.0, 1.0],
            list(np.random.default_rng(3).uniform(0.01, 10.0, size=97)),
        ],
    )
    def test_reproduces_weights(self, weights):
        from src.pathtracer.lights.alias_table import build_alias_table

        probabilities, aliases, total = build_alias_table(weights)
        w = np.asarray(weights, dtype=np.float64)
        assert abs(total - w.sum()) < 1e-9 * w.sum()
        assert np.all(probabilities >= 0.0) and np.all(probabilities <= 1.0)
        assert np.all((aliases >= 0) & (aliases < len(weights)))
        np.testing.assert_allclose(_table_distribution(probabilities, aliases), w / w.sum(), atol=1e-6)

    def test_single_weight(self):
        from src.pathtracer.lights.alias_table import build_alias_table

        probabilities, aliases, total = build_alias_table([2.5])
        assert probabilities.tolist() == [1.0]
        assert aliases.tolist() == [0]
        assert total == 2.5

    @pytest.mark.parametrize("weights", [[], [0.0, 0.0], [1.0, -1.0], [float("inf")]])
    def test_invalid_weights(self, weights):
        from src.pathtracer.lights.alias_table import build_alias_table

        with pytest.raises(ValueError):
            build_alias_table(weights)


class TestDeviceSampling:
    """Tests for sampling the uploaded table on the device."""

    def test_row_frequencies(self):
        from src.pathtracer.lights.alias_table import LightTriangle, upload_light_alias_table
        from src.pathtracer.lights.sampler import sample_alias_row

        areas = [1.0, 3.0, 0.5, 0.5]
        upload_light_alias_table([LightTriangle(0, k, a) for k, a in enumerate(areas)])

        n = 40000
        rows = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                s = ti.cast(i * 7919 + 11, ti.u32)
                s, row = sample_alias_row(s)
                rows[i] = row

        test_kernel()
        counts = np.bincount(rows.to_numpy(), minlength=4) / n
        np.testing.assert_allclose(counts, np.array(areas) / sum(areas), atol=0.01)

    def test_degenerate_triangles_dropped(self):
        from src.pathtracer.lights.alias_table import (
            LightTriangle,
            get_light_total_area,
            get_light_triangle_count,
            upload_light_alias_table,
        )

        upload_light_alias_table([LightTriangle(0, 0, 0.0), LightTriangle(0, 1, 2.0)])
        assert get_light_triangle_count() == 1
        assert abs(get_light_total_area() - 2.0) < 1e-6

    def test_empty_upload_clears(self):
        from src.pathtracer.lights.alias_table import (
            LightTriangle,
            get_light_triangle_count,
            upload_light_alias_table,
        )

        upload_light_alias_table([LightTriangle(0, 0, 1.0)])
        upload_light_alias_table([])
        assert get_light_triangle_count() == 0


def _light_scene(edge=2.0, height=1.0):
    """A downward-facing light square of side ``edge`` centered above the origin."""
    from src.pathtracer.geometry.mesh import quad_mesh
    from src.pathtracer.lights.alias_table import build_light_source_alias_table
    from src.pathtracer.materials import MaterialType
    from src.pathtracer.scene.oracle import add_instance, add_mesh

    half = edge / 2.0
    light = quad_mesh((-half, height, -half), (edge, 0.0, 0.0), (0.0, 0.0, edge))
    mesh_id = add_mesh(light.positions, light.indices, light.normals, light.uvs)
    add_instance(mesh_id, MaterialType.DIFFUSE_LIGHT, 0)

    floor = quad_mesh((-5.0, 0.0, -5.0), (0.0, 0.0, 10.0), (10.0, 0.0, 0.0))
    floor_id = add_mesh(floor.positions, floor.indices, floor.normals, floor.uvs)
    add_instance(floor_id, MaterialType.LAMBERTIAN, 0)
    return build_light_source_alias_table()


class TestLightCollection:
    """Tests for building the table from scene instances."""

    def test_only_diffuse_light_instances(self):
        from src.pathtracer.lights.alias_table import get_light_total_area

        count = _light_scene(edge=2.0)
        assert count == 2
        assert abs(get_light_total_area() - 4.0) < 1e-5

    def test_area_uses_instance_transform(self):
        from src.pathtracer.geometry.mesh import make_transform, quad_mesh
        from src.pathtracer.lights.alias_table import build_light_source_alias_table, get_light_total_area
        from src.pathtracer.materials import MaterialType
        from src.pathtracer.scene.oracle import add_instance, add_mesh

        light = quad_mesh((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0))
        mesh_id = add_mesh(light.positions, light.indices, light.normals, light.uvs)
        add_instance(mesh_id, MaterialType.DIFFUSE_LIGHT, 0, make_transform(scale=(2.0, 1.0, 3.0)))
        assert build_light_source_alias_table() == 2
        assert abs(get_light_total_area() - 6.0) < 1e-5

    def test_no_lights(self):
        from src.pathtracer.lights.alias_table import build_light_source_alias_table

        assert build_light_source_alias_table() == 0


class TestLightSampling:
    """Tests for sample_light and light_pdf_value."""

    def test_points_uniform_on_light(self):
        from src.pathtracer.lights.sampler import sample_light

        _light_scene(edge=2.0, height=1.0)
        n = 20000
        points = ti.Vector.field(3, dtype=ti.f32, shape=n)
        normals = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                s = ti.cast(i * 31 + 5, ti.u32)
                s, p, nrm = sample_light(s)
                points[i] = p
                normals[i] = nrm

        test_kernel()
        p = points.to_numpy()
        np.testing.assert_allclose(p[:, 1], 1.0, atol=1e-5)
        assert np.abs(p[:, 0]).max() <= 1.0 + 1e-5
        assert np.abs(p[:, 2]).max() <= 1.0 + 1e-5
        # Uniform over the square: each quadrant gets a quarter
        quadrants = (p[:, 0] > 0).astype(int) * 2 + (p[:, 2] > 0).astype(int)
        np.testing.assert_allclose(np.bincount(quadrants, minlength=4) / n, 0.25, atol=0.015)
        np.testing.assert_allclose(normals.to_numpy(), np.tile([0.0, -1.0, 0.0], (n, 1)), atol=1e-5)

    def test_pdf_value(self):
        from src.pathtracer.lights.sampler import light_pdf_value

        _light_scene(edge=2.0, height=1.0)
        result = ti.field(dtype=ti.f32, shape=4)

        @ti.kernel
        def test_kernel():
            # Off the quad's diagonal so exactly one triangle is hit
            origin = ti.math.vec3(0.2, 0.0, -0.3)
            result[0] = light_pdf_value(origin, ti.math.vec3(0.0, 1.0, 0.0))
            result[1] = light_pdf_value(origin, ti.math.vec3(0.0, 3.0, 0.0))
            result[2] = light_pdf_value(origin, ti.math.vec3(0.5, 1.0, 0.0))
            result[3] = light_pdf_value(origin, ti.math.vec3(5.0, 1.0, 0.0))

        test_kernel()
        r = result.to_numpy()
        # d^2 / (cos * area) = 1 / (1 * 4)
        assert abs(r[0] - 0.25) < 1e-5
        assert abs(r[1] - 0.25) < 1e-5
        d2 = 1.25
        cosine = 1.0 / math.sqrt(d2)
        assert abs(r[2] - d2 / (cosine * 4.0)) < 1e-4
        assert r[3] == 0.0

    def test_pdf_zero_from_behind(self):
        from src.pathtracer.lights.sampler import light_pdf_value

        _light_scene(edge=2.0, height=1.0)
        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = light_pdf_value(ti.math.vec3(0.0, 2.0, 0.0), ti.math.vec3(0.0, -1.0, 0.0))

        test_kernel()
        assert result[None] == 0.0

    def test_pdf_integrates_to_one(self):
        """Monte Carlo check: E[1/p] over uniform sphere directions hitting the light."""
        from src.pathtracer.core.rng import random_unit_vec3
        from src.pathtracer.lights.sampler import light_pdf_value

        _light_scene(edge=2.0, height=1.0)
        n = 40000
        values = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                s = ti.cast(i * 7919 + 3, ti.u32)
                s, d = random_unit_vec3(s)
                # Importance of the uniform sphere: p / (1 / 4pi)
                values[i] = light_pdf_value(ti.math.vec3(0.0, 0.0, 0.0), d) * 4.0 * ti.math.pi

        test_kernel()
        assert abs(values.to_numpy().mean() - 1.0) < 0.05
