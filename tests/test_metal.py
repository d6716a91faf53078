"""Unit tests for the Metal material module.

Tests cover:
- Perfect specular reflection (fuzz=0)
- Fuzzy reflection (fuzz>0)
- Ray absorption when scattered below surface
- Attenuation equals the resolved albedo
- Material registry operations and fuzz validation
"""

import math

import numpy as np
import pytest
import taichi as ti


def _scatter_metal(incident, normal, albedo=(1.0, 1.0, 1.0), fuzz=0.0, n=1, seed_base=1):
    """Run scatter_metal n times, returning (directions, scattered flags, attenuations)."""
    from src.pathtracer.materials.metal import scatter_metal
    from src.pathtracer.scene.oracle import HitRecord
    from src.pathtracer.textures import add_constant_colour
    from src.pathtracer.textures.property import PropertyRef

    albedo_value = add_constant_colour(albedo)
    fuzz_value = add_constant_colour((fuzz, fuzz, fuzz))
    albedo_kind, albedo_index = int(albedo_value.kind), albedo_value.index
    fuzz_kind, fuzz_index = int(fuzz_value.kind), fuzz_value.index

    directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
    attenuations = ti.Vector.field(3, dtype=ti.f32, shape=n)
    scattered = ti.field(dtype=ti.i32, shape=n)
    skip = ti.field(dtype=ti.i32, shape=n)

    @ti.kernel
    def test_kernel(ix: ti.f32, iy: ti.f32, iz: ti.f32, nx: ti.f32, ny: ti.f32, nz: ti.f32):
        for i in range(n):
            hit = HitRecord(
                position=ti.math.vec3(0.0, 0.0, 0.0),
                local_position=ti.math.vec3(0.0, 0.0, 0.0),
                u=0.0,
                v=0.0,
                normal=ti.math.vec3(nx, ny, nz),
                front_face=1,
                t=1.0,
            )
            a = PropertyRef(kind=albedo_kind, index=albedo_index)
            f = PropertyRef(kind=fuzz_kind, index=fuzz_index)
            s = ti.cast(i + seed_base, ti.u32)
            s, rec = scatter_metal(s, a, f, ti.math.vec3(ix, iy, iz), hit)
            directions[i] = rec.skip_pdf_ray.direction
            attenuations[i] = rec.attenuation
            scattered[i] = rec.is_scattered
            skip[i] = rec.skip_pdf

    test_kernel(*incident, *normal)
    assert np.all(skip.to_numpy() == 1)
    return directions.to_numpy(), scattered.to_numpy(), attenuations.to_numpy()


class TestPerfectReflection:
    """Tests for perfect specular reflection (fuzz=0)."""

    def test_perfect_reflection_normal_incidence(self):
        """Test reflection of ray hitting surface head-on."""
        d, scattered, _ = _scatter_metal((0.0, -1.0, 0.0), (0.0, 1.0, 0.0))
        np.testing.assert_allclose(d[0], [0.0, 1.0, 0.0], atol=1e-5)
        assert scattered[0] == 1

    def test_perfect_reflection_45_degrees(self):
        """Test reflection at 45 degree angle."""
        inv_sqrt2 = 1.0 / math.sqrt(2.0)
        d, scattered, _ = _scatter_metal((inv_sqrt2, -inv_sqrt2, 0.0), (0.0, 1.0, 0.0))
        np.testing.assert_allclose(d[0], [inv_sqrt2, inv_sqrt2, 0.0], atol=1e-5)
        assert scattered[0] == 1

    def test_incident_direction_need_not_be_unit(self):
        """Test a long incident vector is normalized before reflecting."""
        d, _, _ = _scatter_metal((3.0, -3.0, 3.0), (0.0, 1.0, 0.0))
        expected = np.array([1.0, 1.0, 1.0]) / math.sqrt(3.0)
        np.testing.assert_allclose(d[0], expected, atol=1e-5)

    def test_attenuation_is_albedo(self):
        """Test attenuation equals the albedo colour."""
        _, _, att = _scatter_metal((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), albedo=(0.8, 0.6, 0.4))
        np.testing.assert_allclose(att[0], [0.8, 0.6, 0.4], atol=1e-6)


class TestFuzzyReflection:
    """Tests for fuzzy metal reflection (fuzz>0)."""

    def test_fuzzy_reflection_direction_varies(self):
        """Test that fuzzy reflection produces varying directions."""
        d, _, _ = _scatter_metal((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), fuzz=0.5, n=64)
        assert np.std(d[:, 0]) > 0.05

    def test_fuzz_offset_bounded(self):
        """Test the perturbation never exceeds the fuzz radius."""
        d, _, _ = _scatter_metal((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), fuzz=0.3, n=256)
        offsets = d - np.array([0.0, 1.0, 0.0])
        assert np.linalg.norm(offsets, axis=1).max() <= 0.3 + 1e-5

    def test_grazing_fuzzy_reflection_absorbs_some(self):
        """Test directions pushed below the surface are absorbed."""
        incident = (math.cos(0.05), -math.sin(0.05), 0.0)
        d, scattered, _ = _scatter_metal(incident, (0.0, 1.0, 0.0), fuzz=1.0, n=512)
        assert 0 < scattered.sum() < 512
        above = d[:, 1] > 0.0
        np.testing.assert_array_equal(above, scattered == 1)

    def test_deterministic_for_seed(self):
        """Test the same states produce the same directions."""
        a, _, _ = _scatter_metal((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), fuzz=0.5, n=16, seed_base=5)
        b, _, _ = _scatter_metal((0.0, -1.0, 0.0), (0.0, 1.0, 0.0), fuzz=0.5, n=16, seed_base=5)
        np.testing.assert_array_equal(a, b)


class TestMetalMaterialRegistry:
    """Tests for material registry operations."""

    def test_add_and_count(self):
        from src.pathtracer.materials.metal import add_metal_material, get_metal_material_count
        from src.pathtracer.textures import add_constant_colour

        idx0 = add_metal_material(add_constant_colour((0.8, 0.8, 0.8)), add_constant_colour((0.0, 0.0, 0.0)))
        idx1 = add_metal_material(add_constant_colour((0.9, 0.6, 0.2)), add_constant_colour((0.3, 0.3, 0.3)))
        assert (idx0, idx1) == (0, 1)
        assert get_metal_material_count() == 2

    def test_lookup(self):
        from src.pathtracer.materials.metal import add_metal_material, lookup_metal_material
        from src.pathtracer.textures import add_constant_colour

        albedo = add_constant_colour((0.8, 0.8, 0.8))
        fuzz = add_constant_colour((0.1, 0.1, 0.1))
        add_metal_material(albedo, fuzz)

        result = ti.Vector.field(3, dtype=ti.i32, shape=2)

        @ti.kernel
        def test_kernel():
            found, a, f = lookup_metal_material(0)
            result[0] = ti.Vector([found, a.index, f.index])
            found2, _, _ = lookup_metal_material(5)
            result[1] = ti.Vector([found2, 0, 0])

        test_kernel()
        r = result.to_numpy()
        assert r[0].tolist() == [1, albedo.index, fuzz.index]
        assert r[1][0] == 0

    @pytest.mark.parametrize("fuzz", [1.5, 2.0])
    def test_constant_fuzz_validated(self, fuzz):
        from src.pathtracer.materials.metal import add_metal_material
        from src.pathtracer.textures import add_constant_colour

        albedo = add_constant_colour((0.8, 0.8, 0.8))
        with pytest.raises(ValueError, match="fuzz"):
            add_metal_material(albedo, add_constant_colour((fuzz, fuzz, fuzz)))

    def test_clear(self):
        from src.pathtracer.materials.metal import (
            add_metal_material,
            clear_metal_materials,
            get_metal_material_count,
        )
        from src.pathtracer.textures import add_constant_colour

        c = add_constant_colour((0.5, 0.5, 0.5))
        add_metal_material(c, add_constant_colour((0.0, 0.0, 0.0)))
        clear_metal_materials()
        assert get_metal_material_count() == 0
