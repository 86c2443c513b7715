"""Unit tests for the Lambertian material module.

Tests cover:
- Scattered directions stay in the hemisphere around the normal
- Cosine-weighted distribution (mean direction along the normal)
- Attenuation equals albedo and scattering always happens
- Material registry operations and albedo validation
"""

import numpy as np
import pytest
import taichi as ti

N_SAMPLES = 2000


class TestLambertianScatter:
    """Tests for the diffuse scatter direction."""

    def test_directions_in_hemisphere(self):
        from bvhtracer.materials.lambertian import scatter_lambertian

        directions = ti.Vector.field(3, dtype=ti.f32, shape=N_SAMPLES)
        scattered = ti.field(dtype=ti.i32, shape=N_SAMPLES)

        @ti.kernel
        def test_kernel():
            for i in range(N_SAMPLES):
                albedo = ti.math.vec3(0.5, 0.5, 0.5)
                normal = ti.math.vec3(0.0, 1.0, 0.0)
                direction, _, did_scatter = scatter_lambertian(albedo, normal)
                directions[i] = direction
                scattered[i] = did_scatter

        test_kernel()
        dirs = directions.to_numpy()
        # normal + unit vector never points below the surface
        assert np.all(dirs[:, 1] >= -1e-5)
        assert np.all(scattered.to_numpy() == 1)
        assert np.all(np.linalg.norm(dirs, axis=1) > 0.0)

    def test_mean_direction_follows_normal(self):
        """The average of cosine-weighted samples lines up with the normal."""
        from bvhtracer.materials.lambertian import scatter_lambertian

        directions = ti.Vector.field(3, dtype=ti.f32, shape=N_SAMPLES)

        @ti.kernel
        def test_kernel():
            for i in range(N_SAMPLES):
                normal = ti.math.normalize(ti.math.vec3(1.0, 1.0, 0.0))
                direction, _, _ = scatter_lambertian(ti.math.vec3(1.0, 1.0, 1.0), normal)
                directions[i] = ti.math.normalize(direction)

        test_kernel()
        mean = directions.to_numpy().mean(axis=0)
        mean /= np.linalg.norm(mean)
        expected = np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0)
        assert np.dot(mean, expected) > 0.99

    def test_attenuation_is_albedo(self):
        from bvhtracer.materials.lambertian import scatter_lambertian

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            _, attenuation, _ = scatter_lambertian(
                ti.math.vec3(0.1, 0.2, 0.5), ti.math.vec3(0.0, 0.0, 1.0)
            )
            result[None] = attenuation

        test_kernel()
        np.testing.assert_allclose(result[None].to_numpy(), [0.1, 0.2, 0.5], rtol=1e-6)


class TestLambertianRegistry:
    """Tests for material registration and lookup."""

    def test_add_material(self):
        from bvhtracer.materials.lambertian import (
            add_lambertian_material,
            get_lambertian_material_count,
        )

        assert get_lambertian_material_count() == 0
        assert add_lambertian_material((0.8, 0.8, 0.0)) == 0
        assert add_lambertian_material((0.1, 0.2, 0.5)) == 1
        assert get_lambertian_material_count() == 2

    def test_clear(self):
        from bvhtracer.materials.lambertian import (
            add_lambertian_material,
            clear_lambertian_materials,
            get_lambertian_material_count,
        )

        add_lambertian_material((0.5, 0.5, 0.5))
        clear_lambertian_materials()
        assert get_lambertian_material_count() == 0
        assert add_lambertian_material((0.5, 0.5, 0.5)) == 0

    @pytest.mark.parametrize("albedo", [(1.5, 0.5, 0.5), (0.5, -0.1, 0.5)])
    def test_invalid_albedo_rejected(self, albedo):
        from bvhtracer.materials.lambertian import add_lambertian_material

        with pytest.raises(ValueError):
            add_lambertian_material(albedo)

    def test_scatter_by_id(self):
        from bvhtracer.materials.lambertian import (
            add_lambertian_material,
            scatter_lambertian_by_id,
        )

        add_lambertian_material((0.9, 0.9, 0.9))
        idx = add_lambertian_material((0.2, 0.4, 0.6))
        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(material_idx: ti.i32):
            _, attenuation, _ = scatter_lambertian_by_id(
                material_idx, ti.math.vec3(0.0, 1.0, 0.0)
            )
            result[None] = attenuation

        test_kernel(idx)
        np.testing.assert_allclose(result[None].to_numpy(), [0.2, 0.4, 0.6], rtol=1e-6)
