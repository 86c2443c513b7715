"""Pytest configuration for bvhtracer tests.

Taichi is initialized once per session; every module that declares fields
is imported lazily inside tests, after initialization.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Repeated ti.init() calls reset every field, so this is session scoped.
    Fast math stays off so that zero direction components divide to infinity.
    """
    ti.init(arch=ti.cpu, random_seed=42, fast_math=False)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset primitives, materials and integrator settings around each test."""
    from bvhtracer.core.integrator import reset_integrator_settings
    from bvhtracer.materials.dielectric import clear_dielectric_materials
    from bvhtracer.materials.lambertian import clear_lambertian_materials
    from bvhtracer.materials.metal import clear_metal_materials
    from bvhtracer.scene.intersection import clear_scene
    from bvhtracer.scene.manager import _clear_material_tracking

    def _clear_all():
        clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        reset_integrator_settings()

    _clear_all()
    yield
    _clear_all()
