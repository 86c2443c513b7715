"""Taichi-based offline path tracer with a bounding volume hierarchy.

This package renders static scenes of (optionally moving) spheres using
stochastic path sampling, with support for:
- Lambertian, metal and dielectric materials
- Bounding volume hierarchy acceleration (median split, longest axis)
- Thin-lens camera with depth of field and motion blur
- Progressive rendering with accumulation

Subpackages:
    core: Rays, intervals, the path tracing integrator and progressive loop
    geometry: Bounding boxes, sphere primitive and BVH construction
    materials: Scattering models (Lambertian, metal, dielectric)
    scene: Primitive storage, intersection queries and scene management
    camera: Thin-lens camera with ray generation
    output: Gamma correction, quantisation and image export

Taichi must be initialised (see init_taichi) before importing any module
that declares fields: scene, materials, camera and the integrator.
"""

import taichi as ti

__version__ = "0.1.0"


def init_taichi(arch: str = "cpu", seed: int = 0, debug: bool = False) -> None:
    """Initialise the Taichi runtime for rendering.

    Fast math is disabled so that the ray/box slab test sees IEEE infinities
    when a ray direction component is zero.

    Args:
        arch: Backend name, "cpu" or "gpu".
        seed: Seed for the per-thread random number streams.
        debug: Enable Taichi bounds checking.
    """
    backend = ti.gpu if arch == "gpu" else ti.cpu
    ti.init(arch=backend, random_seed=seed, fast_math=False, debug=debug)
