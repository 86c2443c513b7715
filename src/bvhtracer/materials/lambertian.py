"""Lambertian (diffuse) material.

The scatter direction is the surface normal plus a random unit vector, which
gives a cosine-weighted distribution over the hemisphere around the normal.
A Lambertian surface always scatters and attenuates by its albedo.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.materials.lambertian import add_lambertian_material
    >>> ground = add_lambertian_material((0.8, 0.8, 0.0))
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from bvhtracer.core.ray import near_zero, random_unit_vector

vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3):
    """Sample a diffuse scatter direction.

    If the random unit vector almost exactly cancels the normal, the normal
    itself is used so the scattered ray never has a degenerate direction.

    Args:
        albedo: The diffuse reflectance color.
        normal: Unit surface normal at the hit point, facing the ray.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter); did_scatter
        is always 1 and attenuation is exactly the albedo.
    """
    scattered_direction = normal + random_unit_vector()
    if near_zero(scattered_direction):
        scattered_direction = normal
    return scattered_direction, albedo, 1


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_LAMBERTIAN_MATERIALS = 512

lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo: Sequence[float]) -> int:
    """Register a Lambertian material.

    Args:
        albedo: The diffuse color as (R, G, B), each component in [0, 1].

    Returns:
        The type-local index of the material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(f"Albedo component {i} = {component} is outside [0, 1]")

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32) -> vec3:
    return lambertian_albedos[material_idx]


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, normal: vec3):
    """Look up a registered Lambertian material and scatter off it."""
    return scatter_lambertian(get_lambertian_albedo(material_idx), normal)
