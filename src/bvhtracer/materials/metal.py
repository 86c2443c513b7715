"""Metal (specular reflective) material with optional fuzz.

The incoming direction is mirrored about the normal:

    R = I - 2(I . N)N

and the unit reflection is perturbed by fuzz * random_unit_vector(). A
perturbed direction that ends up at or below the surface is absorbed, which
is how large fuzz values darken a metal.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.materials.metal import add_metal_material
    >>> mirror = add_metal_material((0.8, 0.8, 0.8), fuzz=0.0)
    >>> brushed = add_metal_material((0.8, 0.6, 0.2), fuzz=1.0)
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from bvhtracer.core.ray import random_unit_vector, reflect, unit_vector

vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Reflect the incoming ray, perturbed by fuzz.

    Args:
        albedo: The reflective color.
        fuzz: Fuzz radius, already clamped to [0, 1].
        incident_direction: The incoming ray direction (any length).
        normal: Unit surface normal at the hit point, facing the ray.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is 0 when the scattered direction does not leave the
        surface (dot(scattered, normal) <= 0).
    """
    reflected = reflect(incident_direction, normal)
    scattered_direction = unit_vector(reflected) + fuzz * random_unit_vector()

    did_scatter = 1
    if tm.dot(scattered_direction, normal) <= 0.0:
        did_scatter = 0

    return scattered_direction, albedo, did_scatter


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_METAL_MATERIALS = 256

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials.

    Existing data in the fields is overwritten as new materials are added.
    """
    num_metal_materials[None] = 0


def add_metal_material(albedo: Sequence[float], fuzz: float = 0.0) -> int:
    """Register a metal material.

    Args:
        albedo: The reflective color as (R, G, B), each component in [0, 1].
        fuzz: Fuzz radius. Values outside [0, 1] are clamped.

    Returns:
        The type-local index of the material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If any albedo component is outside [0, 1].
    """
    for i, component in enumerate(albedo):
        if component < 0.0 or component > 1.0:
            raise ValueError(f"Albedo component {i} = {component} is outside [0, 1]")

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    metal_fuzzes[idx] = min(max(float(fuzz), 0.0), 1.0)
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Get the number of metal materials in the registry."""
    return int(num_metal_materials[None])


@ti.func
def get_metal_albedo(material_idx: ti.i32) -> vec3:
    return metal_albedos[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzzes[material_idx]


@ti.func
def scatter_metal_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
):
    """Look up a registered metal material and scatter off it.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    albedo = get_metal_albedo(material_idx)
    fuzz = get_metal_fuzz(material_idx)
    return scatter_metal(albedo, fuzz, incident_direction, normal)
