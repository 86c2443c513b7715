"""Dielectric (glass/water) material implementation.

Dielectrics never absorb: attenuation is always white. The relative index
is 1/ior when entering the medium (front face) and ior when leaving it.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Total internal reflection when eta * sin(theta) > 1
    - Schlick's approximation for the reflect/refract choice

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.materials.dielectric import add_dielectric_material
    >>> glass = add_dielectric_material(1.5)
    >>> bubble = add_dielectric_material(1.0 / 1.33)
"""

import taichi as ti
import taichi.math as tm

from bvhtracer.core.ray import reflect, refract, schlick_reflectance, unit_vector

vec3 = tm.vec3


@ti.func
def _relative_index(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    ri = ior
    if front_face == 1:
        ri = 1.0 / ior
    return ri


@ti.func
def scatter_dielectric_sampled(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    u: ti.f32,
):
    """Scatter off a dielectric using an explicit uniform draw.

    Reflects when refraction is impossible (total internal reflection) or
    when the Schlick reflectance exceeds u; refracts otherwise.

    Args:
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (any length).
        normal: Unit surface normal at the hit point, facing the ray.
        front_face: 1 if the ray hit the outside of the surface.
        u: Uniform random number in [0, 1).

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter); did_scatter
        is always 1.
    """
    ri = _relative_index(ior, front_face)
    unit_direction = unit_vector(incident_direction)

    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(0.0, 1.0 - cos_theta * cos_theta))

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if ri * sin_theta > 1.0 or schlick_reflectance(cos_theta, ri) > u:
        scattered_direction = reflect(unit_direction, normal)
    else:
        scattered_direction = refract(unit_direction, normal, ri)

    return scattered_direction, vec3(1.0, 1.0, 1.0), 1


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Scatter off a dielectric with a fresh random draw."""
    return scatter_dielectric_sampled(
        ior, incident_direction, normal, front_face, ti.random(ti.f32)
    )


@ti.func
def will_reflect(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.i32:
    """Check whether total internal reflection occurs.

    Returns:
        1 if the ray cannot refract, 0 otherwise.
    """
    ri = _relative_index(ior, front_face)
    unit_direction = unit_vector(incident_direction)
    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(0.0, 1.0 - cos_theta * cos_theta))
    result = 0
    if ri * sin_theta > 1.0:
        result = 1
    return result


@ti.func
def fresnel_reflectance(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.f32:
    """Schlick reflectance for the given incidence, in [0, 1]."""
    ri = _relative_index(ior, front_face)
    cos_theta = tm.min(-tm.dot(unit_vector(incident_direction), normal), 1.0)
    return schlick_reflectance(cos_theta, ri)


# =============================================================================
# Material Field Storage
# =============================================================================

MAX_DIELECTRIC_MATERIALS = 256

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Register a dielectric material.

    Args:
        ior: Index of refraction. Values below 1.0 are allowed and model a
            less dense medium inside a denser one (an air bubble in water).

    Returns:
        The type-local index of the material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If ior is not positive.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction = {ior} must be positive")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Look up a registered dielectric material and scatter off it.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    ior = get_dielectric_ior(material_idx)
    return scatter_dielectric(ior, incident_direction, normal, front_face)
