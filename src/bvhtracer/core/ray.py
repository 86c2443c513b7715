"""Ray data structure and vector utilities for GPU-accelerated ray tracing.

This module provides the Ray dataclass and the vector utility functions used
throughout the renderer. All operations are designed to work within Taichi
kernels.

A ray carries a scalar time in [0, 1] in addition to its origin and
direction. The time is only used to evaluate moving geometry (motion blur);
scattered rays inherit the time of the ray that produced them.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction, time=0.5)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module.
# Points and colors share the same representation.
vec3 = tm.vec3

# Components below this magnitude count as zero in near_zero()
NEAR_ZERO_EPSILON = 1e-8


@ti.dataclass
class Ray:
    """A ray with an origin point, direction vector and time.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            unit length.
        time: Sample time in [0, 1] used for moving geometry.
    """

    origin: vec3
    direction: vec3
    time: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, time: ti.f32) -> Ray:
    """Create a ray from origin, direction and time."""
    return Ray(origin=origin, direction=direction, time=time)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Compute the squared length of a vector.

    Cheaper than length() when only comparing magnitudes.
    """
    return tm.dot(v, v)


@ti.func
def unit_vector(v: vec3) -> vec3:
    return v / tm.length(v)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    return tm.cross(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (must be unit length).

    Returns:
        The mirrored direction incident - 2 (incident . normal) normal.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta: ti.f32) -> vec3:
    """Refract a unit incident vector through a surface using Snell's law.

    The refracted direction is split into the components perpendicular and
    parallel to the normal. Callers must rule out total internal reflection
    first (see materials.dielectric.will_reflect).

    Args:
        incident: The incoming direction (unit length).
        normal: The surface normal facing the incoming ray (unit length).
        eta: The ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted direction.
    """
    cos_theta = tm.min(-tm.dot(incident, normal), 1.0)
    r_out_perp = eta * (incident + cos_theta * normal)
    r_out_parallel = -ti.sqrt(ti.abs(1.0 - tm.dot(r_out_perp, r_out_perp))) * normal
    return r_out_perp + r_out_parallel


@ti.func
def schlick_reflectance(cosine: ti.f32, refraction_index: ti.f32) -> ti.f32:
    """Angle-dependent reflectance using Schlick's approximation.

    R(theta) = R0 + (1 - R0)(1 - cos theta)^5 with R0 = ((1 - n) / (1 + n))^2.

    Args:
        cosine: Cosine of the angle between incident direction and normal.
        refraction_index: Ratio of refractive indices.

    Returns:
        The approximate reflectance in [0, 1].
    """
    r0 = (1.0 - refraction_index) / (1.0 + refraction_index)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Used to catch degenerate scatter directions.

    Returns:
        1 if every component magnitude is below NEAR_ZERO_EPSILON, 0 otherwise.
    """
    s = NEAR_ZERO_EPSILON
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================
#
# ti.random() draws from the calling thread's own random state, seeded by
# the random_seed passed to ti.init().


@ti.func
def random_in_unit_sphere() -> vec3:
    """Generate a random point inside the unit sphere.

    Uses rejection sampling; points too close to the origin are also
    rejected so that they can be normalized safely.

    Returns:
        A random point with 1e-20 < |p|^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    # Max iterations to avoid unbounded loops
    for _ in range(100):
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
            )
            lensq = length_squared(p)
            if 1e-20 < lensq and lensq < 1.0:
                found = True
    return p


@ti.func
def random_unit_vector() -> vec3:
    """Generate a random unit vector uniformly distributed on the sphere."""
    return tm.normalize(random_in_unit_sphere())


@ti.func
def random_in_unit_disk() -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used to sample the camera's defocus disk.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(100):
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                0.0,
            )
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p


@ti.func
def sample_square() -> vec3:
    """Random offset in the [-0.5, 0.5] x [-0.5, 0.5] unit square (z = 0)."""
    return vec3(ti.random(ti.f32) - 0.5, ti.random(ti.f32) - 0.5, 0.0)
