"""Sphere primitive with linear motion.

The center of a sphere is itself a ray parameterized by time: it sits at
``center`` at time 0 and at ``center + motion`` at time 1. A stationary
sphere has zero motion.

Substituting the ray P(t) = Q + t d into |P - C|^2 = r^2 gives

    a t^2 - 2 h t + c = 0

with a = d . d, h = d . (C - Q) and c = |C - Q|^2 - r^2. The roots are
(h -/+ sqrt(h^2 - a c)) / a; the smaller root strictly inside the window
(t_min, t_max) is the hit.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), motion=ti.math.vec3(0, 0, 0), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from bvhtracer.geometry.aabb import AABB

vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center, motion and radius.

    Attributes:
        center: Center of the sphere at time 0 (vec3).
        motion: Displacement of the center between time 0 and time 1 (vec3).
        radius: The radius of the sphere (non-negative).
    """

    center: vec3
    motion: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-sphere intersection.

    Attributes:
        hit: 1 if the ray intersected the sphere, 0 on a miss.
        t: The ray parameter of the intersection. Only valid if hit == 1.
        point: The intersection point. Only valid if hit == 1.
        normal: Unit surface normal, oriented against the incoming ray.
            Only valid if hit == 1.
        front_face: 1 if the ray hit the outside of the surface, 0 if it hit
            from the inside (the normal was flipped). Only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def sphere_center(sphere: Sphere, time: ti.f32) -> vec3:
    """Center of the sphere at the given time."""
    return sphere.center + time * sphere.motion


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection.

    Degenerate input never produces a hit: spheres with radius <= 0 are
    skipped, and a zero direction yields NaN roots that fail the window test.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        ray_time: Time at which the ray samples the scene.
        sphere: The sphere to test intersection against.
        t_min: Exclusive lower bound for a valid hit.
        t_max: Exclusive upper bound for a valid hit.

    Returns:
        A HitRecord; check the hit field to determine if an intersection
        occurred.
    """
    current_center = sphere_center(sphere, ray_time)
    oc = current_center - ray_origin
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius

    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if sphere.radius > 0.0 and discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)

        # Nearest root strictly inside (t_min, t_max)
        root = (h - sqrt_d) / a
        valid = root > t_min and root < t_max
        if not valid:
            root = (h + sqrt_d) / a
            valid = root > t_min and root < t_max

        if valid:
            did_hit = 1
            hit_t = root
            hit_point = ray_origin + root * ray_direction
            outward_normal = (hit_point - current_center) / sphere.radius

            # Normal always opposes the ray; front_face remembers the flip
            if tm.dot(ray_direction, outward_normal) < 0.0:
                is_front_face = 1
                hit_normal = outward_normal
            else:
                is_front_face = 0
                hit_normal = -outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
    )


@ti.func
def make_sphere(center: vec3, radius: ti.f32) -> Sphere:
    """Create a stationary sphere within a Taichi kernel."""
    return Sphere(center=center, motion=vec3(0.0, 0.0, 0.0), radius=radius)


@ti.func
def make_moving_sphere(center1: vec3, center2: vec3, radius: ti.f32) -> Sphere:
    """Create a sphere moving from center1 (time 0) to center2 (time 1)."""
    return Sphere(center=center1, motion=center2 - center1, radius=radius)


def sphere_bounding_box(
    center: Sequence[float],
    radius: float,
    center2: Sequence[float] | None = None,
) -> AABB:
    """Bounding box of a sphere, computed on the host.

    For a moving sphere this is the union of the boxes at time 0 and time 1,
    which also encloses every intermediate position of a linear motion.

    Args:
        center: Center at time 0.
        radius: Sphere radius; negative values are treated as 0.
        center2: Center at time 1, or None for a stationary sphere.

    Returns:
        The axis-aligned bounding box.
    """
    r = max(0.0, float(radius))
    box = AABB.from_points(
        [c - r for c in center],
        [c + r for c in center],
    )
    if center2 is not None:
        box2 = AABB.from_points(
            [c - r for c in center2],
            [c + r for c in center2],
        )
        box = AABB.enclosing(box, box2)
    return box
