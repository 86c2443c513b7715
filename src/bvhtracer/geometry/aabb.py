"""Axis-aligned bounding boxes.

An AABB is three intervals, one per axis. Boxes are built on the host when
primitives are added and when the BVH is constructed; after that they are
immutable and only read by the device-side slab test.

Ray/box intersection uses the slab method: for each axis, compute the ray
parameters at which it crosses the two bounding planes,

    t = (plane - origin) / direction

order them, and intersect the running [t_min, t_max] window with them. The
box is missed as soon as the window becomes empty. A zero direction component
yields an infinite inverse, which makes the box infinite along that axis.

Example:
    >>> from bvhtracer.geometry.aabb import AABB
    >>> box = AABB.from_points((1, 1, 1), (-1, -1, -1))
    >>> box.axis_interval(0)
    Interval(min=-1.0, max=1.0)
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar

import numpy as np
import taichi as ti
import taichi.math as tm

from bvhtracer.core.interval import Interval

vec3 = tm.vec3

Point = Sequence[float]


@dataclass(frozen=True)
class AABB:
    """Axis-aligned bounding box made of one interval per axis.

    The default box is EMPTY. Boxes built from two points or two boxes always
    have min <= max on every axis (unless both inputs are empty).

    Attributes:
        x: Extent along the x axis.
        y: Extent along the y axis.
        z: Extent along the z axis.
    """

    x: Interval = Interval.EMPTY
    y: Interval = Interval.EMPTY
    z: Interval = Interval.EMPTY

    EMPTY: ClassVar["AABB"]
    UNIVERSE: ClassVar["AABB"]

    @staticmethod
    def from_points(a: Point, b: Point) -> "AABB":
        """Box with a and b as extrema, in any coordinate order."""
        return AABB(
            *(
                Interval(float(min(a[i], b[i])), float(max(a[i], b[i])))
                for i in range(3)
            )
        )

    @staticmethod
    def enclosing(box0: "AABB", box1: "AABB") -> "AABB":
        """Tightest box containing both box0 and box1."""
        return AABB(
            Interval.enclosing(box0.x, box1.x),
            Interval.enclosing(box0.y, box1.y),
            Interval.enclosing(box0.z, box1.z),
        )

    def axis_interval(self, n: int) -> Interval:
        """Interval for axis n (0 = x, 1 = y, 2 = z)."""
        if n == 1:
            return self.y
        if n == 2:
            return self.z
        return self.x

    def longest_axis(self) -> int:
        """Index of the axis with the largest extent.

        When two axes tie for longest, the higher-indexed one wins.
        """
        if self.x.size() > self.y.size():
            return 0 if self.x.size() > self.z.size() else 2
        return 1 if self.y.size() > self.z.size() else 2

    def min_corner(self) -> tuple[float, float, float]:
        return (self.x.min, self.y.min, self.z.min)

    def max_corner(self) -> tuple[float, float, float]:
        return (self.x.max, self.y.max, self.z.max)

    def hit(self, origin: Point, direction: Point, ray_t: Interval) -> bool:
        """Slab test on the host, with IEEE semantics for zero components.

        Args:
            origin: Ray origin.
            direction: Ray direction (components may be zero).
            ray_t: Parametric window in which a hit counts.

        Returns:
            True if the ray overlaps the box within ray_t.
        """
        t_min = ray_t.min
        t_max = ray_t.max
        with np.errstate(divide="ignore", invalid="ignore"):
            for axis in range(3):
                ax = self.axis_interval(axis)
                adinv = np.float64(1.0) / np.float64(direction[axis])

                t0 = (ax.min - origin[axis]) * adinv
                t1 = (ax.max - origin[axis]) * adinv

                if t0 < t1:
                    if t0 > t_min:
                        t_min = t0
                    if t1 < t_max:
                        t_max = t1
                else:
                    if t1 > t_min:
                        t_min = t1
                    if t0 < t_max:
                        t_max = t0

                if t_max <= t_min:
                    return False
        return True


AABB.EMPTY = AABB(Interval.EMPTY, Interval.EMPTY, Interval.EMPTY)
AABB.UNIVERSE = AABB(Interval.UNIVERSE, Interval.UNIVERSE, Interval.UNIVERSE)


@ti.func
def hit_aabb(
    ray_origin: vec3,
    ray_direction: vec3,
    box_min: vec3,
    box_max: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Test a ray against a box given by its min and max corners.

    Same algorithm as AABB.hit. Division by a zero direction component
    produces +/- infinity; Taichi must run without fast math for this.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        t_min: Lower bound of the parametric window.
        t_max: Upper bound of the parametric window.

    Returns:
        1 if the ray overlaps the box within (t_min, t_max), 0 otherwise.
    """
    lo = t_min
    hi = t_max
    did_hit = 1
    for axis in ti.static(range(3)):
        if did_hit == 1:
            adinv = 1.0 / ray_direction[axis]
            t0 = (box_min[axis] - ray_origin[axis]) * adinv
            t1 = (box_max[axis] - ray_origin[axis]) * adinv

            if t0 < t1:
                if t0 > lo:
                    lo = t0
                if t1 < hi:
                    hi = t1
            else:
                if t1 > lo:
                    lo = t1
                if t0 < hi:
                    hi = t0

            if hi <= lo:
                did_hit = 0
    return did_hit
