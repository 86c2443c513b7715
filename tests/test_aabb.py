"""Unit tests for axis-aligned bounding boxes.

Tests cover:
- Construction from points and from two boxes
- Longest axis selection
- Host slab test, including zero direction components
- Device slab test agreeing with the host one
"""

import math

import pytest
import taichi as ti

from bvhtracer.core.interval import Interval
from bvhtracer.geometry.aabb import AABB

UNIT_BOX = AABB.from_points((-1, -1, -1), (1, 1, 1))
FORWARD = Interval(0.001, math.inf)


class TestAABBConstruction:
    def test_from_points_orders_extrema(self):
        box = AABB.from_points((1, -2, 3), (-1, 2, -3))
        assert box.axis_interval(0) == Interval(-1.0, 1.0)
        assert box.axis_interval(1) == Interval(-2.0, 2.0)
        assert box.axis_interval(2) == Interval(-3.0, 3.0)

    def test_enclosing_boxes(self):
        a = AABB.from_points((0, 0, 0), (1, 1, 1))
        b = AABB.from_points((2, -1, 0.5), (3, 0.5, 4))
        box = AABB.enclosing(a, b)
        assert box.min_corner() == (0.0, -1.0, 0.0)
        assert box.max_corner() == (3.0, 1.0, 4.0)

    def test_default_box_is_empty(self):
        assert AABB() == AABB.EMPTY
        a = AABB.from_points((0, 0, 0), (1, 1, 1))
        assert AABB.enclosing(AABB.EMPTY, a) == a

    def test_enclosing_with_universe_is_universe(self):
        a = AABB.from_points((0, 0, 0), (1, 1, 1))
        assert AABB.enclosing(a, AABB.UNIVERSE) == AABB.UNIVERSE
        assert AABB.enclosing(AABB.UNIVERSE, a) == AABB.UNIVERSE


class TestLongestAxis:
    @pytest.mark.parametrize(
        "corner, expected",
        [
            ((5, 1, 1), 0),
            ((1, 5, 1), 1),
            ((1, 1, 5), 2),
        ],
    )
    def test_longest_axis(self, corner, expected):
        assert AABB.from_points((0, 0, 0), corner).longest_axis() == expected

    def test_tie_goes_to_higher_axis(self):
        assert AABB.from_points((0, 0, 0), (2, 2, 1)).longest_axis() == 1
        assert AABB.from_points((0, 0, 0), (2, 1, 2)).longest_axis() == 2
        assert AABB.from_points((0, 0, 0), (1, 1, 1)).longest_axis() == 2


class TestHostSlabTest:
    def test_ray_through_box(self):
        assert UNIT_BOX.hit((0, 0, 5), (0, 0, -1), FORWARD)

    def test_ray_beside_box(self):
        assert not UNIT_BOX.hit((3, 0, 5), (0, 0, -1), FORWARD)

    def test_ray_pointing_away(self):
        assert not UNIT_BOX.hit((0, 0, 5), (0, 0, 1), FORWARD)

    def test_window_ends_before_box(self):
        assert not UNIT_BOX.hit((0, 0, 5), (0, 0, -1), Interval(0.001, 3.0))

    def test_zero_direction_component_inside_slab(self):
        # Only z varies; x and y slabs become infinite because origin is inside them
        assert UNIT_BOX.hit((0.5, 0.5, 5), (0, 0, -1), FORWARD)

    def test_zero_direction_component_outside_slab(self):
        assert not UNIT_BOX.hit((0.5, 2.0, 5), (0, 0, -1), FORWARD)

    def test_origin_inside_box(self):
        assert UNIT_BOX.hit((0, 0, 0), (1, 2, 3), FORWARD)

    def test_diagonal_ray(self):
        assert UNIT_BOX.hit((-5, -5, -5), (1, 1, 1), FORWARD)
        assert not UNIT_BOX.hit((-5, -5, -5), (1, -1, 1), FORWARD)


class TestDeviceSlabTest:
    @pytest.mark.parametrize(
        "origin, direction",
        [
            ((0, 0, 5), (0, 0, -1)),
            ((3, 0, 5), (0, 0, -1)),
            ((0.5, 0.5, 5), (0, 0, -1)),
            ((0.5, 2.0, 5), (0, 0, -1)),
            ((-5, -5, -5), (1, 1, 1)),
            ((-5, -5, -5), (1, -1, 1)),
            ((0, 0, 0), (1, 2, 3)),
        ],
    )
    def test_device_matches_host(self, origin, direction):
        from bvhtracer.geometry.aabb import hit_aabb, vec3

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(
            ox: ti.f32, oy: ti.f32, oz: ti.f32, dx: ti.f32, dy: ti.f32, dz: ti.f32
        ):
            result[None] = hit_aabb(
                vec3(ox, oy, oz),
                vec3(dx, dy, dz),
                vec3(-1.0, -1.0, -1.0),
                vec3(1.0, 1.0, 1.0),
                0.001,
                1e30,
            )

        test_kernel(*origin, *direction)
        assert bool(result[None]) == UNIT_BOX.hit(origin, direction, FORWARD)
