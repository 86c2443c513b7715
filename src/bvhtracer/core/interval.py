"""Closed numeric intervals.

Intervals are used for the valid parametric range of a ray (the window in
which intersections are accepted) and for the per-axis extent of bounding
boxes. They are plain host-side values; device code passes the bounds as two
scalars.

Example:
    >>> from bvhtracer.core.interval import Interval
    >>> Interval(0.0, 2.0).surrounds(2.0)
    False
    >>> Interval.enclosing(Interval(0.0, 1.0), Interval.EMPTY) == Interval(0.0, 1.0)
    True
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Interval:
    """A closed range [min, max] of real numbers.

    An interval with min > max contains nothing. EMPTY and UNIVERSE are the
    identity and absorbing elements of enclosing().

    Attributes:
        min: Lower bound.
        max: Upper bound.
    """

    min: float = math.inf
    max: float = -math.inf

    EMPTY: ClassVar[Interval]
    UNIVERSE: ClassVar[Interval]

    @staticmethod
    def enclosing(a: Interval, b: Interval) -> Interval:
        """Return the tightest interval containing both a and b."""
        return Interval(min(a.min, b.min), max(a.max, b.max))

    def size(self) -> float:
        return self.max - self.min

    def contains(self, x: float) -> bool:
        """Inclusive containment: min <= x <= max."""
        return self.min <= x <= self.max

    def surrounds(self, x: float) -> bool:
        """Strict containment: min < x < max.

        Used to reject intersection roots lying exactly on a boundary.
        """
        return self.min < x < self.max

    def clamp(self, x: float) -> float:
        if x < self.min:
            return self.min
        if x > self.max:
            return self.max
        return x

    def expand(self, delta: float) -> Interval:
        """Return the interval padded by delta / 2 on each side."""
        padding = delta / 2.0
        return Interval(self.min - padding, self.max + padding)


Interval.EMPTY = Interval(math.inf, -math.inf)
Interval.UNIVERSE = Interval(-math.inf, math.inf)
