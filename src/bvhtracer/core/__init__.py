"""Core rendering module.

Components:
    interval: Closed numeric ranges (host side)
    ray: Ray data structure, vector utilities and random sampling
    integrator: Path tracing integrator and render target
    progressive: Progressive renderer with callbacks and cancellation

The integrator and progressive modules declare Taichi fields and are NOT
imported here; import them directly once Taichi is initialised.
"""

from .interval import Interval
from .ray import (
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    sample_square,
    schlick_reflectance,
    unit_vector,
    vec3,
)

__all__ = [
    "Interval",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "unit_vector",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_reflectance",
    "near_zero",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
    "sample_square",
]
