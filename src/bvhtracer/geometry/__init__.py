"""Geometry module for bounding boxes, primitives and spatial acceleration.

Components:
    aabb: Axis-aligned bounding boxes and the ray/box slab test
    sphere: Sphere primitive (optionally moving) with ray-sphere intersection
    bvh: Bounding Volume Hierarchy construction and flattening

Intersection routines are Taichi functions (@ti.func); box computation and
BVH construction run on the host. Ray-object intersection follows the
pattern:
    record = hit_shape(ray_origin, ray_direction, ray_time, shape, t_min, t_max)
"""

from .aabb import AABB, hit_aabb
from .bvh import (
    BVHLeaf,
    BVHNode,
    FlatBVH,
    IntersectableKind,
    build_bvh,
    count_nodes,
    flatten_bvh,
    iter_leaves,
    tree_depth,
)
from .sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    make_moving_sphere,
    make_sphere,
    sphere_bounding_box,
    sphere_center,
)

__all__ = [
    "AABB",
    "hit_aabb",
    "BVHLeaf",
    "BVHNode",
    "FlatBVH",
    "IntersectableKind",
    "build_bvh",
    "count_nodes",
    "flatten_bvh",
    "iter_leaves",
    "tree_depth",
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "sphere_center",
    "sphere_bounding_box",
    "make_sphere",
    "make_moving_sphere",
]
