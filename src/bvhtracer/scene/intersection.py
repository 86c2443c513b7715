"""Scene-level ray intersection over spheres, a flat list or a BVH.

Primitives are stored in Taichi fields (structure of arrays) together with
their material IDs. The scene root is one of two intersectables:

    LIST      exhaustive scan over every sphere (no acceleration)
    BVH_NODE  the flattened bounding volume hierarchy built over the spheres

Both return the nearest hit, so switching the root changes speed only.

The host keeps a bounding box per sphere and a running union of them, which
is what the BVH is built from.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.scene.intersection import (
    ...     add_sphere, build_scene_bvh, clear_scene, intersect_scene
    ... )
    >>> clear_scene()
    >>> add_sphere((0, 0, -1), 0.5, material_id=0)
    >>> add_sphere((0, -100.5, -1), 100, material_id=1)
    >>> build_scene_bvh()
    >>> # Use intersect_scene within a Taichi kernel
"""

import logging
from collections.abc import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from bvhtracer.geometry.aabb import AABB, hit_aabb
from bvhtracer.geometry.bvh import (
    BVHNode,
    FlatBVH,
    IntersectableKind,
    build_bvh,
    flatten_bvh,
)
from bvhtracer.geometry.sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    sphere_bounding_box,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: 1 if the ray intersected any primitive, 0 on a miss.
        t: The ray parameter of the nearest intersection.
        point: The intersection point.
        normal: Unit surface normal, oriented against the ray.
        front_face: 1 if the outside of the surface was hit, 0 otherwise.
        material_id: Material ID of the hit primitive, -1 on a miss.
        primitive: Index of the hit sphere, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32
    primitive: ti.i32


# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024

# A flattened BVH holds at most one internal node per primitive plus up to
# two leaf entries per primitive (single-object nodes alias their leaf)
MAX_BVH_NODES = 4 * MAX_SPHERES

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_motions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Flattened BVH storage (pre-order, see geometry.bvh.flatten_bvh)
bvh_kinds = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_primitives = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_escape = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_node_count = ti.field(dtype=ti.i32, shape=())

# Which intersectable the scene root is (IntersectableKind)
world_kind = ti.field(dtype=ti.i32, shape=())

# Host-side bounding boxes, indexed like the sphere fields
_sphere_boxes: list[AABB] = []
_world_box: AABB = AABB.EMPTY


def clear_scene() -> None:
    """Remove all primitives and reset the root to the flat list."""
    global _world_box
    num_spheres[None] = 0
    bvh_node_count[None] = 0
    world_kind[None] = int(IntersectableKind.LIST)
    _sphere_boxes.clear()
    _world_box = AABB.EMPTY


def add_sphere(
    center: Sequence[float],
    radius: float,
    material_id: int = 0,
    center2: Sequence[float] | None = None,
) -> int:
    """Add a sphere to the scene.

    Negative radii are clamped to 0; such spheres are never hit. Adding a
    primitive switches the root back to the flat list, since any existing
    BVH no longer covers the whole scene.

    Args:
        center: Center of the sphere at time 0.
        radius: The radius of the sphere.
        material_id: The material ID to associate with this sphere.
        center2: Center at time 1 for a moving sphere, or None.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    global _world_box
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")

    r = max(0.0, float(radius))
    c1 = [float(center[i]) for i in range(3)]
    motion = [0.0, 0.0, 0.0]
    if center2 is not None:
        motion = [float(center2[i]) - c1[i] for i in range(3)]

    sphere_centers[idx] = c1
    sphere_motions[idx] = motion
    sphere_radii[idx] = r
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1

    box = sphere_bounding_box(c1, r, center2)
    _sphere_boxes.append(box)
    _world_box = AABB.enclosing(_world_box, box)

    world_kind[None] = int(IntersectableKind.LIST)
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_world_bounding_box() -> AABB:
    """Union of every sphere's bounding box (EMPTY for an empty scene)."""
    return _world_box


def get_world_kind() -> IntersectableKind:
    return IntersectableKind(int(world_kind[None]))


def upload_bvh(flat: FlatBVH) -> None:
    """Copy a flattened BVH into the device fields and make it the root.

    Raises:
        RuntimeError: If the hierarchy has more entries than MAX_BVH_NODES.
    """
    n = flat.node_count
    if n > MAX_BVH_NODES:
        raise RuntimeError(f"Maximum number of BVH nodes ({MAX_BVH_NODES}) exceeded")

    kinds = np.zeros(MAX_BVH_NODES, dtype=np.int32)
    primitives = -np.ones(MAX_BVH_NODES, dtype=np.int32)
    box_min = np.zeros((MAX_BVH_NODES, 3), dtype=np.float32)
    box_max = np.zeros((MAX_BVH_NODES, 3), dtype=np.float32)
    escape = -np.ones(MAX_BVH_NODES, dtype=np.int32)

    kinds[:n] = flat.kinds
    primitives[:n] = flat.primitives
    box_min[:n] = flat.box_min
    box_max[:n] = flat.box_max
    escape[:n] = flat.escape

    bvh_kinds.from_numpy(kinds)
    bvh_primitives.from_numpy(primitives)
    bvh_box_min.from_numpy(box_min)
    bvh_box_max.from_numpy(box_max)
    bvh_escape.from_numpy(escape)
    bvh_node_count[None] = n
    world_kind[None] = int(IntersectableKind.BVH_NODE)


def build_scene_bvh() -> BVHNode:
    """Build a BVH over the current spheres and make it the scene root.

    Returns:
        The host-side root node.

    Raises:
        ValueError: If the scene has no spheres.
    """
    root = build_bvh(_sphere_boxes)
    flat = flatten_bvh(root)
    upload_bvh(flat)
    logger.info(
        "BVH root set: %d spheres, %d flattened nodes", len(_sphere_boxes), flat.node_count
    )
    return root


def use_list_root() -> None:
    """Make the flat sphere list the scene root (no acceleration)."""
    world_kind[None] = int(IntersectableKind.LIST)


@ti.func
def _load_sphere(idx: ti.i32) -> Sphere:
    return Sphere(
        center=sphere_centers[idx],
        motion=sphere_motions[idx],
        radius=sphere_radii[idx],
    )


@ti.func
def _hit_record_to_scene_hit_record(
    rec: HitRecord, material_id: ti.i32, primitive: ti.i32
) -> SceneHitRecord:
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        material_id=material_id,
        primitive=primitive,
    )


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
        primitive=-1,
    )


@ti.func
def _is_nearer(t: ti.f32, primitive: ti.i32, best_t: ti.f32, best_primitive: ti.i32) -> ti.i32:
    # Ties at equal t go to the lower primitive index
    nearer = 0
    if t < best_t:
        nearer = 1
    elif t == best_t and primitive < best_primitive:
        nearer = 1
    return nearer


@ti.func
def intersect_list(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Test ray against every sphere in the scene.

    Each sphere is tested against the full window; a hit replaces the
    current one only if it is nearer, or equally near with a lower
    primitive index.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        ray_time: Time at which the ray samples the scene.
        t_min: Exclusive lower bound for a valid hit.
        t_max: Exclusive upper bound for a valid hit.

    Returns:
        The nearest intersection, or a miss record.
    """
    closest_t = t_max
    closest_prim = MAX_SPHERES
    result = _make_miss_record()

    for i in range(num_spheres[None]):
        rec = hit_sphere(ray_origin, ray_direction, ray_time, _load_sphere(i), t_min, t_max)
        if rec.hit == 1 and _is_nearer(rec.t, i, closest_t, closest_prim) == 1:
            closest_t = rec.t
            closest_prim = i
            result = _hit_record_to_scene_hit_record(rec, sphere_material_ids[i], i)

    return result


@ti.func
def intersect_bvh(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Traverse the flattened BVH for the nearest intersection.

    Entries are visited in pre-order (left subtree before right). A node
    whose box misses the ray within (t_min, closest so far) is skipped by
    jumping to its escape link. Ties at equal t resolve to the lower
    primitive index, so the result matches intersect_list regardless of
    traversal order.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        ray_time: Time at which the ray samples the scene.
        t_min: Exclusive lower bound for a valid hit.
        t_max: Exclusive upper bound for a valid hit.

    Returns:
        The nearest intersection, or a miss record.
    """
    closest_t = t_max
    closest_prim = MAX_SPHERES
    result = _make_miss_record()

    node = 0
    if bvh_node_count[None] == 0:
        node = -1

    while node != -1:
        next_node = bvh_escape[node]
        if bvh_kinds[node] == int(IntersectableKind.SPHERE):
            idx = bvh_primitives[node]
            rec = hit_sphere(
                ray_origin, ray_direction, ray_time, _load_sphere(idx), t_min, t_max
            )
            if rec.hit == 1 and _is_nearer(rec.t, idx, closest_t, closest_prim) == 1:
                closest_t = rec.t
                closest_prim = idx
                result = _hit_record_to_scene_hit_record(rec, sphere_material_ids[idx], idx)
        elif hit_aabb(
            ray_origin, ray_direction, bvh_box_min[node], bvh_box_max[node], t_min, closest_t
        ) == 1:
            next_node = node + 1
        node = next_node

    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Nearest intersection with the scene root (list or BVH)."""
    result = _make_miss_record()
    if world_kind[None] == int(IntersectableKind.BVH_NODE):
        result = intersect_bvh(ray_origin, ray_direction, ray_time, t_min, t_max)
    else:
        result = intersect_list(ray_origin, ray_direction, ray_time, t_min, t_max)
    return result
