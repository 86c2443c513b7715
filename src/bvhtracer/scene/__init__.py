"""Scene module: sphere storage, scene-level intersection and scene building.

Components:
    intersection: Sphere fields, the flattened BVH and nearest-hit queries
    manager: Unified material ids and the SceneManager builder
    presets: Ready-made scenes

Scene data is organized for Taichi kernels:
    - Structure-of-Arrays layout for sphere data
    - A pre-order BVH array with escape links for stackless traversal
    - Contiguous material ID arrays
"""

from .intersection import (
    MAX_BVH_NODES,
    MAX_SPHERES,
    SceneHitRecord,
    add_sphere,
    build_scene_bvh,
    clear_scene,
    get_sphere_count,
    get_world_bounding_box,
    intersect_bvh,
    intersect_list,
    intersect_scene,
    upload_bvh,
    use_list_root,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    MaterialType,
    SceneConfig,
    SceneManager,
    SphereInfo,
    get_material_type,
    get_material_type_index,
)
from .presets import (
    RandomSpheresParams,
    create_random_spheres_scene,
    create_two_spheres_scene,
)

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "add_sphere",
    "clear_scene",
    "get_sphere_count",
    "get_world_bounding_box",
    "build_scene_bvh",
    "upload_bvh",
    "use_list_root",
    "intersect_list",
    "intersect_bvh",
    "intersect_scene",
    "MAX_SPHERES",
    "MAX_BVH_NODES",
    # Manager module
    "SceneManager",
    "MaterialType",
    "MaterialInfo",
    "SphereInfo",
    "SceneConfig",
    "MAX_MATERIALS",
    "get_material_type",
    "get_material_type_index",
    # Presets
    "RandomSpheresParams",
    "create_two_spheres_scene",
    "create_random_spheres_scene",
]
