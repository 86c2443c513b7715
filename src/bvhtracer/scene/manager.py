"""Scene manager coordinating spheres, materials and the scene root.

Materials live in per-type registries (see bvhtracer.materials). The manager
hands out a unified material id for each registered material and records
which type and type-local index it maps to, in Taichi fields the integrator
reads when dispatching scatter calls. Primitives store only the unified id,
so any number of spheres can share one material.

The scene root is the flat sphere list until build_bvh() is called; adding a
sphere afterwards falls back to the list until the BVH is rebuilt.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> ground = scene.add_lambertian_material(albedo=(0.8, 0.8, 0.0))
    >>> scene.add_sphere((0, -100.5, -1), 100, ground)
    >>> scene.add_dielectric_sphere((0, 0, -1), 0.5, ior=1.5)
    >>> scene.build_bvh()
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import taichi as ti

from bvhtracer.geometry.aabb import AABB
from bvhtracer.geometry.bvh import BVHNode, IntersectableKind, tree_depth
from bvhtracer.materials.dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
)
from bvhtracer.materials.lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
)
from bvhtracer.materials.metal import (
    add_metal_material,
    clear_metal_materials,
)
from bvhtracer.scene import intersection

logger = logging.getLogger(__name__)

Vec3 = tuple[float, float, float]


class MaterialType(IntEnum):
    """Closed set of material variants, used for scatter dispatch."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


# Maximum number of materials across all types
MAX_MATERIALS = 1024

# material_types[i] is the MaterialType of unified material id i and
# material_type_indices[i] its index in that type's registry
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Material type for a unified id, or -1 if the id is not registered."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Type-local registry index for a unified id, or -1 if not registered."""
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class MaterialInfo:
    """Host-side record of a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: Which registry the material lives in.
        type_index: Index within that registry.
        params: The parameters the material was created with.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """Host-side record of a sphere.

    Attributes:
        sphere_index: Index in the sphere fields.
        center: Center at time 0.
        radius: The radius as stored (negative inputs clamped to 0).
        material_id: Unified material ID.
        center2: Center at time 1 for a moving sphere, else None.
    """

    sphere_index: int
    center: Vec3
    radius: float
    material_id: int
    center2: Vec3 | None = None

    @property
    def is_moving(self) -> bool:
        return self.center2 is not None


@dataclass
class SceneConfig:
    """Serializable scene description.

    Attributes:
        materials: Material configurations, in unified id order.
        spheres: Sphere configurations.
        use_bvh: Whether the root is a BVH rather than the flat list.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    use_bvh: bool = False


def _vec3(values: Sequence[float]) -> Vec3:
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Build a scene of spheres and materials and choose its root.

    Attributes:
        materials: MaterialInfo for every registered material.
        spheres: SphereInfo for every sphere in the scene.
        bvh_root: Host-side BVH root when the BVH is the scene root.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_lambertian_material(albedo=(0.8, 0.1, 0.1))
        >>> gold = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3)
        >>> scene.add_sphere((0, 0, -1), 0.5, red)
        >>> scene.add_moving_sphere((1, 0, -1), (1, 0.5, -1), 0.5, gold)
        >>> scene.build_bvh()
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.bvh_root: BVHNode | None = None
        self._clear_all()

    def _clear_all(self) -> None:
        intersection.clear_scene()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        self.materials.clear()
        self.spheres.clear()
        self.bvh_root = None

    def clear(self) -> None:
        """Remove every primitive and material, resetting all fields."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register(
        self, material_type: MaterialType, type_index: int, params: dict[str, Any]
    ) -> int:
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(self, albedo: Sequence[float]) -> int:
        """Add a diffuse material.

        Returns:
            The unified material ID.

        Raises:
            RuntimeError: If a material registry is full.
            ValueError: If any albedo component is outside [0, 1].
        """
        albedo = _vec3(albedo)
        type_index = add_lambertian_material(albedo)
        return self._register(MaterialType.LAMBERTIAN, type_index, {"albedo": albedo})

    def add_metal_material(self, albedo: Sequence[float], fuzz: float = 0.0) -> int:
        """Add a metal material; fuzz is clamped to [0, 1].

        Returns:
            The unified material ID.

        Raises:
            RuntimeError: If a material registry is full.
            ValueError: If any albedo component is outside [0, 1].
        """
        albedo = _vec3(albedo)
        fuzz = min(max(float(fuzz), 0.0), 1.0)
        type_index = add_metal_material(albedo, fuzz)
        return self._register(MaterialType.METAL, type_index, {"albedo": albedo, "fuzz": fuzz})

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric material.

        Returns:
            The unified material ID.

        Raises:
            RuntimeError: If a material registry is full.
            ValueError: If ior is not positive.
        """
        type_index = add_dielectric_material(ior)
        return self._register(MaterialType.DIELECTRIC, type_index, {"ior": float(ior)})

    def get_material_count(self) -> int:
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Host-side material type lookup (see get_material_type for kernels)."""
        info = self.get_material_info(material_id)
        return info.material_type if info is not None else None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _add(
        self,
        center: Sequence[float],
        radius: float,
        material_id: int,
        center2: Sequence[float] | None,
    ) -> int:
        if material_id < 0 or material_id >= num_materials[None]:
            raise ValueError(f"Invalid material_id: {material_id}")

        sphere_index = intersection.add_sphere(center, radius, material_id, center2)
        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=_vec3(center),
                radius=max(0.0, float(radius)),
                material_id=material_id,
                center2=_vec3(center2) if center2 is not None else None,
            )
        )
        # A BVH built before this sphere no longer covers the scene
        self.bvh_root = None
        return sphere_index

    def add_sphere(self, center: Sequence[float], radius: float, material_id: int) -> int:
        """Add a stationary sphere.

        Args:
            center: The center point as (x, y, z).
            radius: The radius; negative values are clamped to 0.
            material_id: Unified material ID.

        Returns:
            The index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If material_id is not registered.
        """
        return self._add(center, radius, material_id, None)

    def add_moving_sphere(
        self,
        center1: Sequence[float],
        center2: Sequence[float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere moving linearly from center1 (time 0) to center2 (time 1).

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If material_id is not registered.
        """
        return self._add(center1, radius, material_id, center2)

    def add_lambertian_sphere(
        self, center: Sequence[float], radius: float, albedo: Sequence[float]
    ) -> tuple[int, int]:
        """Add a sphere with a new diffuse material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_lambertian_material(albedo)
        return self.add_sphere(center, radius, material_id), material_id

    def add_metal_sphere(
        self,
        center: Sequence[float],
        radius: float,
        albedo: Sequence[float],
        fuzz: float = 0.0,
    ) -> tuple[int, int]:
        """Add a sphere with a new metal material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_metal_material(albedo, fuzz)
        return self.add_sphere(center, radius, material_id), material_id

    def add_dielectric_sphere(
        self, center: Sequence[float], radius: float, ior: float = 1.5
    ) -> tuple[int, int]:
        """Add a sphere with a new dielectric material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_dielectric_material(ior)
        return self.add_sphere(center, radius, material_id), material_id

    # =========================================================================
    # Scene Root
    # =========================================================================

    def build_bvh(self) -> BVHNode:
        """Build a BVH over all spheres and make it the scene root.

        Raises:
            ValueError: If the scene has no spheres.
        """
        self.bvh_root = intersection.build_scene_bvh()
        logger.info(
            "Built BVH over %d spheres (depth %d)",
            len(self.spheres),
            tree_depth(self.bvh_root),
        )
        return self.bvh_root

    def use_list(self) -> None:
        """Make the flat sphere list the scene root."""
        intersection.use_list_root()
        self.bvh_root = None

    @property
    def root_kind(self) -> IntersectableKind:
        return intersection.get_world_kind()

    def bounding_box(self) -> AABB:
        """Bounding box of the whole scene (EMPTY when there are no spheres)."""
        return intersection.get_world_bounding_box()

    def get_sphere_count(self) -> int:
        return intersection.get_sphere_count()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        config = SceneConfig(use_bvh=self.bvh_root is not None)

        for mat in self.materials:
            params = {k: list(v) if isinstance(v, tuple) else v for k, v in mat.params.items()}
            config.materials.append({"type": mat.material_type.name.lower(), **params})

        for sphere in self.spheres:
            sphere_config: dict[str, Any] = {
                "center": list(sphere.center),
                "radius": sphere.radius,
                "material_id": sphere.material_id,
            }
            if sphere.center2 is not None:
                sphere_config["center2"] = list(sphere.center2)
            config.spheres.append(sphere_config)

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Replace the current scene with the one described by config.

        Raises:
            ValueError: If a material type is unknown or a sphere references an
                unregistered material.
        """
        self.clear()

        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            if mat_type == "lambertian":
                self.add_lambertian_material(mat_config.get("albedo", [0.5, 0.5, 0.5]))
            elif mat_type == "metal":
                self.add_metal_material(
                    mat_config.get("albedo", [0.8, 0.8, 0.8]),
                    mat_config.get("fuzz", 0.0),
                )
            elif mat_type == "dielectric":
                self.add_dielectric_material(mat_config.get("ior", 1.5))
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere_config in config.spheres:
            center = sphere_config.get("center", [0, 0, 0])
            radius = sphere_config.get("radius", 1.0)
            material_id = sphere_config.get("material_id", 0)
            center2 = sphere_config.get("center2")
            if center2 is not None:
                self.add_moving_sphere(center, center2, radius, material_id)
            else:
                self.add_sphere(center, radius, material_id)

        if config.use_bvh and self.spheres:
            self.build_bvh()

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a JSON-serializable dictionary."""
        config = self.to_config()
        return {
            "materials": config.materials,
            "spheres": config.spheres,
            "use_bvh": config.use_bvh,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary produced by to_dict."""
        config = SceneConfig(
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
            use_bvh=data.get("use_bvh", False),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        return intersection.MAX_SPHERES

    @staticmethod
    def get_max_materials() -> int:
        return MAX_MATERIALS
