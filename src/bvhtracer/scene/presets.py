"""Preset scenes.

Two scenes are provided:

- create_two_spheres_scene: a small sphere resting on a huge "ground"
  sphere, seen from the origin looking down -z. Handy as a smoke test.
- create_random_spheres_scene: a ground sphere covered with a grid of small
  randomly placed spheres (80% moving diffuse, 15% metal, 5% glass) and three
  large feature spheres, viewed through a defocused lens.

Example:
    >>> import numpy as np
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.scene.presets import create_random_spheres_scene
    >>>
    >>> scene, camera = create_random_spheres_scene(np.random.default_rng(7))
    >>> camera.vfov
    20.0
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from bvhtracer.camera.thin_lens import Camera
from bvhtracer.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# =============================================================================
# Two Spheres
# =============================================================================

SMALL_SPHERE_CENTER = (0.0, 0.0, -1.0)
SMALL_SPHERE_RADIUS = 0.5
GROUND_SPHERE_CENTER = (0.0, -100.5, -1.0)
GROUND_SPHERE_RADIUS = 100.0


def create_two_spheres_scene(use_bvh: bool = True) -> tuple[SceneManager, Camera]:
    """Create a unit-diameter sphere at (0, 0, -1) above a ground sphere.

    The camera renders 400x225 from the origin toward -z, so the center
    pixel (200, 112) sees the small sphere.

    Args:
        use_bvh: Make a BVH the scene root instead of the flat list.

    Returns:
        Tuple of (SceneManager, Camera).
    """
    scene = SceneManager()

    small_mat = scene.add_lambertian_material(albedo=(0.1, 0.2, 0.5))
    ground_mat = scene.add_lambertian_material(albedo=(0.8, 0.8, 0.0))

    scene.add_sphere(SMALL_SPHERE_CENTER, SMALL_SPHERE_RADIUS, small_mat)
    scene.add_sphere(GROUND_SPHERE_CENTER, GROUND_SPHERE_RADIUS, ground_mat)

    if use_bvh:
        scene.build_bvh()

    camera = Camera(
        aspect_ratio=16.0 / 9.0,
        image_width=400,
        samples_per_pixel=100,
        max_depth=50,
    )
    return scene, camera


# =============================================================================
# Random Spheres
# =============================================================================

# Grid of small spheres: a and b each run over [-GRID_EXTENT, GRID_EXTENT)
GRID_EXTENT = 11
SMALL_RADIUS = 0.2

# No small sphere is placed this close to the metal feature sphere's footprint
EXCLUSION_POINT = (4.0, 0.2, 0.0)
EXCLUSION_RADIUS = 0.9

DIFFUSE_PROBABILITY = 0.8
METAL_PROBABILITY = 0.15


@dataclass
class RandomSpheresParams:
    """Render settings for the random spheres scene.

    Attributes:
        image_width: Output width in pixels (height follows 16:9).
        samples_per_pixel: Samples averaged per pixel.
        max_depth: Maximum number of bounces.
        use_bvh: Make a BVH the scene root instead of the flat list.
    """

    image_width: int = 800
    samples_per_pixel: int = 250
    max_depth: int = 50
    use_bvh: bool = True


def create_random_spheres_scene(
    rng: np.random.Generator | None = None,
    params: RandomSpheresParams | None = None,
) -> tuple[SceneManager, Camera]:
    """Create the random spheres scene.

    All randomness is drawn from rng, so the same seed always builds the
    same scene.

    Args:
        rng: Random generator for the scene layout. Defaults to an
            unseeded numpy generator.
        params: Render settings; defaults to RandomSpheresParams().

    Returns:
        Tuple of (SceneManager, Camera).
    """
    if rng is None:
        rng = np.random.default_rng()
    if params is None:
        params = RandomSpheresParams()

    scene = SceneManager()

    ground = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, ground)

    for a in range(-GRID_EXTENT, GRID_EXTENT):
        for b in range(-GRID_EXTENT, GRID_EXTENT):
            choose_mat = rng.random()
            center = (a + 0.9 * rng.random(), SMALL_RADIUS, b + 0.9 * rng.random())

            distance = math.dist(center, EXCLUSION_POINT)
            if distance <= EXCLUSION_RADIUS:
                continue

            if choose_mat < DIFFUSE_PROBABILITY:
                albedo = tuple(rng.random(3) * rng.random(3))
                mat = scene.add_lambertian_material(albedo)
                center2 = (center[0], center[1] + rng.uniform(0.0, 0.5), center[2])
                scene.add_moving_sphere(center, center2, SMALL_RADIUS, mat)
            elif choose_mat < DIFFUSE_PROBABILITY + METAL_PROBABILITY:
                albedo = tuple(rng.uniform(0.5, 1.0, 3))
                fuzz = rng.uniform(0.0, 0.5)
                mat = scene.add_metal_material(albedo, fuzz)
                scene.add_sphere(center, SMALL_RADIUS, mat)
            else:
                mat = scene.add_dielectric_material(1.5)
                scene.add_sphere(center, SMALL_RADIUS, mat)

    glass = scene.add_dielectric_material(1.5)
    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)

    diffuse = scene.add_lambertian_material(albedo=(0.4, 0.2, 0.1))
    scene.add_sphere((-4.0, 1.0, 0.0), 1.0, diffuse)

    metal = scene.add_metal_material(albedo=(0.7, 0.6, 0.5), fuzz=0.0)
    scene.add_sphere((4.0, 1.0, 0.0), 1.0, metal)

    logger.info(
        "Random spheres scene: %d spheres, %d materials",
        scene.get_sphere_count(),
        scene.get_material_count(),
    )

    if params.use_bvh:
        scene.build_bvh()

    camera = Camera(
        aspect_ratio=16.0 / 9.0,
        image_width=params.image_width,
        samples_per_pixel=params.samples_per_pixel,
        max_depth=params.max_depth,
        vfov=20.0,
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        defocus_angle=0.6,
        focus_dist=10.0,
    )
    return scene, camera
