"""Thin-lens camera for primary ray generation.

The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view
- Depth of field through a defocus disk (defocus_angle > 0)
- Motion blur through a uniformly sampled ray time in [0, 1)

The orthonormal basis (u, v, w) is built from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport sits at focus_dist along -w and has height
2 * tan(vfov / 2) * focus_dist. Pixel (0, 0) is the top-left pixel; its
location is the viewport's top-left corner offset by half a pixel delta in
each direction, so pixels are addressed by their centers.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.camera.thin_lens import Camera, setup_camera
    >>> camera = Camera(aspect_ratio=16.0 / 9.0, image_width=400)
    >>> setup_camera(camera)
    >>> camera.image_height
    225
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from bvhtracer.core.ray import (
    Ray,
    make_ray,
    random_in_unit_disk,
    sample_square,
    vec3,
)

# =============================================================================
# Camera Configuration
# =============================================================================


@dataclass
class Camera:
    """Configuration for a thin-lens perspective camera.

    Attributes:
        aspect_ratio: Ratio of image width over height.
        image_width: Rendered image width in pixels.
        samples_per_pixel: Random samples averaged per pixel.
        max_depth: Maximum number of ray bounces.
        vfov: Vertical field of view in degrees.
        lookfrom: Camera position in world space.
        lookat: Point the camera is looking at.
        vup: Camera-relative up direction.
        defocus_angle: Cone angle in degrees of rays through each pixel;
            0 disables depth of field.
        focus_dist: Distance from lookfrom to the plane of perfect focus.
    """

    aspect_ratio: float = 1.0
    image_width: int = 100
    samples_per_pixel: int = 10
    max_depth: int = 10
    vfov: float = 90.0
    lookfrom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookat: tuple[float, float, float] = (0.0, 0.0, -1.0)
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    defocus_angle: float = 0.0
    focus_dist: float = 10.0

    @property
    def image_height(self) -> int:
        """Image height in pixels, at least 1."""
        return max(1, int(self.image_width / self.aspect_ratio))


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_center = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel00_loc = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel_delta_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Offset to pixel to the right
_pixel_delta_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Offset to pixel below

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())

# Defocus disk horizontal and vertical radius vectors
_defocus_disk_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_disk_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_angle = ti.field(dtype=ti.f32, shape=())


def setup_camera(camera: Camera) -> None:
    """Derive the viewport geometry from a camera configuration.

    Must be called from Python before rendering with the camera.

    Args:
        camera: Camera configuration.
    """
    width = camera.image_width
    height = camera.image_height

    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)
    viewport_height = 2.0 * h * camera.focus_dist
    viewport_width = viewport_height * (width / height)

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)
    v = np.cross(w, u)

    # Vectors across the horizontal and down the vertical viewport edges
    viewport_u = viewport_width * u
    viewport_v = viewport_height * -v

    pixel_delta_u = viewport_u / width
    pixel_delta_v = viewport_v / height

    viewport_upper_left = lookfrom - camera.focus_dist * w - viewport_u / 2.0 - viewport_v / 2.0
    pixel00_loc = viewport_upper_left + 0.5 * (pixel_delta_u + pixel_delta_v)

    defocus_radius = camera.focus_dist * math.tan(math.radians(camera.defocus_angle / 2.0))

    _camera_center[None] = lookfrom.tolist()
    _pixel00_loc[None] = pixel00_loc.tolist()
    _pixel_delta_u[None] = pixel_delta_u.tolist()
    _pixel_delta_v[None] = pixel_delta_v.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _defocus_disk_u[None] = (defocus_radius * u).tolist()
    _defocus_disk_v[None] = (defocus_radius * v).tolist()
    _defocus_angle[None] = camera.defocus_angle


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def defocus_disk_sample() -> vec3:
    """Random point on the camera's defocus disk."""
    p = random_in_unit_disk()
    return _camera_center[None] + p.x * _defocus_disk_u[None] + p.y * _defocus_disk_v[None]


@ti.func
def get_ray(i: ti.i32, j: ti.i32) -> Ray:
    """Generate a sample ray for pixel (i, j).

    The ray starts on the defocus disk (or at the camera center when depth
    of field is off), passes through a random point inside the pixel and
    carries a random time in [0, 1).

    Args:
        i: Pixel column (0 = left).
        j: Pixel row (0 = top).

    Returns:
        The camera ray. Its direction is not normalized.
    """
    offset = sample_square()
    pixel_sample = (
        _pixel00_loc[None]
        + (ti.cast(i, ti.f32) + offset.x) * _pixel_delta_u[None]
        + (ti.cast(j, ti.f32) + offset.y) * _pixel_delta_v[None]
    )

    ray_origin = _camera_center[None]
    if _defocus_angle[None] > 0.0:
        ray_origin = defocus_disk_sample()

    ray_time = ti.random(ti.f32)
    return make_ray(ray_origin, pixel_sample - ray_origin, ray_time)


@ti.func
def get_center_ray(i: ti.i32, j: ti.i32) -> Ray:
    """Deterministic ray from the camera center through the middle of pixel (i, j) at time 0."""
    pixel_center = (
        _pixel00_loc[None]
        + ti.cast(i, ti.f32) * _pixel_delta_u[None]
        + ti.cast(j, ti.f32) * _pixel_delta_v[None]
    )
    origin = _camera_center[None]
    return make_ray(origin, pixel_center - origin, 0.0)


# =============================================================================
# Utility Functions
# =============================================================================


def _as_tuple(vec) -> tuple[float, float, float]:
    return (float(vec[0]), float(vec[1]), float(vec[2]))


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with center, pixel00_loc, pixel_delta_u, pixel_delta_v,
        u, v, w, defocus_disk_u, defocus_disk_v and defocus_angle.
    """
    return {
        "center": _as_tuple(_camera_center[None]),
        "pixel00_loc": _as_tuple(_pixel00_loc[None]),
        "pixel_delta_u": _as_tuple(_pixel_delta_u[None]),
        "pixel_delta_v": _as_tuple(_pixel_delta_v[None]),
        "u": _as_tuple(_camera_u[None]),
        "v": _as_tuple(_camera_v[None]),
        "w": _as_tuple(_camera_w[None]),
        "defocus_disk_u": _as_tuple(_defocus_disk_u[None]),
        "defocus_disk_v": _as_tuple(_defocus_disk_v[None]),
        "defocus_angle": float(_defocus_angle[None]),
    }
