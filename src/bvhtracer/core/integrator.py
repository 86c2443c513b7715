"""Path tracing integrator.

For a camera ray the integrator evaluates

    ray_color(r, depth) = black                                  if depth <= 0
                        = background(r)                          on a miss
                        = black                                  if absorbed
                        = attenuation * ray_color(scattered, depth - 1)

The recursion is unrolled into a bounded loop over max_depth bounces that
carries the product of attenuations (the throughput). Each pixel stores the
running mean of its samples, so render_image() can be called repeatedly to
refine an image.

Pixel (i, j) follows the camera's convention: i = 0 is the left column and
j = 0 is the top row.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.core.integrator import (
    ...     render_image, set_max_depth, setup_render_target
    ... )
    >>> from bvhtracer.scene.presets import create_two_spheres_scene
    >>> from bvhtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_two_spheres_scene()
    >>> setup_camera(camera)
    >>> setup_render_target(camera.image_width, camera.image_height)
    >>> set_max_depth(camera.max_depth)
    >>> render_image(num_samples=16)
"""

import logging
import math
from dataclasses import dataclass
from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from bvhtracer.camera.thin_lens import get_center_ray, get_ray
from bvhtracer.core.ray import unit_vector
from bvhtracer.materials.dielectric import get_dielectric_ior, scatter_dielectric
from bvhtracer.materials.lambertian import get_lambertian_albedo, scatter_lambertian
from bvhtracer.materials.metal import get_metal_albedo, get_metal_fuzz, scatter_metal
from bvhtracer.scene.intersection import intersect_scene
from bvhtracer.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Lower bound keeps scattered rays from re-hitting their own surface
T_MIN = 0.001
T_MAX = math.inf

# Background gradient endpoints (bottom to top)
SKY_BOTTOM = vec3(1.0, 1.0, 1.0)
SKY_TOP = vec3(0.5, 0.7, 1.0)

DEFAULT_MAX_DEPTH = 10


class ShadingMode(IntEnum):
    """What a camera ray evaluates to."""

    PATH = 0  # full path tracing
    NORMALS = 1  # 0.5 * (normal + 1) at the first hit, background otherwise


_max_depth = ti.field(dtype=ti.i32, shape=())
_shading_mode = ti.field(dtype=ti.i32, shape=())


def set_max_depth(depth: int) -> None:
    """Set the bounce limit; 0 or less renders every pixel black."""
    _max_depth[None] = max(0, int(depth))


def get_max_depth() -> int:
    return int(_max_depth[None])


def set_shading_mode(mode: ShadingMode) -> None:
    _shading_mode[None] = int(mode)


def get_shading_mode() -> ShadingMode:
    return ShadingMode(int(_shading_mode[None]))


def reset_integrator_settings() -> None:
    """Restore the default bounce limit and shading mode."""
    set_max_depth(DEFAULT_MAX_DEPTH)
    set_shading_mode(ShadingMode.PATH)


reset_integrator_settings()


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Preallocated to avoid kernel recompilation when the image size changes
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Running mean of the samples of each pixel, indexed [i, j]
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Set the active image size and clear the buffers.

    Raises:
        ValueError: If a dimension is not positive or exceeds the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions ({width}x{height}) must be positive")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1
    clear_render_target()


def clear_render_target() -> None:
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(
    material_id: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Scatter off whichever material the unified id refers to.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). An unknown
        material id absorbs the ray.
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter = scatter_lambertian(
            get_lambertian_albedo(type_index), normal
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal(
            get_metal_albedo(type_index), get_metal_fuzz(type_index), incident_direction, normal
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            get_dielectric_ior(type_index), incident_direction, normal, front_face
        )

    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def background_color(direction: vec3) -> vec3:
    """Vertical white to sky-blue gradient over the normalized y direction."""
    a = 0.5 * (unit_vector(direction).y + 1.0)
    return (1.0 - a) * SKY_BOTTOM + a * SKY_TOP


@ti.func
def ray_color(origin: vec3, direction: vec3, time: ti.f32, max_depth: ti.i32) -> vec3:
    """Estimate the color carried back along a ray.

    Args:
        origin: Ray origin.
        direction: Ray direction (any length).
        time: Ray time; scattered rays keep it.
        max_depth: Number of bounces allowed.

    Returns:
        The sampled color. Black when the path is absorbed or runs out of
        bounces before escaping to the background.
    """
    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_scene(origin, direction, time, T_MIN, T_MAX)

            if rec.hit == 0:
                color = throughput * background_color(direction)
                active = 0
            else:
                scattered_direction, attenuation, did_scatter = _scatter_material(
                    rec.material_id, direction, rec.normal, rec.front_face
                )
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    origin = rec.point
                    direction = scattered_direction

    return color


@ti.func
def normal_color(origin: vec3, direction: vec3, time: ti.f32, max_depth: ti.i32) -> vec3:
    """Map the first-hit normal into [0, 1] colors, background on a miss."""
    color = vec3(0.0, 0.0, 0.0)
    if max_depth > 0:
        rec = intersect_scene(origin, direction, time, T_MIN, T_MAX)
        if rec.hit == 1:
            color = 0.5 * (rec.normal + vec3(1.0, 1.0, 1.0))
        else:
            color = background_color(direction)
    return color


@ti.func
def render_sample_impl(pixel_i: ti.i32, pixel_j: ti.i32) -> vec3:
    """One camera sample of pixel (i, j) in the current shading mode."""
    ray = get_ray(pixel_i, pixel_j)
    max_depth = _max_depth[None]
    color = vec3(0.0, 0.0, 0.0)
    if _shading_mode[None] == int(ShadingMode.NORMALS):
        color = normal_color(ray.origin, ray.direction, ray.time, max_depth)
    else:
        color = ray_color(ray.origin, ray.direction, ray.time, max_depth)
    return color


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32):
    """Trace one sample through every pixel and fold it into the running mean."""
    for i, j in ti.ndrange(width, height):
        color = render_sample_impl(i, j)

        # NaN/Inf from degenerate geometry would poison the mean
        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0

        _sample_count[i, j] += 1
        n = _sample_count[i, j]
        _color_buffer[i, j] += (color - _color_buffer[i, j]) / ti.cast(n, ti.f32)


@ti.kernel
def _render_single_pixel(pixel_i: ti.i32, pixel_j: ti.i32) -> vec3:
    return render_sample_impl(pixel_i, pixel_j)


_probe_hit = ti.field(dtype=ti.i32, shape=())
_probe_t = ti.field(dtype=ti.f32, shape=())
_probe_material_id = ti.field(dtype=ti.i32, shape=())
_probe_primitive = ti.field(dtype=ti.i32, shape=())
_probe_normal = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _probe_pixel_kernel(pixel_i: ti.i32, pixel_j: ti.i32):
    ray = get_center_ray(pixel_i, pixel_j)
    rec = intersect_scene(ray.origin, ray.direction, ray.time, T_MIN, T_MAX)
    _probe_hit[None] = rec.hit
    _probe_t[None] = rec.t
    _probe_material_id[None] = rec.material_id
    _probe_primitive[None] = rec.primitive
    _probe_normal[None] = rec.normal


@dataclass
class PixelProbe:
    """What the center ray of a pixel hits first.

    Attributes:
        hit: Whether the ray hit any geometry.
        t: Ray parameter of the hit (direction is not normalized).
        material_id: Unified material ID of the hit, -1 on a miss.
        primitive: Sphere index of the hit, -1 on a miss.
        normal: Unit normal at the hit, facing the ray.
    """

    hit: bool
    t: float
    material_id: int
    primitive: int
    normal: tuple[float, float, float]


# =============================================================================
# Public Rendering API
# =============================================================================


def probe_pixel(pixel_i: int, pixel_j: int) -> PixelProbe:
    """Intersect the deterministic center ray of pixel (i, j) with the scene.

    Needs a camera set up with setup_camera(); no render target is required.
    """
    _probe_pixel_kernel(pixel_i, pixel_j)
    n = _probe_normal[None]
    return PixelProbe(
        hit=bool(_probe_hit[None]),
        t=float(_probe_t[None]),
        material_id=int(_probe_material_id[None]),
        primitive=int(_probe_primitive[None]),
        normal=(float(n[0]), float(n[1]), float(n[2])),
    )


def render_sample(pixel_i: int, pixel_j: int) -> tuple[float, float, float]:
    """Render one sample of a single pixel without touching the buffers.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    color = _render_single_pixel(pixel_i, pixel_j)
    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(num_samples: int = 1) -> None:
    """Accumulate num_samples more samples into every pixel.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    logger.debug("Rendering %d spp at %dx%d", num_samples, width, height)
    for _ in range(num_samples):
        _render_one_spp(width, height)


def get_total_samples() -> int:
    """Samples accumulated per pixel so far (read from pixel (0, 0)).

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_image_numpy() -> np.ndarray:
    """Mean linear color per pixel, shape (height, width, 3), row 0 at the top.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    image = _color_buffer.to_numpy()[:width, :height, :]
    # (width, height, 3) -> (height, width, 3); j already counts from the top
    return np.transpose(image, (1, 0, 2)).astype(np.float32)


def get_normalized_image_numpy() -> np.ndarray:
    """Like get_image_numpy(), clamped to [0, 1].

    Raises:
        RuntimeError: If render target has not been set up.
    """
    return np.clip(get_image_numpy(), 0.0, 1.0).astype(np.float32)
