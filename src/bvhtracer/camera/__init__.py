"""Camera module: thin-lens camera with defocus blur and ray time."""

from .thin_lens import (
    Camera,
    defocus_disk_sample,
    get_camera_info,
    get_center_ray,
    get_ray,
    setup_camera,
)

__all__ = [
    "Camera",
    "setup_camera",
    "get_ray",
    "get_center_ray",
    "defocus_disk_sample",
    "get_camera_info",
]
