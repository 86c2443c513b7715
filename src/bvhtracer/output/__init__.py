"""Output module: gamma encoding and PPM/PNG writers."""

from .export import (
    compute_rmse,
    image_to_rgb8,
    iter_pixels,
    linear_to_gamma,
    save_png,
    write_ppm,
)

__all__ = [
    "linear_to_gamma",
    "image_to_rgb8",
    "iter_pixels",
    "write_ppm",
    "save_png",
    "compute_rmse",
]
