"""Image encoding for rendered images.

Pixel values are linear colors, nominally in [0, 1]. Output applies a gamma 2
transfer (square root) and quantizes each channel as int(256 * clamp(x, 0,
0.999)), so every channel lands in [0, 255].

Supported formats:
    - PPM (plain-text P3)
    - PNG (8-bit via Pillow)

Example:
    >>> from bvhtracer.output.export import save_png, write_ppm
    >>> from bvhtracer.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(400, 225)
    >>> renderer.render(16)
    >>> image = renderer.get_image_numpy()
    >>> write_ppm("output.ppm", image)
    >>> save_png("output.png", image)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from os import PathLike
from typing import TextIO

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

# Upper clamp keeps 256 * x below 256
_INTENSITY_MAX = 0.999


def linear_to_gamma(values: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Gamma 2 transfer: sqrt of positive values, 0 for everything else."""
    arr = np.asarray(values, dtype=np.float64)
    return np.where(arr > 0.0, np.sqrt(np.maximum(arr, 0.0)), 0.0)


def image_to_rgb8(image: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Convert a linear (H, W, 3) image to gamma-encoded 8-bit channels.

    NaN channels are written as 0.

    Raises:
        ValueError: If the array is not of shape (H, W, 3).
    """
    arr = np.asarray(image, dtype=np.float64)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {arr.shape}")

    encoded = np.clip(linear_to_gamma(np.nan_to_num(arr, nan=0.0)), 0.0, _INTENSITY_MAX)
    return (256.0 * encoded).astype(np.uint8)


def iter_pixels(image: npt.ArrayLike) -> Iterator[tuple[int, int, int]]:
    """Yield 8-bit (r, g, b) triples row by row, starting at the top-left pixel."""
    rgb8 = image_to_rgb8(image)
    for row in rgb8:
        for r, g, b in row:
            yield int(r), int(g), int(b)


def _write_ppm_stream(stream: TextIO, image: npt.ArrayLike) -> None:
    arr = np.asarray(image)
    height, width = arr.shape[0], arr.shape[1]
    stream.write(f"P3\n{width} {height}\n255\n")
    for r, g, b in iter_pixels(arr):
        stream.write(f"{r} {g} {b}\n")


def write_ppm(target: str | PathLike[str] | TextIO, image: npt.ArrayLike) -> None:
    """Write an image as plain-text PPM (P3).

    Args:
        target: A file path, or an open text stream such as sys.stdout.
        image: Linear image array of shape (H, W, 3).
    """
    if hasattr(target, "write"):
        _write_ppm_stream(target, image)
        return
    with open(target, "w", encoding="ascii") as stream:
        _write_ppm_stream(stream, image)
    logger.info("Wrote PPM image to %s", target)


def save_png(filepath: str | PathLike[str], image: npt.ArrayLike) -> None:
    """Save an image as an 8-bit PNG using the same encoding as write_ppm.

    Args:
        filepath: Output file path.
        image: Linear image array of shape (H, W, 3).
    """
    pil_image = PILImage.fromarray(image_to_rgb8(image))
    pil_image.save(filepath)
    logger.info("Wrote PNG image to %s", filepath)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Root mean squared error between two images of the same shape.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
