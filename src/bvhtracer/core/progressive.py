"""Progressive renderer for iterative sample accumulation.

Wraps the integrator's render target with:
- Batch rendering (several samples per pixel per step)
- Progress callbacks and a generator interface
- Cooperative cancellation checked between batches
- Rendering straight from a Camera configuration

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from bvhtracer.core.progressive import ProgressiveRenderer
    >>> from bvhtracer.scene.presets import create_two_spheres_scene
    >>>
    >>> scene, camera = create_two_spheres_scene()
    >>> renderer = ProgressiveRenderer(camera.image_width, camera.image_height)
    >>> renderer.render_camera(camera)
    >>> image = renderer.get_image_numpy()
"""

import logging
from collections.abc import Callable, Generator
from os import PathLike

import numpy as np
import numpy.typing as npt

from bvhtracer.camera.thin_lens import Camera, setup_camera
from bvhtracer.core.integrator import (
    clear_render_target,
    get_image_numpy,
    get_total_samples,
    render_image,
    set_max_depth,
    setup_render_target,
)
from bvhtracer.output.export import image_to_rgb8, save_png

logger = logging.getLogger(__name__)

# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]

# Polled between batches; returning True stops the render
CancelCheck = Callable[[], bool]


class ProgressiveRenderer:
    """A progressive renderer that accumulates samples over time.

    The renderer keeps its own width/height and delegates to the global
    integrator buffers (which are Taichi fields).

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
    """

    def __init__(self, width: int, height: int) -> None:
        """Initialize the progressive renderer.

        Raises:
            ValueError: If dimensions are not positive or exceed 2048.
        """
        self._width = width
        self._height = height
        setup_render_target(width, height)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sample_count(self) -> int:
        """Samples accumulated per pixel so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Discard accumulated samples, keeping the image size."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Resize the render target and reset the accumulator.

        Raises:
            ValueError: If dimensions are not positive or exceed 2048.
        """
        self._width = width
        self._height = height
        setup_render_target(width, height)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Render samples in batches, yielding progress after each batch.

        Args:
            num_samples: Total number of samples to add.
            batch_size: Number of samples to render before each yield.

        Yields:
            Tuple of (current_total_samples, target_total_samples).
        """
        if num_samples <= 0:
            return

        batch_size = max(1, batch_size)
        target_samples = self.sample_count + num_samples

        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            render_image(batch)
            remaining -= batch
            yield (self.sample_count, target_samples)

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> bool:
        """Add samples to the image, optionally reporting progress.

        Args:
            num_samples: Total number of samples to add.
            batch_size: Number of samples rendered between callbacks and
                cancellation checks.
            callback: Called after each batch with
                (current_total_samples, target_total_samples).
            should_cancel: Polled before each batch; the render stops as soon
                as it returns True. Samples already accumulated are kept.

        Returns:
            True if all samples were rendered, False if cancelled.

        Example:
            >>> def progress(current, target):
            ...     print(f"Progress: {current}/{target} samples")
            >>> renderer.render(100, batch_size=10, callback=progress)
        """
        if should_cancel is not None and should_cancel():
            logger.info("Render cancelled before the first batch")
            return False

        for current, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(current, target)
            if current < target and should_cancel is not None and should_cancel():
                logger.info("Render cancelled at %d/%d samples", current, target)
                return False
        return True

    def render_camera(
        self,
        camera: Camera,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> bool:
        """Render a fresh image with a camera's resolution, depth and sample count.

        Returns:
            True if all samples were rendered, False if cancelled.
        """
        setup_camera(camera)
        set_max_depth(camera.max_depth)
        if (camera.image_width, camera.image_height) != (self._width, self._height):
            self.resize(camera.image_width, camera.image_height)
        else:
            self.reset()

        logger.info(
            "Rendering %dx%d at %d spp, max depth %d",
            camera.image_width,
            camera.image_height,
            camera.samples_per_pixel,
            camera.max_depth,
        )
        return self.render(camera.samples_per_pixel, batch_size, callback, should_cancel)

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Linear image of shape (height, width, 3), row 0 at the top."""
        return get_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """Gamma-encoded 8-bit image of shape (height, width, 3)."""
        return image_to_rgb8(self.get_image_numpy())

    def save_image(self, filepath: str | PathLike[str]) -> None:
        save_png(filepath, self.get_image_numpy())

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
