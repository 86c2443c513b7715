"""Tests for the progressive renderer.

Tests cover:
- Construction and resizing of the render target
- Batch rendering through the generator interface
- Progress callbacks
- Cooperative cancellation
- Rendering from a Camera configuration
- 8-bit and PNG image output
"""

import numpy as np
import pytest
from PIL import Image


def _setup_scene():
    from bvhtracer.camera.thin_lens import Camera, setup_camera
    from bvhtracer.scene.manager import SceneManager

    scene = SceneManager()
    scene.add_lambertian_sphere((0.0, 0.0, -2.0), 1.0, albedo=(0.5, 0.5, 0.5))
    camera = Camera(aspect_ratio=2.0, image_width=16, samples_per_pixel=4, max_depth=5)
    setup_camera(camera)
    return scene, camera


class TestProgressiveRendererSetup:
    def test_dimensions(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(32, 16)
        assert renderer.width == 32
        assert renderer.height == 16
        assert renderer.sample_count == 0

    def test_invalid_dimensions(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        with pytest.raises(ValueError):
            ProgressiveRenderer(0, 16)

    def test_resize_resets_samples(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(8, 8)
        renderer.render(2)
        renderer.resize(12, 6)
        assert (renderer.width, renderer.height) == (12, 6)
        assert renderer.sample_count == 0
        assert renderer.get_image_numpy().shape == (6, 12, 3)

    def test_repr(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(8, 4)
        assert repr(renderer) == "ProgressiveRenderer(width=8, height=4, samples=0)"


class TestProgressiveRendering:
    def test_generator_batches(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(8, 8)
        progress = list(renderer.render_progressive(num_samples=7, batch_size=3))
        assert progress == [(3, 7), (6, 7), (7, 7)]
        assert renderer.sample_count == 7

    def test_zero_samples_yields_nothing(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(8, 8)
        assert list(renderer.render_progressive(num_samples=0)) == []

    def test_callback(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(8, 8)
        calls = []
        assert renderer.render(4, batch_size=2, callback=lambda c, t: calls.append((c, t)))
        assert calls == [(2, 4), (4, 4)]

    def test_accumulates_across_calls(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(8, 8)
        renderer.render(2)
        calls = []
        renderer.render(2, callback=lambda c, t: calls.append((c, t)))
        assert calls == [(3, 4), (4, 4)]
        assert renderer.sample_count == 4

    def test_cancel_before_first_batch(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        renderer = ProgressiveRenderer(8, 8)
        assert renderer.render(5, should_cancel=lambda: True) is False
        assert renderer.sample_count == 0

    def test_cancel_between_batches(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(8, 8)
        polls = []

        def should_cancel():
            polls.append(renderer.sample_count)
            return renderer.sample_count >= 4

        assert renderer.render(10, batch_size=2, should_cancel=should_cancel) is False
        assert renderer.sample_count == 4
        assert polls == [0, 2, 4]

    def test_not_cancelled_after_last_batch(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(8, 8)
        assert renderer.render(2, batch_size=2, should_cancel=lambda: renderer.sample_count >= 2)
        assert renderer.sample_count == 2


class TestRenderCamera:
    def test_uses_camera_settings(self):
        from bvhtracer.core.integrator import get_max_depth
        from bvhtracer.core.progressive import ProgressiveRenderer

        _, camera = _setup_scene()
        renderer = ProgressiveRenderer(4, 4)
        renderer.render(1)
        assert renderer.render_camera(camera, batch_size=2)

        assert (renderer.width, renderer.height) == (16, 8)
        assert renderer.sample_count == camera.samples_per_pixel
        assert get_max_depth() == camera.max_depth

    def test_same_size_resets(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _, camera = _setup_scene()
        renderer = ProgressiveRenderer(16, 8)
        renderer.render(3)
        renderer.render_camera(camera)
        assert renderer.sample_count == camera.samples_per_pixel


class TestImageOutput:
    def test_uint8_image(self):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(16, 8)
        renderer.render(2)
        image = renderer.get_image_uint8()
        assert image.shape == (8, 16, 3)
        assert image.dtype == np.uint8
        assert image.max() <= 255

    def test_save_png(self, tmp_path):
        from bvhtracer.core.progressive import ProgressiveRenderer

        _setup_scene()
        renderer = ProgressiveRenderer(16, 8)
        renderer.render(1)
        path = tmp_path / "render.png"
        renderer.save_image(path)

        with Image.open(path) as img:
            assert img.size == (16, 8)
            assert img.mode == "RGB"
