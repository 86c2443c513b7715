#!/usr/bin/env python3
"""Render the random spheres scene.

Builds the random spheres scene (ground, a grid of small diffuse/metal/glass
spheres and three large spheres), puts a BVH over it, and renders through a
defocused thin-lens camera with motion blur.

Usage:
    python -m examples.render_random_spheres [options]

Options:
    --width WIDTH       Image width in pixels; height follows 16:9 (default: 800)
    --samples SAMPLES   Samples per pixel (default: 250)
    --depth DEPTH       Maximum bounces (default: 50)
    --seed SEED         Seed for both the scene layout and the renderer (default: 0)
    --output OUTPUT     .ppm or .png path, or - for PPM on stdout (default: random_spheres.ppm)
    --batch-size SIZE   Samples per progress update (default: 10)
    --no-bvh            Intersect the flat sphere list instead of the BVH
    --gpu               Use the GPU backend
    --quiet             Suppress progress output

Example:
    python -m examples.render_random_spheres --width 400 --samples 32 --output out.png
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the random spheres scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=800, help="Image width in pixels (default: 800)")
    parser.add_argument("--samples", type=int, default=250, help="Samples per pixel (default: 250)")
    parser.add_argument("--depth", type=int, default=50, help="Maximum bounces (default: 50)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (default: 0)")
    parser.add_argument(
        "--output",
        type=str,
        default="random_spheres.ppm",
        help="Output .ppm/.png path, or - for PPM on stdout (default: random_spheres.ppm)",
    )
    parser.add_argument(
        "--batch-size", type=int, default=10, help="Samples per progress update (default: 10)"
    )
    parser.add_argument("--no-bvh", action="store_true", help="Use the flat sphere list")
    parser.add_argument("--gpu", action="store_true", help="Use the GPU backend")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(argv)


def render_random_spheres(
    width: int = 800,
    num_samples: int = 250,
    max_depth: int = 50,
    seed: int = 0,
    output_path: str = "random_spheres.ppm",
    batch_size: int = 10,
    use_bvh: bool = True,
    quiet: bool = False,
) -> Path | None:
    """Render the random spheres scene and write the image.

    Returns:
        Path to the saved image file, or None when written to stdout.
    """
    # Lazy imports so Taichi is initialized before any fields are declared
    from bvhtracer.core.progressive import ProgressiveRenderer
    from bvhtracer.output.export import save_png, write_ppm
    from bvhtracer.scene.presets import RandomSpheresParams, create_random_spheres_scene

    log = logging.getLogger("render_random_spheres")

    params = RandomSpheresParams(
        image_width=width,
        samples_per_pixel=num_samples,
        max_depth=max_depth,
        use_bvh=use_bvh,
    )
    scene, camera = create_random_spheres_scene(np.random.default_rng(seed), params)
    log.info(
        "Scene ready: %d spheres, root %s", scene.get_sphere_count(), scene.root_kind.name
    )

    renderer = ProgressiveRenderer(camera.image_width, camera.image_height)
    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples - {samples_per_sec:.1f} spp/s",
                end="",
                file=sys.stderr,
                flush=True,
            )

    renderer.render_camera(camera, batch_size=batch_size, callback=progress_callback)
    if not quiet:
        print(file=sys.stderr)

    image = renderer.get_image_numpy()
    if output_path == "-":
        write_ppm(sys.stdout, image)
        output_file = None
    else:
        output_file = Path(output_path)
        if output_file.suffix.lower() == ".png":
            save_png(output_file, image)
        else:
            write_ppm(output_file, image)

    log.info("Done in %.2fs", time.time() - start_time)
    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    from bvhtracer import init_taichi

    init_taichi(arch="gpu" if args.gpu else "cpu", seed=args.seed)

    try:
        render_random_spheres(
            width=args.width,
            num_samples=args.samples,
            max_depth=args.depth,
            seed=args.seed,
            output_path=args.output,
            batch_size=args.batch_size,
            use_bvh=not args.no_bvh,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
