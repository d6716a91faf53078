#!/usr/bin/env python3
"""Render the Cornell box scene.

This script builds the Cornell box (coloured walls, ceiling light, an
aluminium box and a glass sphere), points the scene camera at it and renders
the image in progressive sample batches.

Usage:
    python -m examples.render_cornell_box [options]

Options:
    --width WIDTH       Image width in pixels (default: 512)
    --height HEIGHT     Image height in pixels (default: 512)
    --spp SPP           Samples per pixel in each batch (default: 16)
    --batches N         Number of batches to accumulate (default: 8)
    --depth DEPTH       Maximum bounces per path (default: 8)
    --filter NAME       Pixel filter, box or gaussian (default: box)
    --output OUTPUT     Output file path (default: cornell_box.png)
    --cpu               Force the CPU backend
    --quiet             Suppress progress output

Example:
    python -m examples.render_cornell_box --width 256 --height 256 --spp 64 --batches 16
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render the Cornell box scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=512, help="Image width in pixels (default: 512)")
    parser.add_argument("--height", type=int, default=512, help="Image height in pixels (default: 512)")
    parser.add_argument("--spp", type=int, default=16, help="Samples per pixel in each batch (default: 16)")
    parser.add_argument("--batches", type=int, default=8, help="Number of batches to accumulate (default: 8)")
    parser.add_argument("--depth", type=int, default=8, help="Maximum bounces per path (default: 8)")
    parser.add_argument(
        "--filter",
        choices=("box", "gaussian"),
        default="box",
        help="Pixel filter (default: box)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="cornell_box.png",
        help="Output file path (default: cornell_box.png)",
    )
    parser.add_argument("--cpu", action="store_true", help="Force the CPU backend")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def render_cornell_box(
    width: int = 512,
    height: int = 512,
    samples_per_pixel: int = 16,
    sample_batches: int = 8,
    max_ray_depth: int = 8,
    pixel_filter: str = "box",
    output_path: str = "cornell_box.png",
    quiet: bool = False,
) -> Path:
    """Render the Cornell box scene and save to file.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.pathtracer.camera.thin_lens import setup_camera
    from src.pathtracer.config import RenderConfig
    from src.pathtracer.core.progressive import ProgressiveRenderer
    from src.pathtracer.scene.cornell_box import create_cornell_box_scene

    config = RenderConfig(
        samples_per_pixel=samples_per_pixel,
        sample_batches=sample_batches,
        max_ray_depth=max_ray_depth,
        pixel_filter=pixel_filter,
    )

    if not quiet:
        print(f"Creating Cornell box scene ({width}x{height})...")

    scene, camera = create_cornell_box_scene()
    setup_camera(camera, aspect_ratio=width / height)

    if not quiet:
        stats = scene.stats()
        print(f"  {stats.instances} instances, {stats.triangles} triangles, {stats.light_triangles} light triangles")

    renderer = ProgressiveRenderer(width, height, config)

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            print(
                f"\r  Batch {current}/{target} ({100.0 * current / target:.1f}%) - {elapsed:.1f}s",
                end="",
                flush=True,
            )

    renderer.render(callback=progress_callback)

    if not quiet:
        print()  # Newline after progress

    output_file = Path(output_path)
    renderer.save_image(output_file, gamma=2.2)

    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {time.time() - start_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Use GPU if available, fall back to CPU
    if args.cpu:
        ti.init(arch=ti.cpu)
    else:
        ti.init(arch=ti.gpu)
    if not args.quiet:
        print(f"Using {ti.lang.impl.current_cfg().arch} backend")

    try:
        render_cornell_box(
            width=args.width,
            height=args.height,
            samples_per_pixel=args.spp,
            sample_batches=args.batches,
            max_ray_depth=args.depth,
            pixel_filter=args.filter,
            output_path=args.output,
            quiet=args.quiet,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
