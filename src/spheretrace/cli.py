"""Command line entry point for rendering sphere scenes.

Renders the random sphere field (or a scene loaded from JSON) and writes
the image as plain PPM text to stdout, or to a file whose suffix picks the
format.

Usage:
    spheretrace [options] > image.ppm

Options:
    --width WIDTH           Image width in pixels (default: 500)
    --aspect-ratio RATIO    Width / height (default: 1.5)
    --samples SAMPLES       Samples per pixel (default: 50)
    --max-depth DEPTH       Maximum bounces per ray (default: 50)
    --seed SEED             Seed for the per-pixel random streams (default: 0)
    --scene-seed SEED       Seed for the random scene (default: 0)
    --scene FILE            Load the scene from a JSON file
    --save-scene FILE       Save the scene to a JSON file
    --output PATH           Output path, "-" for PPM on stdout (default: -)
    --arch {cpu,gpu}        Taichi backend (default: cpu)
    --quiet / --verbose     Less or more logging on stderr

Example:
    spheretrace --width 200 --samples 10 --output spheres.png
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Sequence

logger = logging.getLogger("spheretrace")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="spheretrace",
        description="Render a field of spheres with a stochastic ray tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--width",
        type=int,
        default=500,
        help="Image width in pixels (default: 500)",
    )
    parser.add_argument(
        "--aspect-ratio",
        type=float,
        default=1.5,
        help="Image width divided by height (default: 1.5)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=50,
        help="Number of samples per pixel (default: 50)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=50,
        help="Maximum number of bounces per ray (default: 50)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Seed for the per-pixel random streams (default: 0)",
    )
    parser.add_argument(
        "--scene-seed",
        type=int,
        default=0,
        help="Seed for the random scene (default: 0)",
    )
    parser.add_argument(
        "--scene",
        type=str,
        default=None,
        help="Load the scene from a JSON file instead of generating it",
    )
    parser.add_argument(
        "--save-scene",
        type=str,
        default=None,
        help="Save the scene to a JSON file",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="-",
        help='Output path; "-" writes PPM to stdout (default: -)',
    )
    parser.add_argument(
        "--arch",
        choices=("cpu", "gpu"),
        default="cpu",
        help="Taichi backend; gpu falls back to cpu when unavailable (default: cpu)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--quiet",
        action="store_true",
        help="Only log warnings and errors",
    )
    verbosity.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def configure_logging(quiet: bool = False, verbose: bool = False) -> None:
    """Send log records to stderr; stdout carries the image."""
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT, force=True)


def initialize_taichi(arch: str = "cpu") -> str:
    """Initialize Taichi on the requested backend.

    Falls back to the CPU if the GPU backend cannot be initialized.
    Taichi is imported here, after its stdout banner is switched off, and
    its own log output is limited to warnings.

    Returns:
        Name of the backend being used.
    """
    os.environ["ENABLE_TAICHI_HEADER_PRINT"] = "False"
    import taichi as ti

    if arch == "gpu":
        try:
            ti.init(arch=ti.gpu, log_level=ti.WARN)
            return "GPU"
        except Exception as e:
            logger.warning("GPU backend unavailable (%s), falling back to CPU", e)

    ti.init(arch=ti.cpu, log_level=ti.WARN)
    return "CPU"


def run(args: argparse.Namespace) -> None:
    """Build the scene, render it and write the image.

    Taichi must already be initialized.
    """
    # Lazy imports to allow Taichi initialization first
    from spheretrace.core.renderer import RenderConfig, Renderer
    from spheretrace.scene.manager import SceneManager
    from spheretrace.scene.random_scene import create_random_camera, create_random_scene

    config = RenderConfig(
        image_width=args.width,
        aspect_ratio=args.aspect_ratio,
        samples_per_pixel=args.samples,
        max_depth=args.max_depth,
        seed=args.seed,
    )

    if args.scene:
        scene = SceneManager()
        scene.load_json(args.scene)
        camera = create_random_camera(args.aspect_ratio)
    else:
        scene, camera = create_random_scene(seed=args.scene_seed, aspect_ratio=args.aspect_ratio)
    logger.info(
        "Scene has %d spheres and %d materials",
        scene.get_sphere_count(),
        scene.get_material_count(),
    )

    if args.save_scene:
        scene.save_json(args.save_scene)

    renderer = Renderer(config, camera)
    renderer.render()

    if args.output == "-":
        renderer.write_ppm(sys.stdout)
    else:
        renderer.save_image(args.output)


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    args = parse_args(argv)
    configure_logging(quiet=args.quiet, verbose=args.verbose)

    backend = initialize_taichi(args.arch)
    logger.info("Using %s backend", backend)

    try:
        run(args)
        return 0
    except Exception as e:
        logger.error("Error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
