"""High-level renderer wrapping the integrator.

The Renderer class owns a RenderConfig, sets up the render target at the
configured size, runs one full render and hands back the quantized image.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.core.renderer import RenderConfig, Renderer
    >>> from spheretrace.scene.random_scene import create_random_scene
    >>>
    >>> scene, camera = create_random_scene(seed=0)
    >>> renderer = Renderer(RenderConfig(image_width=200), camera)
    >>> pixels = renderer.render()
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import numpy as np
import numpy.typing as npt

from spheretrace.camera.thin_lens import ThinLensCamera, setup_camera
from spheretrace.core.integrator import (
    MAX_DEPTH,
    SAMPLES_PER_PIXEL,
    get_color_sum_numpy,
    get_image_uint8,
    render_image,
    setup_render_target,
)
from spheretrace.output.export import save_image, write_ppm

logger = logging.getLogger(__name__)


@dataclass
class RenderConfig:
    """Image and sampling settings for a render.

    Attributes:
        image_width: Output width in pixels.
        aspect_ratio: Width divided by height; the height is derived from it.
        samples_per_pixel: Number of jittered rays averaged per pixel.
        max_depth: Maximum number of bounces per ray.
        seed: Seed for the per-pixel random streams.
    """

    image_width: int = 500
    aspect_ratio: float = 1.5
    samples_per_pixel: int = SAMPLES_PER_PIXEL
    max_depth: int = MAX_DEPTH
    seed: int = 0

    @property
    def image_height(self) -> int:
        """Image height, truncated from width / aspect_ratio."""
        return int(self.image_width / self.aspect_ratio)


class Renderer:
    """Render the current world through a camera.

    The world is whatever the active SceneManager has built; the renderer
    only reads it.

    Attributes:
        config: The render settings.
        camera: Camera to set up before rendering, or None to keep the
            camera that is already set up.
    """

    def __init__(self, config: RenderConfig | None = None, camera: ThinLensCamera | None = None) -> None:
        self.config = config if config is not None else RenderConfig()
        self.camera = camera
        self._pixels: npt.NDArray[np.uint8] | None = None

    @property
    def width(self) -> int:
        return self.config.image_width

    @property
    def height(self) -> int:
        return self.config.image_height

    def render(self) -> npt.NDArray[np.uint8]:
        """Render the image.

        Returns:
            uint8 array of shape (height, width, 3), top row first.

        Raises:
            ValueError: If the image size, sample count or depth is invalid.
        """
        if self.camera is not None:
            setup_camera(self.camera)

        setup_render_target(self.width, self.height)

        logger.info(
            "Rendering %dx%d at %d spp, max depth %d, seed %d",
            self.width,
            self.height,
            self.config.samples_per_pixel,
            self.config.max_depth,
            self.config.seed,
        )
        start = time.perf_counter()
        render_image(
            samples_per_pixel=self.config.samples_per_pixel,
            max_depth=self.config.max_depth,
            seed=self.config.seed,
        )
        self._pixels = get_image_uint8()
        logger.info("Render finished in %.2fs", time.perf_counter() - start)

        return self._pixels

    @property
    def pixels(self) -> npt.NDArray[np.uint8]:
        """The pixels of the last render.

        Raises:
            RuntimeError: If render() has not been called.
        """
        if self._pixels is None:
            raise RuntimeError("Nothing rendered yet. Call render() first.")
        return self._pixels

    def get_color_sum_numpy(self) -> npt.NDArray[np.float32]:
        """Get the per-pixel color sums of the last render."""
        return get_color_sum_numpy()

    def write_ppm(self, stream: TextIO) -> None:
        """Write the last render as plain PPM text to a stream."""
        write_ppm(self.pixels, stream)

    def save_image(self, filepath: str | Path) -> None:
        """Save the last render, choosing the format from the file suffix."""
        save_image(self.pixels, filepath)
