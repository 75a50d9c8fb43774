"""Image export utilities for rendered images.

Rendered images are 8-bit RGB arrays of shape (height, width, 3) with the
top row first, already averaged and gamma corrected by the renderer.

Supported formats:
    - PPM (plain text P3), the renderer's native output
    - PNG (8-bit via Pillow)

Example:
    >>> import sys
    >>> from spheretrace.output.export import write_ppm
    >>> write_ppm(pixels, sys.stdout)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TextIO

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)

PPM_MAX_VALUE = 255


def _check_pixels(pixels: npt.NDArray[np.uint8]) -> npt.NDArray[np.uint8]:
    array = np.asarray(pixels)
    if array.ndim != 3 or array.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (H, W, 3), got {array.shape}")
    if array.dtype != np.uint8:
        raise ValueError(f"Expected uint8 pixels, got {array.dtype}")
    return array


def format_ppm_header(width: int, height: int) -> str:
    """Return the plain PPM header for an image of the given size."""
    return f"P3\n{width} {height}\n{PPM_MAX_VALUE}\n"


def iter_ppm_lines(pixels: npt.NDArray[np.uint8]):
    """Yield one ``"R G B\\n"`` line per pixel, rows top to bottom."""
    array = _check_pixels(pixels)
    for row in array:
        for r, g, b in row:
            yield f"{r} {g} {b}\n"


def format_ppm(pixels: npt.NDArray[np.uint8]) -> str:
    """Format an image as plain PPM text.

    Args:
        pixels: uint8 array of shape (H, W, 3), top row first.

    Returns:
        ``P3``, ``<W> <H>`` and ``255`` header lines followed by W * H
        lines of ``R G B``.

    Raises:
        ValueError: If the array has the wrong shape or dtype.
    """
    array = _check_pixels(pixels)
    height, width, _ = array.shape
    return format_ppm_header(width, height) + "".join(iter_ppm_lines(array))


def write_ppm(pixels: npt.NDArray[np.uint8], stream: TextIO) -> None:
    """Write an image as plain PPM text to an open text stream.

    Write failures propagate to the caller.
    """
    array = _check_pixels(pixels)
    height, width, _ = array.shape
    stream.write(format_ppm_header(width, height))
    stream.writelines(iter_ppm_lines(array))
    stream.flush()


def save_ppm(pixels: npt.NDArray[np.uint8], filepath: str | Path) -> None:
    """Save an image as a plain PPM file."""
    path = Path(filepath)
    with path.open("w", encoding="ascii", newline="\n") as f:
        write_ppm(pixels, f)
    logger.info("Wrote %s", path)


def save_png(pixels: npt.NDArray[np.uint8], filepath: str | Path) -> None:
    """Save an image as an 8-bit PNG file using Pillow."""
    array = _check_pixels(pixels)
    pil_image = PILImage.fromarray(np.ascontiguousarray(array))
    pil_image.save(filepath)
    logger.info("Wrote %s", filepath)


def save_image(pixels: npt.NDArray[np.uint8], filepath: str | Path) -> None:
    """Save an image, choosing the format from the file suffix.

    ``.ppm`` writes plain PPM text; any other suffix Pillow understands
    (``.png``, ``.bmp``, ...) is written through Pillow.
    """
    path = Path(filepath)
    if path.suffix.lower() == ".ppm":
        save_ppm(pixels, path)
    else:
        save_png(pixels, path)


def load_image(filepath: str | Path) -> npt.NDArray[np.uint8]:
    """Load an image file into a uint8 array of shape (H, W, 3)."""
    with PILImage.open(filepath) as img:
        return np.asarray(img.convert("RGB"), dtype=np.uint8)


def compute_rmse(
    image_a: npt.NDArray[np.generic],
    image_b: npt.NDArray[np.generic],
) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(
            f"Image shapes must match: {image_a.shape} vs {image_b.shape}"
        )

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
