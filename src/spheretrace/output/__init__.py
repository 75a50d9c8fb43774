"""Output module for writing rendered images.

Components:
    export: PPM text output, Pillow-backed PNG output and image comparison
"""

from .export import (
    compute_rmse,
    format_ppm,
    format_ppm_header,
    load_image,
    save_image,
    save_png,
    save_ppm,
    write_ppm,
)

__all__ = [
    "format_ppm",
    "format_ppm_header",
    "write_ppm",
    "save_ppm",
    "save_png",
    "save_image",
    "load_image",
    "compute_rmse",
]
