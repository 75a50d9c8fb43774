"""Tests for image export utilities.

Tests cover:
- Plain PPM formatting and streaming
- File output (PPM and PNG) and loading
- Pixel array validation
- RMSE comparison
"""

import io

import numpy as np
import pytest

from spheretrace.output.export import (
    compute_rmse,
    format_ppm,
    format_ppm_header,
    iter_ppm_lines,
    load_image,
    save_image,
    save_png,
    save_ppm,
    write_ppm,
)


@pytest.fixture
def small_image():
    """A 3x2 image with distinct values in every channel."""
    return np.arange(2 * 3 * 3, dtype=np.uint8).reshape(2, 3, 3) * 10


class TestPPM:
    """Tests for plain PPM text output."""

    def test_header(self):
        assert format_ppm_header(200, 133) == "P3\n200 133\n255\n"

    def test_format_rows_top_to_bottom(self, small_image):
        lines = format_ppm(small_image).splitlines()

        assert lines[:3] == ["P3", "3 2", "255"]
        assert len(lines) == 3 + 6
        assert lines[3] == "0 10 20"
        assert lines[5] == "60 70 80"
        # First pixel of the second row
        assert lines[6] == "90 100 110"

    def test_write_matches_format(self, small_image):
        stream = io.StringIO()
        write_ppm(small_image, stream)

        assert stream.getvalue() == format_ppm(small_image)
        assert stream.getvalue().endswith("\n")

    def test_write_streams_pixel_lines(self, small_image):
        stream = io.StringIO()
        write_ppm(small_image, stream)

        body = stream.getvalue()[len(format_ppm_header(3, 2)):]
        assert body.splitlines(keepends=True) == list(iter_ppm_lines(small_image))

    def test_save_ppm(self, small_image, tmp_path):
        path = tmp_path / "image.ppm"
        save_ppm(small_image, path)

        assert path.read_text() == format_ppm(small_image)

    def test_write_error_propagates(self, small_image):
        stream = io.StringIO()
        stream.close()

        with pytest.raises(ValueError):
            write_ppm(small_image, stream)


class TestImageFiles:
    """Tests for Pillow-backed image files."""

    def test_png_round_trip(self, small_image, tmp_path):
        path = tmp_path / "image.png"
        save_png(small_image, path)

        loaded = load_image(path)
        assert loaded.dtype == np.uint8
        assert np.array_equal(loaded, small_image)

    @pytest.mark.parametrize("suffix", [".ppm", ".PPM", ".png", ".bmp"])
    def test_save_image_by_suffix(self, small_image, tmp_path, suffix):
        path = tmp_path / f"image{suffix}"
        save_image(small_image, path)

        assert np.array_equal(load_image(path), small_image)

    def test_save_image_ppm_is_plain_text(self, small_image, tmp_path):
        path = tmp_path / "image.ppm"
        save_image(small_image, path)

        assert path.read_text().startswith("P3\n3 2\n255\n")


class TestValidation:
    """Tests for pixel array validation."""

    @pytest.mark.parametrize(
        "pixels",
        [
            np.zeros((4, 4), dtype=np.uint8),
            np.zeros((4, 4, 4), dtype=np.uint8),
            np.zeros((4, 4, 3), dtype=np.float32),
        ],
    )
    def test_bad_pixels_raise(self, pixels, tmp_path):
        with pytest.raises(ValueError):
            format_ppm(pixels)
        with pytest.raises(ValueError):
            write_ppm(pixels, io.StringIO())
        with pytest.raises(ValueError):
            save_png(pixels, tmp_path / "bad.png")


class TestComputeRMSE:
    """Tests for image comparison."""

    def test_identical_images(self, small_image):
        assert compute_rmse(small_image, small_image.copy()) == 0.0

    def test_constant_offset(self):
        a = np.full((4, 4, 3), 100, dtype=np.uint8)
        b = np.full((4, 4, 3), 103, dtype=np.uint8)

        # No uint8 wraparound
        assert compute_rmse(a, b) == pytest.approx(3.0)
        assert compute_rmse(b, a) == pytest.approx(3.0)

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            compute_rmse(np.zeros((2, 2, 3)), np.zeros((2, 3, 3)))
