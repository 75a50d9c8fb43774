"""Tests for the ray tracing integrator.

This module tests the core rendering functionality including:
- Render target setup and validation
- Sky gradient and material dispatch
- ray_color termination rules (depth, absorption, escape)
- Channel quantization
- Single sample and full image rendering

Note: Imports are done inside test methods so Taichi is initialized by the
conftest.py fixture before any module creates its fields.
"""

import math

import numpy as np
import pytest
import taichi as ti


def _ray_color_kernel():
    """Build a kernel evaluating ray_color for one ray."""
    from spheretrace.core.integrator import ray_color
    from spheretrace.core.ray import vec3

    result = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def evaluate(
        ox: ti.f32, oy: ti.f32, oz: ti.f32,
        dx: ti.f32, dy: ti.f32, dz: ti.f32,
        max_depth: ti.i32, stream: ti.i32,
    ):
        result[None] = ray_color(vec3(ox, oy, oz), vec3(dx, dy, dz), max_depth, stream)

    def run(origin, direction, max_depth, stream=0):
        evaluate(*origin, *direction, max_depth, stream)
        return result[None].to_numpy()

    return run


class TestRenderTargetSetup:
    """Test render target initialization and management."""

    def test_setup_sets_dimensions(self):
        from spheretrace.core.integrator import get_image_dimensions, setup_render_target

        setup_render_target(64, 48)
        assert get_image_dimensions() == (64, 48)

    @pytest.mark.parametrize("width,height", [(1, 10), (10, 1), (0, 0), (2049, 10), (10, 2049)])
    def test_invalid_dimensions_raise(self, width, height):
        from spheretrace.core.integrator import setup_render_target

        with pytest.raises(ValueError):
            setup_render_target(width, height)

    def test_minimum_size_accepted(self):
        from spheretrace.core.integrator import get_image_dimensions, setup_render_target

        setup_render_target(2, 2)
        assert get_image_dimensions() == (2, 2)

    def test_image_shapes(self):
        from spheretrace.core.integrator import (
            get_color_sum_numpy,
            get_image_uint8,
            setup_render_target,
        )

        setup_render_target(7, 5)
        pixels = get_image_uint8()
        sums = get_color_sum_numpy()

        assert pixels.shape == (5, 7, 3)
        assert pixels.dtype == np.uint8
        assert sums.shape == (5, 7, 3)
        assert (pixels == 0).all()

    def test_render_without_setup_raises(self):
        from spheretrace.core import integrator

        previous = integrator._render_target_initialized[None]
        integrator._render_target_initialized[None] = 0
        try:
            with pytest.raises(RuntimeError):
                integrator.render_image(1, 1, 0)
            with pytest.raises(RuntimeError):
                integrator.render_sample(0, 0)
            with pytest.raises(RuntimeError):
                integrator.get_image_uint8()
        finally:
            integrator._render_target_initialized[None] = previous

    @pytest.mark.parametrize("samples,depth", [(0, 5), (-1, 5), (1, -1)])
    def test_invalid_render_arguments_raise(self, samples, depth):
        from spheretrace.core.integrator import render_image, setup_render_target

        setup_render_target(4, 4)
        with pytest.raises(ValueError):
            render_image(samples, depth, 0)


class TestSkyColor:
    """Tests for the background gradient."""

    @pytest.mark.parametrize(
        "direction,expected",
        [
            ((0.0, 1.0, 0.0), (0.5, 0.7, 1.0)),
            ((0.0, -1.0, 0.0), (1.0, 1.0, 1.0)),
            ((1.0, 0.0, 0.0), (0.75, 0.85, 1.0)),
            ((0.0, 10.0, 0.0), (0.5, 0.7, 1.0)),
        ],
    )
    def test_gradient(self, direction, expected):
        from spheretrace.core.integrator import sky_color
        from spheretrace.core.ray import vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(x: ti.f32, y: ti.f32, z: ti.f32):
            result[None] = sky_color(vec3(x, y, z))

        test_kernel(*direction)
        np.testing.assert_allclose(result[None].to_numpy(), expected, atol=1e-6)


class TestRayColor:
    """Tests for ray_color termination and attenuation."""

    def test_depth_zero_is_black(self):
        run = _ray_color_kernel()
        color = run((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), 0)

        assert (color == 0.0).all()

    def test_empty_world_returns_sky(self):
        run = _ray_color_kernel()
        color = run((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), 50)

        np.testing.assert_allclose(color, (0.5, 0.7, 1.0), atol=1e-6)

    def test_unknown_material_absorbs(self):
        from spheretrace.core.ray import vec3
        from spheretrace.scene.world import add_sphere

        # No materials registered, so id 5 does not resolve
        add_sphere(vec3(0.0, 0.0, -3.0), 1.0, 5)
        run = _ray_color_kernel()
        color = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 50)

        assert (color == 0.0).all()

    def test_depth_exhausted_on_hit_is_black(self):
        from spheretrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -3.0), 1.0, (0.5, 0.5, 0.5))
        run = _ray_color_kernel()
        color = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 1)

        assert (color == 0.0).all()

    def test_single_diffuse_bounce_is_half_sky(self):
        """A scattered ray leaving a lone convex sphere always escapes."""
        from spheretrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, -3.0), 1.0, (0.5, 0.5, 0.5))
        run = _ray_color_kernel()

        for stream in range(20):
            color = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 2, stream)
            assert abs(color[2] - 0.5) < 1e-6
            assert 0.25 - 1e-6 <= color[0] <= 0.5 + 1e-6
            assert color[0] <= color[1] <= color[2] + 1e-6

    def test_mirror_sphere_reflects_sky(self):
        """A ray hitting a fuzz-free mirror head on returns along itself."""
        from spheretrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_metal_sphere((0.0, -3.0, 0.0), 1.0, (0.8, 0.6, 0.4), 0.0)
        run = _ray_color_kernel()
        color = run((0.0, 0.0, 0.0), (0.0, -1.0, 0.0), 50)

        # Reflected straight up into the zenith color
        np.testing.assert_allclose(color, (0.8 * 0.5, 0.6 * 0.7, 0.4 * 1.0), atol=1e-5)

    def test_glass_never_darkens_sky_to_black(self):
        from spheretrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_dielectric_sphere((0.0, 0.0, -3.0), 1.0, 1.5)
        run = _ray_color_kernel()

        for stream in range(10):
            color = run((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), 50, stream)
            # Clear glass only redirects; the ray ends in the sky
            assert 0.5 - 1e-5 <= color[0] <= 1.0 + 1e-5
            assert abs(color[2] - 1.0) < 1e-5


class TestQuantize:
    """Tests for channel quantization."""

    @pytest.mark.parametrize(
        "color_sum,samples,expected",
        [
            (0.0, 1, 0),
            (1.0, 1, 255),
            (100.0, 10, 255),
            (0.25, 1, 128),
            (12.5, 50, 128),
            (0.5, 1, math.floor(256 * math.sqrt(0.5))),
        ],
    )
    def test_quantize(self, color_sum, samples, expected):
        from spheretrace.core.integrator import quantize

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(c: ti.f32, n: ti.i32):
            result[None] = ti.cast(quantize(c, n), ti.i32)

        test_kernel(color_sum, samples)
        assert result[None] == expected


class TestRendering:
    """Tests for render_sample and render_image."""

    def _setup_sphere_scene(self, simple_camera):
        from spheretrace.camera.thin_lens import setup_camera
        from spheretrace.scene.manager import SceneManager

        scene = SceneManager()
        scene.add_lambertian_sphere((0.0, 0.0, 0.0), 1.0, (0.5, 0.5, 0.5))
        setup_camera(simple_camera)
        return scene

    def test_render_sample_returns_color(self, simple_camera):
        from spheretrace.core.integrator import render_sample, setup_render_target

        self._setup_sphere_scene(simple_camera)
        setup_render_target(9, 9)
        color = render_sample(4, 4, max_depth=5)

        assert len(color) == 3
        assert abs(color[2] - 0.5) < 1e-6

    def test_render_sample_on_unseeded_streams(self, simple_camera):
        """A fresh process has all-zero streams until the target is set up."""
        from spheretrace.core import sampler
        from spheretrace.core.integrator import render_sample, setup_render_target
        from spheretrace.core.ray import length_squared, random_in_unit_sphere

        self._setup_sphere_scene(simple_camera)
        sampler._rng_state.fill(0)
        setup_render_target(9, 9)

        assert all(sampler.get_stream_state(k) != 0 for k in range(81))

        lengths = ti.field(dtype=ti.f32, shape=81)

        @ti.kernel
        def draw_points():
            for k in range(81):
                lengths[k] = length_squared(random_in_unit_sphere(k))

        draw_points()
        assert lengths.to_numpy().max() < 1.0

        color = render_sample(4, 4, max_depth=5)
        assert abs(color[2] - 0.5) < 1e-6
        assert 0.25 - 1e-6 <= color[0] <= color[1] + 1e-6 <= 0.5 + 2e-6

    def test_render_sample_outside_image_raises(self, simple_camera):
        from spheretrace.core.integrator import render_sample, setup_render_target

        self._setup_sphere_scene(simple_camera)
        setup_render_target(9, 9)
        with pytest.raises(ValueError):
            render_sample(9, 0)

    def test_color_sum_matches_quantized_pixels(self, simple_camera):
        from spheretrace.core.integrator import (
            get_color_sum_numpy,
            get_image_uint8,
            render_image,
            setup_render_target,
        )

        self._setup_sphere_scene(simple_camera)
        setup_render_target(12, 8)
        render_image(samples_per_pixel=4, max_depth=5, seed=1)

        sums = get_color_sum_numpy()
        pixels = get_image_uint8()
        expected = np.floor(256.0 * np.clip(np.sqrt(sums / 4.0), 0.0, 0.999))

        assert np.abs(pixels.astype(np.int32) - expected.astype(np.int32)).max() <= 1
        assert np.isfinite(sums).all()
        assert (sums >= 0.0).all()

    def test_top_row_first(self, simple_camera):
        """The top row looks further up the sky gradient than the bottom row."""
        from spheretrace.core.integrator import get_image_uint8, render_image, setup_render_target
        from spheretrace.camera.thin_lens import setup_camera

        setup_camera(simple_camera)
        setup_render_target(6, 6)
        render_image(samples_per_pixel=2, max_depth=5, seed=0)
        pixels = get_image_uint8()

        # Sky red channel falls toward the zenith
        assert pixels[0, :, 0].mean() < pixels[-1, :, 0].mean()
        assert (pixels[:, :, 2] == 255).all()
