"""Recursive ray tracing integrator for the sphere world.

This module estimates the color seen along a camera ray and runs the
rendering kernel that averages many such estimates per pixel.

A ray that misses the world picks up the sky gradient. A ray that hits a
sphere is scattered by the sphere's material and its color is attenuated
by the material's attenuation. Absorbed rays and rays that run out of
bounces contribute black. The recursion is unrolled into a loop that
carries the running product of attenuations (the throughput).

Each pixel owns a random stream, and the kernel's outermost loop runs over
image rows, so rows are rendered in parallel and every pixel's samples
depend only on the seed and the pixel's position.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.core.integrator import (
    ...     get_image_uint8, render_image, setup_render_target
    ... )
    >>> from spheretrace.scene.random_scene import create_random_scene
    >>> from spheretrace.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_scene()
    >>> setup_camera(camera)
    >>> setup_render_target(500, 333)
    >>> render_image(samples_per_pixel=50, max_depth=50, seed=0)
    >>> pixels = get_image_uint8()
"""

import numpy as np
import taichi as ti
import taichi.math as tm

from spheretrace.camera.thin_lens import get_ray_jittered
from spheretrace.core.sampler import seed_streams
from spheretrace.materials.dielectric import scatter_dielectric_by_id
from spheretrace.materials.lambertian import scatter_lambertian_by_id
from spheretrace.materials.metal import scatter_metal_by_id
from spheretrace.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)
from spheretrace.scene.world import hit_world

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Maximum ray bounces (path length)
MAX_DEPTH = 50

SAMPLES_PER_PIXEL = 50

# Accepted hit interval; t_min keeps scattered rays off their own surface
T_MIN = 0.001
T_MAX = tm.inf

# Sky gradient endpoints
SKY_HORIZON_COLOR = vec3(1.0, 1.0, 1.0)
SKY_ZENITH_COLOR = vec3(0.5, 0.7, 1.0)

# Largest fraction that still quantizes below 256
MAX_INTENSITY = 0.999


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Smallest dimension for which pixel coordinates divide by (size - 1)
MIN_IMAGE_SIZE = 2

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Per-pixel color sums and quantized pixels, indexed [row, column] with
# row 0 at the top of the image
_color_sum = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))
_pixels = ti.field(dtype=ti.u8, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, 3))

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffers.

    Sets the active image dimensions, clears the buffers and seeds one
    random stream per pixel with seed 0, so single samples drawn before
    the first render_image call come from live streams.

    Args:
        width: Image width in pixels, in [2, MAX_IMAGE_WIDTH].
        height: Image height in pixels, in [2, MAX_IMAGE_HEIGHT].

    Raises:
        ValueError: If a dimension is out of range.
    """
    if not MIN_IMAGE_SIZE <= width <= MAX_IMAGE_WIDTH:
        raise ValueError(
            f"Image width {width} outside supported range "
            f"[{MIN_IMAGE_SIZE}, {MAX_IMAGE_WIDTH}]"
        )
    if not MIN_IMAGE_SIZE <= height <= MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image height {height} outside supported range "
            f"[{MIN_IMAGE_SIZE}, {MAX_IMAGE_HEIGHT}]"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()
    seed_streams(0, width * height)


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_sum.fill(0.0)
    _pixels.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions.

    Returns:
        Tuple of (width, height).
    """
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Radiance Estimate
# =============================================================================


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Blend white at the horizon into light blue overhead.

    The blend factor is 0.5 * (unit_direction.y + 1).
    """
    unit_direction = tm.normalize(direction)
    t = 0.5 * (unit_direction.y + 1.0)
    return (1.0 - t) * SKY_HORIZON_COLOR + t * SKY_ZENITH_COLOR


@ti.func
def scatter_material(
    material_id: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
):
    """Dispatch to the scattering law of a material.

    Args:
        material_id: The unified material ID.
        incident_direction: The incoming ray direction (any length).
        normal: The surface normal facing the incoming ray.
        front_face: 1 if the ray hit the outside of the surface.
        stream: Random stream to draw from.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). Unknown
        material ids absorb the ray.
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter = scatter_lambertian_by_id(
            type_index, normal, stream
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal_by_id(
            type_index, incident_direction, normal, stream
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric_by_id(
            type_index, incident_direction, normal, front_face, stream
        )

    return scattered_direction, attenuation, did_scatter


@ti.func
def ray_color(
    origin: vec3,
    direction: vec3,
    max_depth: ti.i32,
    stream: ti.i32,
) -> vec3:
    """Estimate the color seen along a ray.

    Equivalent to the recursive definition
        color(ray, 0) = black
        color(ray, d) = sky(ray)                       on a miss
                      = black                          if absorbed
                      = attenuation * color(scattered, d - 1)
    """
    color = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction

    # Taichi doesn't support break in ti.func loops
    active = 1

    for depth in range(max_depth):
        if active == 1:
            rec = hit_world(ray_origin, ray_direction, T_MIN, T_MAX)

            if rec.hit == 0:
                color = throughput * sky_color(ray_direction)
                active = 0
            else:
                scattered_direction, attenuation, did_scatter = scatter_material(
                    rec.material_id, ray_direction, rec.normal, rec.front_face, stream
                )

                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    ray_origin = rec.point
                    ray_direction = scattered_direction

    return color


@ti.func
def quantize(color_sum: ti.f32, samples: ti.i32) -> ti.u8:
    """Turn a channel's color sum into an 8-bit intensity.

    Averages over the samples, applies gamma 2 and maps [0, 0.999] to
    [0, 255] by truncation.
    """
    value = tm.clamp(ti.sqrt(color_sum / ti.cast(samples, ti.f32)), 0.0, MAX_INTENSITY)
    return ti.cast(256.0 * value, ti.u8)


@ti.func
def _pixel_stream(row: ti.i32, column: ti.i32, width: ti.i32) -> ti.i32:
    return row * width + column


@ti.func
def render_pixel_sample(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
    stream: ti.i32,
) -> vec3:
    """Trace one jittered camera ray through pixel (pixel_i, pixel_j).

    pixel_j = 0 is the bottom row.
    """
    ray = get_ray_jittered(pixel_i, pixel_j, width, height, stream)
    return ray_color(ray.origin, ray.direction, max_depth, stream)


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_rows(width: ti.i32, height: ti.i32, samples: ti.i32, max_depth: ti.i32):
    # Only the outermost loop is parallel: one task per image row
    for row in range(height):
        pixel_j = height - 1 - row
        for pixel_i in range(width):
            stream = _pixel_stream(row, pixel_i, width)
            color_sum = vec3(0.0, 0.0, 0.0)
            for sample in range(samples):
                color_sum += render_pixel_sample(
                    pixel_i, pixel_j, width, height, max_depth, stream
                )

            _color_sum[row, pixel_i] = color_sum
            for c in ti.static(range(3)):
                _pixels[row, pixel_i, c] = quantize(color_sum[c], samples)


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
) -> vec3:
    stream = _pixel_stream(height - 1 - pixel_j, pixel_i, width)
    return render_pixel_sample(pixel_i, pixel_j, width, height, max_depth, stream)


# =============================================================================
# Public Rendering API
# =============================================================================


def _validate_render_args(samples_per_pixel: int, max_depth: int) -> None:
    if samples_per_pixel < 1:
        raise ValueError(f"samples_per_pixel must be at least 1, got {samples_per_pixel}")
    if max_depth < 0:
        raise ValueError(f"max_depth must be non-negative, got {max_depth}")


def render_image(
    samples_per_pixel: int = SAMPLES_PER_PIXEL,
    max_depth: int = MAX_DEPTH,
    seed: int = 0,
) -> None:
    """Render every pixel of the render target.

    Reseeds the per-pixel random streams from ``seed`` and overwrites the
    previous result, so two calls with the same scene, camera and seed
    produce identical images regardless of thread scheduling.

    Args:
        samples_per_pixel: Number of jittered rays averaged per pixel.
        max_depth: Maximum number of bounces per ray.
        seed: Seed for the per-pixel random streams.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If samples_per_pixel < 1 or max_depth < 0.
    """
    _check_render_target_initialized()
    _validate_render_args(samples_per_pixel, max_depth)

    width, height = get_image_dimensions()
    seed_streams(seed, width * height)
    _render_rows(width, height, samples_per_pixel, max_depth)


def render_sample(pixel_i: int, pixel_j: int, max_depth: int = MAX_DEPTH) -> tuple[float, float, float]:
    """Render a single sample for a specific pixel.

    This is a Python-callable function for testing. It draws from the
    pixel's stream without reseeding it.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        max_depth: Maximum number of bounces.

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If render target has not been set up.
        ValueError: If the pixel is outside the image or max_depth < 0.
    """
    _check_render_target_initialized()
    _validate_render_args(1, max_depth)

    width, height = get_image_dimensions()
    if not (0 <= pixel_i < width and 0 <= pixel_j < height):
        raise ValueError(f"Pixel ({pixel_i}, {pixel_j}) outside {width}x{height} image")

    color = _render_single_pixel(pixel_i, pixel_j, width, height, max_depth)
    return (float(color[0]), float(color[1]), float(color[2]))


def get_color_sum_numpy() -> np.ndarray:
    """Get the per-pixel color sums of the last render.

    Returns:
        float32 array of shape (height, width, 3), top row first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    return _color_sum.to_numpy()[:height, :width, :].astype(np.float32)


def get_image_uint8() -> np.ndarray:
    """Get the quantized pixels of the last render.

    Returns:
        uint8 array of shape (height, width, 3), top row first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    return np.ascontiguousarray(_pixels.to_numpy()[:height, :width, :], dtype=np.uint8)
