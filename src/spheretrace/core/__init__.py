"""Core rendering module.

This module contains the fundamental building blocks for ray tracing:

Components:
    ray: Ray data structure, vector formulas and rejection samplers
    sampler: Per-pixel random streams (seeded xorshift32)
    integrator: Radiance estimate, render target and rendering kernel
    renderer: High-level Renderer wrapping the integrator

All compute-intensive operations use Taichi kernels; the outermost loop of
the rendering kernel runs image rows in parallel.
"""

from .ray import (
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    random_in_hemisphere,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_vec3,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)
from .sampler import (
    MAX_STREAMS,
    get_stream_state,
    random_float,
    random_range,
    seed_streams,
)

# Note: integrator and renderer are NOT imported here to avoid circular imports.
# Import directly from spheretrace.core.integrator or spheretrace.core.renderer.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "random_vec3",
    "random_in_unit_sphere",
    "random_in_hemisphere",
    "random_in_unit_disk",
    "MAX_STREAMS",
    "seed_streams",
    "get_stream_state",
    "random_float",
    "random_range",
]
