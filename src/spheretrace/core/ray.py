"""Ray data structure, vector utilities and Monte Carlo samplers.

This module provides the Ray dataclass together with the vector formulas the
scattering laws depend on (mirror reflection, Snell refraction, Schlick
reflectance) and the rejection samplers used by materials and the camera.
All operations are Taichi functions for use inside kernels.

Samplers take a ``stream`` argument: the index of the per-pixel random
stream to draw from (see ``spheretrace.core.sampler``).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

from spheretrace.core.sampler import random_float

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Attempts before a rejection sampler gives up (acceptance is ~52% or better)
MAX_REJECTION_ATTEMPTS = 100


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to
            be unit length.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Any real number, including negative.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    return tm.normalize(v)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    return tm.cross(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a unit normal.

    Args:
        incident: The incoming direction vector.
        normal: The surface normal (unit length).

    Returns:
        incident - 2 * dot(incident, normal) * normal.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract a unit incident vector through a surface (Snell's law).

    The result is split into the components perpendicular and parallel to
    the normal. The parallel part uses the absolute value under the square
    root, so the caller must detect total internal reflection beforehand.

    Args:
        incident: The incoming direction (unit length).
        normal: The surface normal facing the incident ray (unit length).
        eta_ratio: Ratio of refractive indices, n_incident / n_transmitted.

    Returns:
        The refracted direction.
    """
    cos_theta = tm.min(tm.dot(-incident, normal), 1.0)
    r_out_perp = eta_ratio * (incident + cos_theta * normal)
    r_out_parallel = -ti.sqrt(ti.abs(1.0 - length_squared(r_out_perp))) * normal
    return r_out_perp + r_out_parallel


@ti.func
def schlick_fresnel(cosine: ti.f32, ref_idx: ti.f32) -> ti.f32:
    """Compute Fresnel reflectance using Schlick's approximation.

    Args:
        cosine: Cosine of the angle between incident direction and normal.
        ref_idx: Index of refraction. ``ior`` and ``1 / ior`` give the same
            normal-incidence reflectance.

    Returns:
        R0 + (1 - R0) * (1 - cosine)^5 with R0 = ((1 - n) / (1 + n))^2.
    """
    r0 = ((1.0 - ref_idx) / (1.0 + ref_idx)) ** 2
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Returns:
        1 if every component has magnitude below 1e-8, 0 otherwise.
    """
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_vec3(stream: ti.i32, lo: ti.f32, hi: ti.f32) -> vec3:
    """Draw a vector with each component uniform in [lo, hi)."""
    x = lo + (hi - lo) * random_float(stream)
    y = lo + (hi - lo) * random_float(stream)
    z = lo + (hi - lo) * random_float(stream)
    return vec3(x, y, z)


@ti.func
def random_in_unit_sphere(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit sphere.

    Rejection sampling: draw uniformly in [-1, 1]^3 until the point lies
    strictly inside the sphere.

    Args:
        stream: Random stream to draw from.

    Returns:
        A random point with length < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if not found:
            p = random_vec3(stream, -1.0, 1.0)
            if length_squared(p) < 1.0:
                found = True
    return p


@ti.func
def random_in_hemisphere(normal: vec3, stream: ti.i32) -> vec3:
    """Generate a random point in the unit half-ball above a surface.

    Draws a unit-sphere sample and negates it when it points into the
    surface.

    Args:
        normal: The surface normal defining the hemisphere.
        stream: Random stream to draw from.

    Returns:
        A point p with |p| < 1 and dot(p, normal) >= 0.
    """
    in_unit_sphere = random_in_unit_sphere(stream)
    result = in_unit_sphere
    if tm.dot(in_unit_sphere, normal) <= 0.0:
        result = -in_unit_sphere
    return result


@ti.func
def random_in_unit_disk(stream: ti.i32) -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used for thin-lens aperture sampling.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if not found:
            x = random_float(stream) * 2.0 - 1.0
            y = random_float(stream) * 2.0 - 1.0
            p = vec3(x, y, 0.0)
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p
