"""Ideal diffuse (Lambertian) scattering.

A diffuse hit sends the ray toward ``normal + random_in_unit_sphere()``,
which approximates a cosine-weighted lobe around the normal. The surface
never absorbs and always attenuates by its albedo, whatever the incoming
and outgoing directions are.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.materials.lambertian import add_lambertian_material
    >>> slot = add_lambertian_material((0.4, 0.2, 0.1))
"""

import taichi as ti
import taichi.math as tm

from spheretrace.core.ray import near_zero, random_in_unit_sphere
from spheretrace.materials.registry import check_albedo, claim_slot

vec3 = tm.vec3


@ti.func
def scatter_lambertian(albedo: vec3, normal: vec3, stream: ti.i32):
    """Scatter a ray off a diffuse surface.

    Args:
        albedo: Reflectance per channel.
        normal: Unit normal facing the incoming ray.
        stream: Random stream to draw from.

    Returns:
        ``(scattered_direction, attenuation, did_scatter)``. The direction
        is not normalized and did_scatter is always 1.
    """
    scattered_direction = normal + random_in_unit_sphere(stream)

    # The sample cancelled the normal
    if near_zero(scattered_direction):
        scattered_direction = normal

    did_scatter = 1
    return scattered_direction, albedo, did_scatter


# Registry

MAX_LAMBERTIAN_MATERIALS = 1024

lambertian_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Forget every diffuse material; slots are overwritten on reuse."""
    num_lambertian_materials[None] = 0


def add_lambertian_material(albedo: tuple[float, float, float]) -> int:
    """Store a diffuse albedo and return its registry slot.

    Raises:
        ValueError: If a channel lies outside [0, 1].
        RuntimeError: If all MAX_LAMBERTIAN_MATERIALS slots are taken.
    """
    color = check_albedo(albedo)
    slot = claim_slot(num_lambertian_materials, MAX_LAMBERTIAN_MATERIALS, "Lambertian")
    lambertian_albedos[slot] = vec3(*color)
    return slot


def get_lambertian_material_count() -> int:
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_albedo(material_idx: ti.i32) -> vec3:
    return lambertian_albedos[material_idx]


@ti.func
def scatter_lambertian_by_id(material_idx: ti.i32, normal: vec3, stream: ti.i32):
    """scatter_lambertian with the albedo of registry slot ``material_idx``."""
    return scatter_lambertian(get_lambertian_albedo(material_idx), normal, stream)
