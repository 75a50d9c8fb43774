"""Specular metal scattering with optional fuzz.

Metals mirror the unit incoming direction about the normal,
``R = I - 2(I . N)N``, then push the result by a random offset inside a
sphere of radius ``fuzz``. Larger fuzz gives blurrier highlights. A
perturbed ray that ends up below the surface is absorbed.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.materials.metal import add_metal_material
    >>> slot = add_metal_material((0.7, 0.6, 0.5), fuzz=0.0)
"""

import taichi as ti
import taichi.math as tm

from spheretrace.core.ray import random_in_unit_sphere, reflect
from spheretrace.materials.registry import check_albedo, claim_slot

vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
):
    """Reflect a ray off a metal surface.

    Args:
        albedo: Reflectance per channel.
        fuzz: Perturbation radius in [0, 1]; 0 is a perfect mirror.
        incident_direction: Incoming direction, any length.
        normal: Unit normal facing the incoming ray.
        stream: Random stream to draw from.

    Returns:
        ``(scattered_direction, attenuation, did_scatter)``. did_scatter is
        0 when the perturbed direction does not leave the surface.
    """
    mirrored = reflect(tm.normalize(incident_direction), normal)
    scattered_direction = mirrored + fuzz * random_in_unit_sphere(stream)

    did_scatter = 0
    if tm.dot(scattered_direction, normal) > 0.0:
        did_scatter = 1

    return scattered_direction, albedo, did_scatter


# Registry

MAX_METAL_MATERIALS = 1024

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clamp_fuzz(fuzz: float) -> float:
    """Clamp a fuzz value to [0, 1]."""
    return min(max(float(fuzz), 0.0), 1.0)


def clear_metal_materials() -> None:
    num_metal_materials[None] = 0


def add_metal_material(albedo: tuple[float, float, float], fuzz: float = 0.0) -> int:
    """Store a metal and return its registry slot.

    ``fuzz`` is clamped to [0, 1].

    Raises:
        ValueError: If an albedo channel lies outside [0, 1].
        RuntimeError: If all MAX_METAL_MATERIALS slots are taken.
    """
    color = check_albedo(albedo)
    slot = claim_slot(num_metal_materials, MAX_METAL_MATERIALS, "Metal")
    metal_albedos[slot] = vec3(*color)
    metal_fuzzes[slot] = clamp_fuzz(fuzz)
    return slot


def get_metal_material_count() -> int:
    return int(num_metal_materials[None])


@ti.func
def get_metal_albedo(material_idx: ti.i32) -> vec3:
    return metal_albedos[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzzes[material_idx]


@ti.func
def scatter_metal_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    stream: ti.i32,
):
    """scatter_metal with the parameters of registry slot ``material_idx``."""
    return scatter_metal(
        get_metal_albedo(material_idx),
        get_metal_fuzz(material_idx),
        incident_direction,
        normal,
        stream,
    )
