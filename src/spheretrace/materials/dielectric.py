"""Clear dielectric (glass/water) scattering.

Glass never absorbs: a ray hitting it is either reflected or refracted and
the attenuation is white. When Snell's law has no solution (total internal
reflection) the ray reflects. Otherwise it reflects with the probability
given by Schlick's approximation of the Fresnel reflectance and refracts
the rest of the time.

Key physics:
    - Snell's law: n1 * sin(theta1) = n2 * sin(theta2)
    - Total internal reflection when (n1 / n2) * sin(theta1) > 1
    - Schlick: R = R0 + (1 - R0)(1 - cos(theta))^5, R0 = ((1 - n)/(1 + n))^2

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.materials.dielectric import add_dielectric_material
    >>> slot = add_dielectric_material(ior=1.5)
"""

import taichi as ti
import taichi.math as tm

from spheretrace.core.ray import reflect, refract, schlick_fresnel
from spheretrace.core.sampler import random_float
from spheretrace.materials.registry import claim_slot

vec3 = tm.vec3


@ti.func
def refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """Ratio n_incident / n_transmitted seen by a ray at a glass boundary."""
    ratio = ior
    if front_face == 1:
        ratio = 1.0 / ior
    return ratio


@ti.func
def _cos_incidence(unit_direction: vec3, normal: vec3) -> ti.f32:
    return tm.min(tm.dot(-unit_direction, normal), 1.0)


@ti.func
def _cannot_refract(ratio: ti.f32, cos_theta: ti.f32) -> ti.i32:
    sin_theta = ti.sqrt(1.0 - cos_theta * cos_theta)
    result = 0
    if ratio * sin_theta > 1.0:
        result = 1
    return result


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
):
    """Reflect or refract a ray at a glass boundary.

    Args:
        ior: Index of refraction of the material.
        incident_direction: Incoming direction, any length.
        normal: Unit normal facing the incoming ray.
        front_face: 1 if the ray enters the material, 0 if it leaves.
        stream: Random stream to draw from.

    Returns:
        ``(scattered_direction, attenuation, did_scatter)`` with a unit
        direction, white attenuation and did_scatter always 1.
    """
    ratio = refraction_ratio(ior, front_face)
    unit_direction = tm.normalize(incident_direction)
    cos_theta = _cos_incidence(unit_direction, normal)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if _cannot_refract(ratio, cos_theta):
        scattered_direction = reflect(unit_direction, normal)
    elif random_float(stream) < schlick_fresnel(cos_theta, ior):
        scattered_direction = reflect(unit_direction, normal)
    else:
        scattered_direction = refract(unit_direction, normal, ratio)

    attenuation = vec3(1.0, 1.0, 1.0)
    did_scatter = 1
    return scattered_direction, attenuation, did_scatter


@ti.func
def will_reflect(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.i32:
    """1 if the ray is totally internally reflected, 0 otherwise."""
    cos_theta = _cos_incidence(tm.normalize(incident_direction), normal)
    return _cannot_refract(refraction_ratio(ior, front_face), cos_theta)


@ti.func
def fresnel_reflectance(ior: ti.f32, incident_direction: vec3, normal: vec3) -> ti.f32:
    """Schlick reflectance probability for a ray hitting the boundary."""
    return schlick_fresnel(_cos_incidence(tm.normalize(incident_direction), normal), ior)


# Registry

MAX_DIELECTRIC_MATERIALS = 1024

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Store a dielectric and return its registry slot.

    Raises:
        ValueError: If ``ior`` is below 1 (air).
        RuntimeError: If all MAX_DIELECTRIC_MATERIALS slots are taken.
    """
    if ior < 1.0:
        raise ValueError(f"Index of refraction {ior} is below 1.0")

    slot = claim_slot(num_dielectric_materials, MAX_DIELECTRIC_MATERIALS, "Dielectric")
    dielectric_iors[slot] = ior
    return slot


def get_dielectric_material_count() -> int:
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]


@ti.func
def scatter_dielectric_by_id(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    stream: ti.i32,
):
    """scatter_dielectric with the index of refraction of registry slot ``material_idx``."""
    ior = get_dielectric_ior(material_idx)
    return scatter_dielectric(ior, incident_direction, normal, front_face, stream)
