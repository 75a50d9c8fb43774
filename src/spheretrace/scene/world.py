"""World storage and nearest-hit queries.

The world is the table of every sphere in the scene, stored in Taichi
fields so the rendering kernel can read it from all rows at once. Each
sphere carries the unified material id of the material it shares with
other spheres.

There is no acceleration structure: ``hit_world`` scans every sphere, and
each accepted hit becomes the new upper bound of the search interval, so a
later sphere can only replace it with something strictly closer.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.scene.world import add_sphere, clear_world, hit_world
    >>> clear_world()
    >>> add_sphere(ti.math.vec3(0, 0, -1), 0.5, material_id=0)
    >>> # Use hit_world within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from spheretrace.geometry.sphere import HitRecord, Sphere, hit_sphere

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class WorldHitRecord:
    """Record of a ray-world intersection with material information.

    Attributes:
        hit: 1 if the ray intersected any sphere, 0 if it missed.
        t: The ray parameter of the nearest intersection.
        point: The nearest intersection point.
        normal: Unit normal facing against the ray.
        front_face: 1 if the ray hit the outside of the surface.
        material_id: Unified material id of the hit sphere, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32


# Maximum number of spheres supported in the world
MAX_SPHERES = 1024

# Sphere storage: Structure of Arrays layout
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())


def clear_world() -> None:
    """Remove every sphere from the world.

    Field data is not zeroed; it is overwritten as new spheres are added.
    """
    num_spheres[None] = 0


def add_sphere(center: vec3, radius: float, material_id: int = 0) -> int:
    """Add a sphere to the world.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere.
        material_id: The unified material id shared by this sphere.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers[idx] = center
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the world."""
    return int(num_spheres[None])


@ti.func
def _to_world_hit_record(rec: HitRecord, material_id: ti.i32) -> WorldHitRecord:
    return WorldHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        material_id=material_id,
    )


@ti.func
def _make_miss_record() -> WorldHitRecord:
    return WorldHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
    )


@ti.func
def hit_world(
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> WorldHitRecord:
    """Find the nearest sphere hit by a ray.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction of the ray.
        t_min: Lower bound of the accepted interval (exclusive).
        t_max: Upper bound of the accepted interval (exclusive).

    Returns:
        The WorldHitRecord of the nearest intersection, or a miss record.
    """
    closest_t = t_max
    result = _make_miss_record()

    for i in range(num_spheres[None]):
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
        rec = hit_sphere(ray_origin, ray_direction, sphere, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _to_world_hit_record(rec, sphere_material_ids[i])

    return result

