"""Geometry module for shape primitives.

Components:
    sphere: Sphere primitive with ray-sphere intersection

Intersection routines are Taichi functions (@ti.func) so they can be called
from the rendering kernel. There is no acceleration structure: the world
tests every sphere for every ray.
"""

from .sphere import HitRecord, Sphere, face_normal, hit_sphere, make_sphere

__all__ = [
    "Sphere",
    "HitRecord",
    "face_normal",
    "hit_sphere",
    "make_sphere",
]
