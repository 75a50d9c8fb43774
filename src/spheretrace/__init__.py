"""Taichi-based stochastic ray tracer for scenes made of spheres.

Renders a static sphere scene with diffuse, metallic and dielectric
materials through a thin-lens camera, sampling every pixel in parallel
and producing a deterministic 8-bit image for a given seed.

Subpackages:
    core: Rays, vector utilities, random streams, integrator and renderer
    geometry: Sphere primitive and ray-sphere intersection
    materials: Lambertian, metal and dielectric scattering
    scene: World storage, scene manager and the demo scene
    camera: Thin-lens camera with depth of field
    output: PPM and PNG image export

Note:
    Most submodules allocate Taichi fields at import time. Call ``ti.init``
    before importing them.
"""

__version__ = "0.1.0"
