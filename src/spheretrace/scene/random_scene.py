"""Random sphere field demo scene.

The scene is the classic cover image of a sphere ray tracer:

- A huge grey Lambertian ground sphere
- A 23 x 23 grid of small spheres (radius 0.2) with jittered centers and a
  randomly chosen material: 80% diffuse, 15% metal, 5% glass
- Three large spheres: glass in the middle, brown diffuse on the left and a
  polished metal on the right

Every small sphere gets its own material, so the scene holds 533 spheres
and 533 materials. Scene generation uses a NumPy ``Generator`` so the same
seed always produces the same scene.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.scene.random_scene import create_random_scene
    >>> from spheretrace.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_scene(seed=0)
    >>> setup_camera(camera)
"""

import logging

import numpy as np

from spheretrace.camera.thin_lens import ThinLensCamera
from spheretrace.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# =============================================================================
# Scene Constants
# =============================================================================

GRID_MIN = -11
GRID_MAX = 11  # inclusive
SMALL_RADIUS = 0.2
CENTER_JITTER = 0.9

DIFFUSE_PROBABILITY = 0.8
METAL_PROBABILITY = 0.15  # glass takes the remaining 0.05

GROUND_ALBEDO = (0.5, 0.5, 0.5)
GLASS_IOR = 1.5

# Camera defaults
LOOKFROM = (13.0, 2.0, 3.0)
LOOKAT = (0.0, 0.0, 0.0)
VUP = (0.0, 1.0, 0.0)
VFOV = 20.0
APERTURE = 0.1
FOCUS_DIST = 10.0


def create_random_camera(aspect_ratio: float = 1.5) -> ThinLensCamera:
    """Create the camera used to view the random scene."""
    return ThinLensCamera(
        lookfrom=LOOKFROM,
        lookat=LOOKAT,
        vup=VUP,
        vfov=VFOV,
        aspect_ratio=aspect_ratio,
        aperture=APERTURE,
        focus_dist=FOCUS_DIST,
    )


def _random_color(rng: np.random.Generator, lo: float, hi: float) -> tuple[float, float, float]:
    r, g, b = rng.uniform(lo, hi, size=3)
    return (float(r), float(g), float(b))


def populate_random_scene(scene: SceneManager, seed: int | None = 0) -> None:
    """Fill a SceneManager with the random sphere field.

    The scene is cleared first.

    Args:
        scene: The scene to fill.
        seed: Seed for the scene generator. None draws fresh OS entropy.
    """
    rng = np.random.default_rng(seed)
    scene.clear()

    scene.add_lambertian_sphere(
        center=(0.0, -1000.0, 0.0),
        radius=1000.0,
        albedo=GROUND_ALBEDO,
    )

    for a in range(GRID_MIN, GRID_MAX + 1):
        for b in range(GRID_MIN, GRID_MAX + 1):
            choose_mat = rng.random()
            center = (
                a + float(rng.uniform(0.0, CENTER_JITTER)),
                SMALL_RADIUS,
                b + float(rng.uniform(0.0, CENTER_JITTER)),
            )

            if choose_mat < DIFFUSE_PROBABILITY:
                c1 = _random_color(rng, 0.0, 1.0)
                c2 = _random_color(rng, 0.0, 1.0)
                albedo = (c1[0] * c2[0], c1[1] * c2[1], c1[2] * c2[2])
                scene.add_lambertian_sphere(center, SMALL_RADIUS, albedo)
            elif choose_mat < DIFFUSE_PROBABILITY + METAL_PROBABILITY:
                albedo = _random_color(rng, 0.4, 1.0)
                fuzz = float(rng.uniform(0.0, 0.5))
                scene.add_metal_sphere(center, SMALL_RADIUS, albedo, fuzz)
            else:
                scene.add_dielectric_sphere(center, SMALL_RADIUS, GLASS_IOR)

    scene.add_dielectric_sphere(center=(0.0, 1.0, 0.0), radius=1.0, ior=GLASS_IOR)
    scene.add_lambertian_sphere(center=(-4.0, 1.0, 0.0), radius=1.0, albedo=(0.4, 0.2, 0.1))
    scene.add_metal_sphere(center=(4.0, 1.0, 0.0), radius=1.0, albedo=(0.7, 0.6, 0.5), fuzz=0.0)

    logger.debug("Generated random scene with %d spheres", scene.get_sphere_count())


def create_random_scene(
    seed: int | None = 0,
    aspect_ratio: float = 1.5,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the random sphere field scene and its camera.

    Args:
        seed: Seed for the scene generator. None draws fresh OS entropy.
        aspect_ratio: Aspect ratio of the output image.

    Returns:
        A tuple of (scene_manager, camera).
    """
    scene = SceneManager()
    populate_random_scene(scene, seed)
    return scene, create_random_camera(aspect_ratio)
