"""Pytest configuration for spheretrace tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti

# Streams reseeded before every test; kernels in tests draw from these
TEST_STREAMS = 4096


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    invalidate the fields created when the package modules were imported.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene data and reseed the random streams around each test."""
    # Import here so Taichi is initialized before fields are created
    from spheretrace.core.sampler import seed_streams
    from spheretrace.materials.dielectric import clear_dielectric_materials
    from spheretrace.materials.lambertian import clear_lambertian_materials
    from spheretrace.materials.metal import clear_metal_materials
    from spheretrace.scene.manager import _clear_material_tracking
    from spheretrace.scene.world import clear_world

    def _clear_all():
        clear_world()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()

    _clear_all()
    seed_streams(1234, TEST_STREAMS)

    yield

    _clear_all()


@pytest.fixture
def simple_camera():
    """A pinhole camera on the +z axis looking at the origin."""
    from spheretrace.camera.thin_lens import ThinLensCamera

    return ThinLensCamera(
        lookfrom=(0.0, 0.0, 5.0),
        lookat=(0.0, 0.0, 0.0),
        vup=(0.0, 1.0, 0.0),
        vfov=40.0,
        aspect_ratio=1.0,
        aperture=0.0,
        focus_dist=5.0,
    )
