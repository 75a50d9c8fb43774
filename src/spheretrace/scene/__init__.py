"""Scene module for world storage and scene construction.

Components:
    world: Sphere table and nearest-hit query
    manager: SceneManager with a unified material id space and JSON export
    random_scene: The random sphere field demo scene
"""

from .manager import (
    MaterialInfo,
    MaterialType,
    SceneConfig,
    SceneManager,
    SphereInfo,
    get_material_type,
    get_material_type_index,
)
from .random_scene import create_random_camera, create_random_scene, populate_random_scene
from .world import (
    WorldHitRecord,
    add_sphere,
    clear_world,
    get_sphere_count,
    hit_world,
)

__all__ = [
    "WorldHitRecord",
    "add_sphere",
    "clear_world",
    "get_sphere_count",
    "hit_world",
    "MaterialType",
    "MaterialInfo",
    "SphereInfo",
    "SceneConfig",
    "SceneManager",
    "get_material_type",
    "get_material_type_index",
    "create_random_scene",
    "create_random_camera",
    "populate_random_scene",
]
