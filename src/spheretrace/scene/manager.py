"""Scene construction on top of the sphere table and material registries.

Each material kind keeps its own registry (``lambertian_albedos``,
``metal_albedos``/``metal_fuzzes``, ``dielectric_iors``). SceneManager hands
out ids from one shared space on top of them and records, per id, which
kind it is and which slot of that kind's registry holds its parameters.
The integrator reads those two tables to pick a scattering law.

Materials are immutable once added and any number of spheres may point at
the same id. A scene round-trips through plain dicts, which is also the
JSON scene file format::

    {
      "materials": [{"type": "metal", "albedo": [0.7, 0.6, 0.5], "fuzz": 0.0}],
      "spheres": [{"center": [4, 1, 0], "radius": 1.0, "material_id": 0}]
    }

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> glass = scene.add_dielectric_material(ior=1.5)
    >>> scene.add_sphere(center=(0, 1, 0), radius=1.0, material_id=glass)
"""

import json
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable

import taichi as ti
import taichi.math as tm

from spheretrace.materials import dielectric, lambertian, metal
from spheretrace.scene import world

logger = logging.getLogger(__name__)

vec3 = tm.vec3


class MaterialType(IntEnum):
    """Scattering law of a material id, as stored for kernel dispatch."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


# Sum of the per-kind registry capacities
MAX_MATERIALS = (
    lambertian.MAX_LAMBERTIAN_MATERIALS
    + metal.MAX_METAL_MATERIALS
    + dielectric.MAX_DIELECTRIC_MATERIALS
)

material_kinds = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_slots = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_count = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    material_count[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """MaterialType value of ``material_id``, or -1 for an unknown id."""
    kind = -1
    if material_id >= 0 and material_id < material_count[None]:
        kind = material_kinds[material_id]
    return kind


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Registry slot of ``material_id`` within its own kind, or -1."""
    slot = -1
    if material_id >= 0 and material_id < material_count[None]:
        slot = material_slots[material_id]
    return slot


@dataclass
class MaterialInfo:
    """Host-side record of one material id.

    Attributes:
        material_id: Id shared by all material kinds.
        material_type: Which scattering law the id uses.
        type_index: Slot in that law's registry.
        params: Parameters as stored, e.g. ``{"albedo": (r, g, b)}``.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """Host-side record of one sphere."""

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    material_id: int


@dataclass
class SceneConfig:
    """Serializable scene description.

    Attributes:
        materials: One dict per material id, in id order, holding ``type``
            ("lambertian", "metal" or "dielectric") and its parameters.
        spheres: One dict per sphere with ``center``, ``radius`` and
            ``material_id``.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)


def _as_triple(values: Any) -> tuple[float, float, float]:
    return (float(values[0]), float(values[1]), float(values[2]))


def _check_radius(radius: float) -> float:
    radius = float(radius)
    if not radius > 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")
    return radius


def _lambertian_params(entry: dict[str, Any]) -> dict[str, Any]:
    return {"albedo": _as_triple(entry.get("albedo", (0.5, 0.5, 0.5)))}


def _metal_params(entry: dict[str, Any]) -> dict[str, Any]:
    return {
        "albedo": _as_triple(entry.get("albedo", (0.8, 0.8, 0.8))),
        "fuzz": metal.clamp_fuzz(entry.get("fuzz", 0.0)),
    }


def _dielectric_params(entry: dict[str, Any]) -> dict[str, Any]:
    return {"ior": float(entry.get("ior", 1.5))}


# kind -> (normalize config entry, store in the kind's registry)
_MATERIAL_KINDS: dict[MaterialType, tuple[Callable[..., dict[str, Any]], Callable[..., int]]] = {
    MaterialType.LAMBERTIAN: (_lambertian_params, lambertian.add_lambertian_material),
    MaterialType.METAL: (_metal_params, metal.add_metal_material),
    MaterialType.DIELECTRIC: (_dielectric_params, dielectric.add_dielectric_material),
}


class SceneManager:
    """Builds the one active scene of the Taichi program.

    Constructing a SceneManager empties the sphere table and every material
    registry, so earlier managers stop describing what is on the device.

    Attributes:
        materials: MaterialInfo per material id, in id order.
        spheres: SphereInfo per sphere, in insertion order.
    """

    def __init__(self) -> None:
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.clear()

    def clear(self) -> None:
        """Remove every sphere and material."""
        world.clear_world()
        lambertian.clear_lambertian_materials()
        metal.clear_metal_materials()
        dielectric.clear_dielectric_materials()
        _clear_material_tracking()
        self.materials = []
        self.spheres = []

    # -------------------------------------------------------------------------
    # Materials
    # -------------------------------------------------------------------------

    def _add_material(self, kind: MaterialType, params: dict[str, Any]) -> int:
        material_id = material_count[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Material limit of {MAX_MATERIALS} reached")

        _, store = _MATERIAL_KINDS[kind]
        slot = store(**params)

        material_kinds[material_id] = int(kind)
        material_slots[material_id] = slot
        material_count[None] = material_id + 1
        self.materials.append(MaterialInfo(material_id, kind, slot, params))
        return material_id

    def add_lambertian_material(self, albedo: tuple[float, float, float]) -> int:
        """Register a diffuse material and return its id.

        Raises:
            ValueError: If an albedo channel lies outside [0, 1].
            RuntimeError: If a registry is full.
        """
        return self._add_material(MaterialType.LAMBERTIAN, {"albedo": _as_triple(albedo)})

    def add_metal_material(self, albedo: tuple[float, float, float], fuzz: float = 0.0) -> int:
        """Register a metal material and return its id.

        ``fuzz`` is clamped to [0, 1] before it is stored.

        Raises:
            ValueError: If an albedo channel lies outside [0, 1].
            RuntimeError: If a registry is full.
        """
        params = {"albedo": _as_triple(albedo), "fuzz": metal.clamp_fuzz(fuzz)}
        return self._add_material(MaterialType.METAL, params)

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Register a clear dielectric with refractive index ``ior``.

        Raises:
            ValueError: If ``ior`` is below 1.
            RuntimeError: If a registry is full.
        """
        return self._add_material(MaterialType.DIELECTRIC, {"ior": float(ior)})

    def get_material_count(self) -> int:
        return int(material_count[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """MaterialInfo for ``material_id``, or None when no such id exists."""
        if material_id < 0 or material_id >= len(self.materials):
            return None
        return self.materials[material_id]

    # -------------------------------------------------------------------------
    # Spheres
    # -------------------------------------------------------------------------

    def add_sphere(self, center: tuple[float, float, float], radius: float, material_id: int) -> int:
        """Place a sphere using an already registered material.

        Returns:
            Index of the sphere in the world table.

        Raises:
            ValueError: If ``material_id`` was never handed out or
                ``radius`` is not positive.
            RuntimeError: If the sphere table is full.
        """
        if not 0 <= material_id < material_count[None]:
            raise ValueError(f"Invalid material_id: {material_id}")

        radius = _check_radius(radius)
        center = _as_triple(center)
        sphere_index = world.add_sphere(vec3(*center), radius, material_id)
        self.spheres.append(SphereInfo(sphere_index, center, radius, material_id))
        return sphere_index

    def add_lambertian_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        albedo: tuple[float, float, float],
    ) -> tuple[int, int]:
        """Place a sphere with its own new diffuse material.

        Returns:
            ``(sphere_index, material_id)``.
        """
        _check_radius(radius)
        material_id = self.add_lambertian_material(albedo)
        return self.add_sphere(center, radius, material_id), material_id

    def add_metal_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        albedo: tuple[float, float, float],
        fuzz: float = 0.0,
    ) -> tuple[int, int]:
        """Place a sphere with its own new metal material."""
        _check_radius(radius)
        material_id = self.add_metal_material(albedo, fuzz)
        return self.add_sphere(center, radius, material_id), material_id

    def add_dielectric_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        ior: float = 1.5,
    ) -> tuple[int, int]:
        """Place a sphere with its own new dielectric material."""
        _check_radius(radius)
        material_id = self.add_dielectric_material(ior)
        return self.add_sphere(center, radius, material_id), material_id

    def get_sphere_count(self) -> int:
        return world.get_sphere_count()

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_config(self) -> SceneConfig:
        """Describe the scene as a SceneConfig of JSON-friendly values."""
        materials = []
        for info in self.materials:
            entry: dict[str, Any] = {"type": info.material_type.name.lower()}
            entry.update(
                (key, list(value) if isinstance(value, tuple) else value)
                for key, value in info.params.items()
            )
            materials.append(entry)

        spheres = [
            {"center": list(s.center), "radius": s.radius, "material_id": s.material_id}
            for s in self.spheres
        ]
        return SceneConfig(materials=materials, spheres=spheres)

    def from_config(self, config: SceneConfig) -> None:
        """Replace the scene with the one described by ``config``.

        Material ids are assigned in list order, so sphere entries refer to
        materials by their position.

        Raises:
            ValueError: If a material type is unknown, a parameter is out of
                range or a sphere names a missing material.
        """
        self.clear()

        for entry in config.materials:
            name = str(entry.get("type", "")).lower()
            try:
                kind = MaterialType[name.upper()]
            except KeyError:
                raise ValueError(f"Unknown material type: {name!r}") from None
            normalize, _ = _MATERIAL_KINDS[kind]
            self._add_material(kind, normalize(entry))

        for entry in config.spheres:
            self.add_sphere(
                entry.get("center", (0.0, 0.0, 0.0)),
                entry.get("radius", 1.0),
                int(entry.get("material_id", 0)),
            )

        logger.debug(
            "Built scene from config: %d materials, %d spheres",
            len(self.materials),
            len(self.spheres),
        )

    def to_dict(self) -> dict[str, Any]:
        config = self.to_config()
        return {"materials": config.materials, "spheres": config.spheres}

    def from_dict(self, data: dict[str, Any]) -> None:
        """Replace the scene from a ``{"materials": [...], "spheres": [...]}`` dict."""
        self.from_config(SceneConfig(data.get("materials", []), data.get("spheres", [])))

    def save_json(self, filepath: str | Path) -> None:
        """Write the scene as a JSON scene file."""
        path = Path(filepath)
        path.write_text(json.dumps(self.to_dict(), indent=2))
        logger.info("Saved scene to %s", path)

    def load_json(self, filepath: str | Path) -> None:
        """Replace the scene with the contents of a JSON scene file.

        Raises:
            OSError: If the file cannot be read.
            ValueError: If the file is not JSON, is not a JSON object, or
                describes an invalid scene.
        """
        path = Path(filepath)
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Scene file {path} must contain a JSON object")
        self.from_dict(data)
        logger.info("Loaded scene from %s", path)
