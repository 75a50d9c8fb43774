"""Host-side helpers shared by the per-kind material registries.

Each material module stores its parameters in fixed-capacity Taichi fields
plus a 0-d counter field; these helpers validate parameters and hand out
the next free slot.
"""

from typing import Any

Color = tuple[float, float, float]


def check_albedo(albedo: Any) -> Color:
    """Return ``albedo`` as a float triple.

    Raises:
        ValueError: If it does not have three channels or a channel lies
            outside [0, 1].
    """
    if len(albedo) != 3:
        raise ValueError(f"Albedo needs 3 channels, got {len(albedo)}")
    color = (float(albedo[0]), float(albedo[1]), float(albedo[2]))
    for channel, value in zip("RGB", color):
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"Albedo channel {channel} = {value} is outside [0, 1]")
    return color


def claim_slot(counter: Any, capacity: int, kind: str) -> int:
    """Reserve the next slot of a registry whose size lives in ``counter[None]``.

    Raises:
        RuntimeError: If the registry already holds ``capacity`` entries.
    """
    slot = int(counter[None])
    if slot >= capacity:
        raise RuntimeError(f"{kind} material registry is full ({capacity} entries)")
    counter[None] = slot + 1
    return slot
