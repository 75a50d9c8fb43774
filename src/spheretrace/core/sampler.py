"""Per-pixel random number streams for reproducible parallel sampling.

Each pixel owns one stream: a 32-bit xorshift state stored in a Taichi
field. Streams are seeded by hashing the stream index together with a user
seed, so the random sequence a pixel sees depends only on the seed and the
pixel, never on how the Taichi runtime schedules rows across threads.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from spheretrace.core.sampler import seed_streams, random_float
    >>> seed_streams(seed=7, count=16)
    >>> @ti.kernel
    ... def draw() -> ti.f32:
    ...     return random_float(3)
"""

import taichi as ti

# Enough streams for one per pixel at the maximum render target size
MAX_STREAMS = 2048 * 2048

# Scale mapping the top 24 bits of a state to [0, 1)
_INV_2_24 = 1.0 / 16777216.0

_rng_state = ti.field(dtype=ti.u32, shape=MAX_STREAMS)


@ti.func
def wang_hash(key: ti.u32) -> ti.u32:
    """Scramble a 32-bit integer with Thomas Wang's integer hash.

    Args:
        key: The value to hash.

    Returns:
        A well-mixed 32-bit value.
    """
    h = key
    h = (h ^ ti.cast(61, ti.u32)) ^ (h >> ti.cast(16, ti.u32))
    h = h * ti.cast(9, ti.u32)
    h = h ^ (h >> ti.cast(4, ti.u32))
    h = h * ti.cast(0x27D4EB2D, ti.u32)
    h = h ^ (h >> ti.cast(15, ti.u32))
    return h


@ti.kernel
def _seed_streams_kernel(seed: ti.u32, count: ti.i32):
    base = wang_hash(seed)
    for k in range(count):
        state = wang_hash(ti.cast(k, ti.u32) ^ base)
        # xorshift never leaves the all-zero state
        if state == ti.cast(0, ti.u32):
            state = ti.cast(1, ti.u32)
        _rng_state[k] = state


def seed_streams(seed: int, count: int = MAX_STREAMS) -> None:
    """Seed the first ``count`` random streams from a single seed.

    Args:
        seed: Any integer; only its low 32 bits are used.
        count: Number of streams to seed (at most MAX_STREAMS).

    Raises:
        ValueError: If count is not in [1, MAX_STREAMS].
    """
    if count < 1 or count > MAX_STREAMS:
        raise ValueError(f"Stream count {count} is outside [1, {MAX_STREAMS}]")
    _seed_streams_kernel(seed & 0xFFFFFFFF, count)


def get_stream_state(stream: int) -> int:
    """Get the raw generator state of a stream (Python side)."""
    return int(_rng_state[stream])


@ti.func
def random_float(stream: ti.i32) -> ti.f32:
    """Draw a uniform float in [0, 1) from a stream.

    Advances the stream's xorshift32 state by one step.

    Args:
        stream: Index of the stream to draw from.

    Returns:
        A uniformly distributed value in [0, 1).
    """
    x = _rng_state[stream]
    x = x ^ (x << ti.cast(13, ti.u32))
    x = x ^ (x >> ti.cast(17, ti.u32))
    x = x ^ (x << ti.cast(5, ti.u32))
    _rng_state[stream] = x
    return ti.cast(x >> ti.cast(8, ti.u32), ti.f32) * _INV_2_24


@ti.func
def random_range(stream: ti.i32, lo: ti.f32, hi: ti.f32) -> ti.f32:
    """Draw a uniform float in [lo, hi) from a stream."""
    return lo + (hi - lo) * random_float(stream)
