import math
import time

from hiscores.errors import EncodingOverflow

# Largest power of two such that a millisecond timestamp can be stored in the
# fractional part of a double without rounding error, for integer parts up to 99.
RANK_TIME_CAPACITY = 2 ** 46


def now_millis() -> int:
    return int(time.time() * 1000)


def encode_rank(n_rotations: int, timestamp_ms: int) -> float:
    """Combine move count and submission time into one sortable rank.

    The integer part is the number of rotations. The fractional part shrinks
    as time advances, so among equal move counts a later submission sorts
    first in ascending order.
    """
    if n_rotations < 0:
        raise ValueError(f"n_rotations must not be negative, got {n_rotations}")
    # At 0 the fraction would be a whole 1 and leak into the integer part
    if timestamp_ms <= 0:
        raise ValueError(f"timestamp must be positive, got {timestamp_ms}")
    if timestamp_ms >= RANK_TIME_CAPACITY:
        raise EncodingOverflow(f"timestamp {timestamp_ms} exceeds rank capacity {RANK_TIME_CAPACITY}")
    fraction = 1 - timestamp_ms / RANK_TIME_CAPACITY
    return n_rotations + fraction


def decode_rank(rank: float) -> int:
    """Number of rotations stored in `rank`. See `encode_rank`."""
    return int(math.floor(rank))
