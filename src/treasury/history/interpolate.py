"""Timestamp interpolation between two known block timestamps.

Fetching one block per sample only to read its timestamp costs an RPC round
trip each; block production is regular enough that a straight line between
the oldest and the latest sampled block is accurate to within minutes.
"""

import math

from treasury.constants import TEN_MINUTES_MS
from treasury.exceptions import InvalidArgument


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def interpolate_values(start: float, end: float, steps: int) -> list[int]:
    """Return ``steps`` evenly spaced values from start to end, rounded to ints.

    Raises InvalidArgument when steps < 2.
    """
    if steps < 2:
        raise InvalidArgument("Number of steps must be at least 2 for interpolation.")

    step_size = (end - start) / (steps - 1)
    return [_round_half_up(start + i * step_size) for i in range(steps)]


def round_to_ten_minutes(value: float) -> int:
    return _round_half_up(value / TEN_MINUTES_MS) * TEN_MINUTES_MS


def interpolate_timestamps_to_ten_minutes(start: float, end: float, steps: int) -> list[int]:
    """Interpolated timestamps (ms) snapped to the nearest 10-minute boundary."""
    return [round_to_ten_minutes(v) for v in interpolate_values(start, end, steps)]
