"""Balance history reconstruction -- sampling planner, interpolation and staking."""

from treasury.history.interpolate import (
    interpolate_timestamps_to_ten_minutes,
    interpolate_values,
)
from treasury.history.planner import BalanceHistoryPlanner, build_series, sample_block_heights
from treasury.history.staking import StakingBalanceAggregator

__all__ = [
    "BalanceHistoryPlanner",
    "StakingBalanceAggregator",
    "build_series",
    "interpolate_timestamps_to_ten_minutes",
    "interpolate_values",
    "sample_block_heights",
]
