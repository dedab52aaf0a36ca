"""Shard cost modelling for reroll rounds."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Final

from .data import MAX_SLOTS

BASE_ROLL_COST: Final[int] = 10
LOCK_COST_MULTIPLIER: Final[int] = 4
SHARD_COST_BY_LOCKS: Final[list[int]] = [
    BASE_ROLL_COST * LOCK_COST_MULTIPLIER**locked for locked in range(MAX_SLOTS)
]

CostFn = Callable[[int], float]


def lock_cost(locked_count: int) -> int:
    """Return the shard price of one round with ``locked_count`` slots locked.

    Every additional lock multiplies the price of a round by four, so zero
    locks cost 10 shards, one lock 40, two locks 160, and so on.

    Raises
    ------
    ValueError
        If ``locked_count`` is negative.
    """

    if locked_count < 0:
        raise ValueError("Locked count cannot be negative.")
    if locked_count < len(SHARD_COST_BY_LOCKS):
        return SHARD_COST_BY_LOCKS[locked_count]
    return BASE_ROLL_COST * LOCK_COST_MULTIPLIER**locked_count


class LockCostTable:
    """Cost function backed by an explicit per-lock price table.

    Lock counts beyond the table reuse its last price. Instances pickle
    cleanly, so they can be handed to worker processes.
    """

    def __init__(self, costs: Sequence[float]) -> None:
        """Validate and store the price table.

        Raises
        ------
        ValueError
            If the table is empty or decreases anywhere.
        """

        if not costs:
            raise ValueError("Cost table must contain at least one entry.")
        table = [float(value) for value in costs]
        if any(later < earlier for earlier, later in zip(table, table[1:])):
            raise ValueError("Cost table must be non-decreasing.")
        self.costs = table

    def __call__(self, locked_count: int) -> float:
        if locked_count < 0:
            raise ValueError("Locked count cannot be negative.")
        return self.costs[min(locked_count, len(self.costs) - 1)]
