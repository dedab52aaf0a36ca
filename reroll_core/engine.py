"""Rolling and locking primitives.

Both the Monte Carlo simulator and the manual practice session roll and lock
exclusively through the functions in this module, so the two modes follow the
same probability law, priority resolution, and lock behaviour.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional

from .data import Rarity
from .models import PoolEntry, SlotTarget
from .pool import PreparedPool, check_target_match, remove_effect, sample
from .priority import build_min_rarity_map, current_priority_group, remove_locked_effect

DEFAULT_MAX_ROUNDS = 1_000_000


@dataclass(frozen=True)
class SlotRollResult:
    """Outcome of rolling a single open slot."""

    entry: PoolEntry
    matched_target: Optional[SlotTarget] = None

    @property
    def is_target_match(self) -> bool:
        return self.matched_target is not None


@dataclass(frozen=True)
class PriorityHit:
    """A current-priority target hit and the rounds it took to land."""

    entry: PoolEntry
    target: SlotTarget
    rounds: int = 1


@dataclass
class RoundResult:
    """Results of rolling every open slot once."""

    slot_results: list[SlotRollResult] = field(default_factory=list)
    has_target_hit: bool = False
    has_current_priority_hit: bool = False
    first_priority_hit: Optional[PriorityHit] = None


@dataclass(frozen=True)
class LockOutcome:
    """Pool and remaining targets after a lock."""

    pool: PreparedPool
    remaining_targets: list[SlotTarget]


def _roll_open_slots(
    pool: PreparedPool,
    open_slot_count: int,
    remaining_targets: Sequence[SlotTarget],
    min_rarity_map: Mapping[str, Rarity],
    priority_targets: Sequence[SlotTarget],
    priority_rarity_map: Mapping[str, Rarity],
    draw: Callable[[], float],
) -> RoundResult:
    result = RoundResult()
    # The pool does not shrink mid-round: each open slot draws independently.
    for _ in range(open_slot_count):
        entry = sample(pool, draw())
        matched = check_target_match(entry, remaining_targets, min_rarity_map)
        if matched is not None:
            result.has_target_hit = True
            if result.first_priority_hit is None:
                priority_match = check_target_match(entry, priority_targets, priority_rarity_map)
                if priority_match is not None:
                    result.has_current_priority_hit = True
                    result.first_priority_hit = PriorityHit(entry=entry, target=priority_match)
        result.slot_results.append(SlotRollResult(entry=entry, matched_target=matched))
    return result


def roll_round(
    pool: PreparedPool,
    open_slot_count: int,
    remaining_targets: Sequence[SlotTarget],
    min_rarity_map: Mapping[str, Rarity],
    rng: Optional[random.Random] = None,
) -> RoundResult:
    """Roll every open slot once against ``pool``.

    Parameters
    ----------
    pool:
        Prepared pool to draw from; it is not modified.
    open_slot_count:
        Number of unlocked slots to fill.
    remaining_targets:
        Targets not yet satisfied.
    min_rarity_map:
        Most permissive rarity per targeted effect.
    rng:
        Random source; the module-level generator is used when omitted.

    Returns
    -------
    RoundResult
        One slot result per open slot, or an empty result when the pool is
        empty or no slot is open.
    """

    if pool.is_empty or open_slot_count <= 0:
        return RoundResult()
    priority_targets = current_priority_group(remaining_targets)
    return _roll_open_slots(
        pool,
        open_slot_count,
        remaining_targets,
        min_rarity_map,
        priority_targets,
        build_min_rarity_map(priority_targets),
        (rng or random).random,
    )


def roll_until_priority_hit(
    pool: PreparedPool,
    open_slot_count: int,
    remaining_targets: Sequence[SlotTarget],
    min_rarity_map: Mapping[str, Rarity],
    rng: Optional[random.Random] = None,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
) -> Optional[PriorityHit]:
    """Roll rounds until a current-priority target lands.

    Returns ``None`` when nothing can be rolled or ``max_rounds`` pass
    without a hit (for example a target effect missing from the pool).
    """

    if pool.is_empty or open_slot_count <= 0:
        return None
    priority_targets = current_priority_group(remaining_targets)
    priority_rarity_map = build_min_rarity_map(priority_targets)
    draw = (rng or random).random
    for round_number in range(1, max_rounds + 1):
        result = _roll_open_slots(
            pool,
            open_slot_count,
            remaining_targets,
            min_rarity_map,
            priority_targets,
            priority_rarity_map,
            draw,
        )
        hit = result.first_priority_hit
        if hit is not None:
            return PriorityHit(entry=hit.entry, target=hit.target, rounds=round_number)
    return None


def lock_effect(
    pool: PreparedPool,
    remaining_targets: Sequence[SlotTarget],
    effect_id: str,
    filled_slot_number: Optional[int],
) -> LockOutcome:
    """Lock ``effect_id`` and return the resulting pool and targets.

    Every rarity of the effect leaves the pool, the target at
    ``filled_slot_number`` is dropped, and the effect is stripped from all
    other targets. Passing ``None`` for the slot strips the effect without
    filling any target.
    """

    new_pool = remove_effect(pool, effect_id)
    unfilled = [
        target for target in remaining_targets if target.slot_number != filled_slot_number
    ]
    return LockOutcome(pool=new_pool, remaining_targets=remove_locked_effect(unfilled, effect_id))


def is_simulation_complete(
    remaining_targets: Sequence[SlotTarget],
    pool: PreparedPool,
) -> bool:
    """Return True when all targets are met or nothing is left to roll."""

    return not remaining_targets or pool.is_empty
