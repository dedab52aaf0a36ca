"""Interactive practice session built on the shared roll engine.

The pure functions take a ``ManualSessionState`` and return a new one; the
``ManualSession`` class holds the current state, an RNG, and the auto-roll
loop for callers that want an object to drive.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Final, Optional

from .cost import CostFn, lock_cost
from .data import EffectCatalogEntry, Rarity, find_effect
from .engine import lock_effect, roll_round
from .models import (
    CalculatorConfig,
    ManualSlot,
    PreLockedEffect,
    RollLogEntry,
    SlotTarget,
)
from .pool import PreparedPool, build_initial_pool, prepare_pool
from .priority import build_min_rarity_map, find_satisfied_target, resolve_locked_effects
from .roll_log import process_roll_for_logging
from .simulation import Catalog

logger = logging.getLogger(__name__)

SHARD_MODES: Final[tuple[str, ...]] = ("budget", "accumulator")
BALANCE_WARNING_RATIO: Final[float] = 0.2
DEFAULT_LOG_RARITY: Final[Rarity] = Rarity.LEGENDARY
DEFAULT_AUTO_ROLL_LIMIT: Final[int] = 10_000


@dataclass(frozen=True)
class ManualSessionState:
    """Complete state of one manual session.

    ``targets`` are the configured targets; ``remaining_targets`` are the ones
    still open after the locks made so far.
    """

    slots: tuple[ManualSlot, ...]
    pool: PreparedPool
    targets: tuple[SlotTarget, ...] = ()
    remaining_targets: tuple[SlotTarget, ...] = ()
    roll_count: int = 0
    shard_mode: str = "accumulator"
    starting_balance: float = 0.0
    total_spent: float = 0.0
    is_complete: bool = False
    is_auto_rolling: bool = False
    log_entries: tuple[RollLogEntry, ...] = ()


@dataclass(frozen=True)
class RollResult:
    slots: tuple[ManualSlot, ...]
    shard_cost: float = 0.0
    has_target_hit: bool = False
    has_current_priority_hit: bool = False
    filled_slot_indexes: tuple[int, ...] = ()


@dataclass(frozen=True)
class CanRollResult:
    allowed: bool
    reason: Optional[str] = None


def _locked_pairs(slots: Sequence[ManualSlot]) -> list[tuple[str, Rarity]]:
    return [
        (slot.effect.effect_id, slot.rarity)
        for slot in slots
        if slot.is_locked and slot.effect is not None and slot.rarity is not None
    ]


def _resolve_effect(effect_id: str, module_type: str, catalog: Catalog) -> EffectCatalogEntry:
    effect = find_effect(effect_id, catalog)
    if effect is None:
        return EffectCatalogEntry(effect_id=effect_id, display_name=effect_id, module_type=module_type)
    return effect


def _pre_locked_slots(
    config: CalculatorConfig,
    pre_locked: Sequence[PreLockedEffect],
    catalog: Catalog,
) -> list[ManualSlot]:
    slots = [ManualSlot(slot_number=number) for number in range(1, config.slot_count + 1)]
    for index, locked in enumerate(pre_locked[: config.slot_count]):
        slots[index] = ManualSlot(
            slot_number=index + 1,
            effect=_resolve_effect(locked.effect_id, config.module_type, catalog),
            rarity=locked.rarity,
            is_locked=True,
            is_target_match=(
                find_satisfied_target(config.slot_targets, locked.effect_id, locked.rarity)
                is not None
            ),
        )
    return slots


def initialize_manual_session(
    config: CalculatorConfig,
    shard_mode: str = "accumulator",
    starting_balance: float = 0.0,
    catalog: Catalog = None,
) -> ManualSessionState:
    """Build a fresh session for ``config``.

    Pre-locked effects occupy the first slots and are excluded from the pool,
    together with banned effects.

    Raises
    ------
    ValueError
        If ``shard_mode`` is not ``"budget"`` or ``"accumulator"``.
    """

    if shard_mode not in SHARD_MODES:
        raise ValueError(f"Unknown shard mode '{shard_mode}'")

    slots = _pre_locked_slots(config, config.pre_locked_effects, catalog)
    pool = prepare_pool(
        build_initial_pool(
            config.module_type,
            config.module_rarity,
            config.excluded_effects,
            catalog=catalog,
        )
    )
    return ManualSessionState(
        slots=tuple(slots),
        pool=pool,
        targets=config.slot_targets,
        remaining_targets=tuple(resolve_locked_effects(config.slot_targets, _locked_pairs(slots))),
        shard_mode=shard_mode,
        starting_balance=float(starting_balance),
    )


def count_open_slots(state: ManualSessionState) -> int:
    return sum(1 for slot in state.slots if not slot.is_locked)


def count_locked_slots(state: ManualSessionState) -> int:
    return sum(1 for slot in state.slots if slot.is_locked)


def pool_size(state: ManualSessionState) -> int:
    return len(state.pool)


def current_roll_cost(state: ManualSessionState, cost_fn: CostFn = lock_cost) -> float:
    return cost_fn(count_locked_slots(state))


def current_balance(state: ManualSessionState) -> float:
    """Return the remaining balance in budget mode, the total spent otherwise."""

    if state.shard_mode == "budget":
        return state.starting_balance - state.total_spent
    return state.total_spent


def balance_status(state: ManualSessionState, cost_fn: CostFn = lock_cost) -> str:
    """Return ``"normal"``, ``"warning"`` or ``"critical"`` for budget display.

    Critical means the balance cannot pay for the next roll; warning means it
    has dropped below a fifth of the starting balance.
    """

    if state.shard_mode != "budget":
        return "normal"
    balance = current_balance(state)
    if balance < current_roll_cost(state, cost_fn):
        return "critical"
    if balance < state.starting_balance * BALANCE_WARNING_RATIO:
        return "warning"
    return "normal"


def count_unfulfilled_target_effects(state: ManualSessionState) -> int:
    """Count distinct target effects that are not locked in any slot."""

    target_effects = {
        effect_id for target in state.targets for effect_id in target.acceptable_effects
    }
    locked_effects = {effect_id for effect_id, _ in _locked_pairs(state.slots)}
    return len(target_effects - locked_effects)


def can_roll(state: ManualSessionState, cost_fn: CostFn = lock_cost) -> CanRollResult:
    """Return whether a manual roll is allowed.

    Completion does not block rolling; it is informational only.
    """

    if count_open_slots(state) == 0:
        return CanRollResult(False, "All slots are locked")
    if state.pool.is_empty:
        return CanRollResult(False, "Effect pool is exhausted")
    if state.shard_mode == "budget" and current_balance(state) < current_roll_cost(state, cost_fn):
        return CanRollResult(False, "Insufficient shard balance")
    return CanRollResult(True)


def can_auto_roll(state: ManualSessionState, cost_fn: CostFn = lock_cost) -> CanRollResult:
    """Return whether auto-roll may continue; it also needs unmet targets."""

    check = can_roll(state, cost_fn)
    if not check.allowed:
        return check
    if not state.targets:
        return CanRollResult(False, "No targets configured")
    # Every slot target can be filled while some acceptable effect is still
    # unlocked, so auto-roll may stop before check_completion reports True.
    if count_unfulfilled_target_effects(state) == 0 or not state.remaining_targets:
        return CanRollResult(False, "All targets acquired")
    return CanRollResult(True)


def check_completion(state: ManualSessionState) -> bool:
    """Return True once every target effect is locked or the pool is empty."""

    if not state.targets:
        return False
    if state.pool.is_empty:
        return True
    return count_unfulfilled_target_effects(state) == 0


def mark_complete(state: ManualSessionState) -> ManualSessionState:
    return replace(state, is_complete=True, is_auto_rolling=False)


def set_auto_rolling(state: ManualSessionState, is_auto_rolling: bool) -> ManualSessionState:
    return replace(state, is_auto_rolling=is_auto_rolling)


def execute_roll(
    state: ManualSessionState,
    rng: Optional[random.Random] = None,
    cost_fn: CostFn = lock_cost,
    log_min_rarity: Optional[Rarity] = DEFAULT_LOG_RARITY,
) -> tuple[ManualSessionState, RollResult]:
    """Roll every open slot once and charge the current round price.

    Locked slots keep their effects. Nothing is rolled or charged when every
    slot is locked or the pool is empty. Passing ``None`` for
    ``log_min_rarity`` disables the roll log.
    """

    open_indexes = [index for index, slot in enumerate(state.slots) if not slot.is_locked]
    if not open_indexes or state.pool.is_empty:
        return state, RollResult(slots=state.slots)

    shard_cost = current_roll_cost(state, cost_fn)
    round_result = roll_round(
        state.pool,
        len(open_indexes),
        state.remaining_targets,
        build_min_rarity_map(state.remaining_targets),
        rng,
    )

    slots = list(state.slots)
    for index, slot_result in zip(open_indexes, round_result.slot_results):
        slots[index] = ManualSlot(
            slot_number=index + 1,
            effect=slot_result.entry.effect,
            rarity=slot_result.entry.rarity,
            is_locked=False,
            is_target_match=slot_result.is_target_match,
        )

    roll_count = state.roll_count + 1
    total_spent = state.total_spent + shard_cost
    log_entries = state.log_entries
    if log_min_rarity is not None:
        log_entries = process_roll_for_logging(
            slots,
            open_indexes,
            roll_count,
            total_spent,
            shard_cost,
            log_entries,
            log_min_rarity,
        )

    new_slots = tuple(slots)
    new_state = replace(
        state,
        slots=new_slots,
        roll_count=roll_count,
        total_spent=total_spent,
        log_entries=log_entries,
    )
    return new_state, RollResult(
        slots=new_slots,
        shard_cost=shard_cost,
        has_target_hit=round_result.has_target_hit,
        has_current_priority_hit=round_result.has_current_priority_hit,
        filled_slot_indexes=tuple(open_indexes),
    )


def _slot_index(state: ManualSessionState, slot_number: int) -> Optional[int]:
    index = slot_number - 1
    return index if 0 <= index < len(state.slots) else None


def lock_slot(state: ManualSessionState, slot_number: int) -> ManualSessionState:
    """Lock the effect shown in ``slot_number``.

    The effect leaves the pool; if it satisfies a remaining target that
    target is filled, and it is stripped from every other target. Empty,
    already locked, or unknown slots leave the state unchanged.
    """

    index = _slot_index(state, slot_number)
    if index is None:
        return state
    slot = state.slots[index]
    if slot.is_locked or slot.effect is None or slot.rarity is None:
        return state

    effect_id = slot.effect.effect_id
    filled = find_satisfied_target(state.remaining_targets, effect_id, slot.rarity)
    outcome = lock_effect(
        state.pool,
        state.remaining_targets,
        effect_id,
        filled.slot_number if filled is not None else None,
    )
    slots = list(state.slots)
    slots[index] = replace(slot, is_locked=True)
    return replace(
        state,
        slots=tuple(slots),
        pool=outcome.pool,
        remaining_targets=tuple(outcome.remaining_targets),
    )


def unlock_slot(
    state: ManualSessionState,
    slot_number: int,
    config: CalculatorConfig,
    catalog: Catalog = None,
) -> ManualSessionState:
    """Unlock ``slot_number`` and return its effect to the pool.

    The pool and remaining targets are rebuilt from ``config`` and the slots
    that stay locked, so the result matches a session that never locked the
    slot in the first place.
    """

    index = _slot_index(state, slot_number)
    if index is None:
        return state
    slot = state.slots[index]
    if not slot.is_locked or slot.effect is None:
        return state

    slots = list(state.slots)
    slots[index] = replace(slot, is_locked=False)
    still_locked = _locked_pairs(slots)
    excluded = [*config.banned_effects, *(effect_id for effect_id, _ in still_locked)]
    pool = prepare_pool(
        build_initial_pool(config.module_type, config.module_rarity, excluded, catalog=catalog)
    )
    return replace(
        state,
        slots=tuple(slots),
        pool=pool,
        remaining_targets=tuple(resolve_locked_effects(state.targets, still_locked)),
    )


def update_targets(
    state: ManualSessionState,
    targets: Sequence[SlotTarget],
) -> ManualSessionState:
    """Swap in new targets, keeping the current locks applied to them."""

    new_targets = tuple(targets)
    return replace(
        state,
        targets=new_targets,
        remaining_targets=tuple(resolve_locked_effects(new_targets, _locked_pairs(state.slots))),
    )


@dataclass(frozen=True)
class AutoRollResult:
    """Summary of one auto-roll run."""

    rolls: int
    reason: Optional[str] = None
    hit: Optional[RollResult] = None


TickCallback = Callable[[ManualSessionState, RollResult], None]


class ManualSession:
    """Stateful wrapper around the manual-session transitions.

    The session is inactive until ``activate`` is called. ``auto_roll`` may be
    stopped from another thread with ``stop_auto_roll``.
    """

    def __init__(
        self,
        config: CalculatorConfig,
        shard_mode: str = "accumulator",
        starting_balance: float = 0.0,
        rng: Optional[random.Random] = None,
        cost_fn: CostFn = lock_cost,
        catalog: Catalog = None,
        log_min_rarity: Optional[Rarity] = DEFAULT_LOG_RARITY,
    ) -> None:
        self.config = config
        self.shard_mode = shard_mode
        self.starting_balance = starting_balance
        self.rng = rng if rng is not None else random.Random()
        self.cost_fn = cost_fn
        self.catalog = catalog
        self.log_min_rarity = log_min_rarity
        self.state: Optional[ManualSessionState] = None
        self._stop_event = threading.Event()

    @property
    def is_active(self) -> bool:
        return self.state is not None

    def _require_state(self) -> ManualSessionState:
        if self.state is None:
            raise RuntimeError("Manual session is not active.")
        return self.state

    def activate(self) -> ManualSessionState:
        self.state = initialize_manual_session(
            self.config,
            shard_mode=self.shard_mode,
            starting_balance=self.starting_balance,
            catalog=self.catalog,
        )
        return self.state

    def deactivate(self) -> None:
        self._stop_event.set()
        self.state = None

    def reset(self) -> ManualSessionState:
        self._stop_event.set()
        return self.activate()

    def _refresh_completion(self) -> None:
        state = self._require_state()
        if not state.is_complete and check_completion(state):
            logger.debug("Manual session complete after %d rolls", state.roll_count)
            self.state = mark_complete(state)

    def can_roll(self) -> CanRollResult:
        return can_roll(self._require_state(), self.cost_fn)

    def roll(self) -> Optional[RollResult]:
        """Roll once; returns ``None`` when rolling is not allowed."""

        state = self._require_state()
        check = can_roll(state, self.cost_fn)
        if not check.allowed:
            logger.debug("Roll refused: %s", check.reason)
            return None
        self.state, result = execute_roll(state, self.rng, self.cost_fn, self.log_min_rarity)
        self._refresh_completion()
        return result

    def lock(self, slot_number: int) -> ManualSessionState:
        self.state = lock_slot(self._require_state(), slot_number)
        self._refresh_completion()
        return self.state

    def unlock(self, slot_number: int) -> ManualSessionState:
        state = unlock_slot(self._require_state(), slot_number, self.config, self.catalog)
        self.state = replace(state, is_complete=check_completion(state))
        return self.state

    def update_targets(self, targets: Sequence[SlotTarget]) -> ManualSessionState:
        self.config = replace(self.config, slot_targets=tuple(targets))
        self.state = update_targets(self._require_state(), targets)
        return self.state

    def auto_roll(
        self,
        max_rolls: int = DEFAULT_AUTO_ROLL_LIMIT,
        interval: float = 0.0,
        on_tick: Optional[TickCallback] = None,
    ) -> AutoRollResult:
        """Roll repeatedly until a current-priority target lands.

        Before every roll the loop re-checks ``can_auto_roll`` against the
        live state, so target changes made from ``on_tick`` take effect on
        the next tick. The loop also ends on ``stop_auto_roll`` or after
        ``max_rolls`` rolls; ``interval`` seconds pass between rolls.
        """

        self._stop_event.clear()
        self.state = set_auto_rolling(self._require_state(), True)
        rolls = 0
        try:
            while rolls < max_rolls:
                if self._stop_event.is_set() or self.state is None:
                    return AutoRollResult(rolls, "Stopped")
                check = can_auto_roll(self.state, self.cost_fn)
                if not check.allowed:
                    return AutoRollResult(rolls, check.reason)
                result = self.roll()
                if result is None:
                    return AutoRollResult(rolls, "Roll refused")
                rolls += 1
                if on_tick is not None:
                    on_tick(self.state, result)
                if result.has_current_priority_hit:
                    return AutoRollResult(rolls, "Priority target hit", hit=result)
                if interval > 0 and self._stop_event.wait(interval):
                    return AutoRollResult(rolls, "Stopped")
            return AutoRollResult(rolls, "Roll limit reached")
        finally:
            if self.state is not None:
                self.state = set_auto_rolling(self.state, False)

    def stop_auto_roll(self) -> None:
        self._stop_event.set()
