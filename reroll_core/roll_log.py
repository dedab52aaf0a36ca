"""Log of notable manual rolls, newest first."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

from .data import RARITY_SHORT_NAMES, Rarity
from .models import ManualSlot, RollLogEffect, RollLogEntry

MAX_LOG_ENTRIES: Final[int] = 500


def filter_qualifying_effects(
    slots: Sequence[ManualSlot],
    filled_slot_indexes: Sequence[int],
    min_rarity: Rarity,
) -> list[RollLogEffect]:
    """Return the freshly rolled effects at ``min_rarity`` or rarer."""

    qualifying: list[RollLogEffect] = []
    for index in filled_slot_indexes:
        slot = slots[index] if 0 <= index < len(slots) else None
        if slot is None or slot.effect is None or slot.rarity is None:
            continue
        if slot.rarity >= min_rarity:
            qualifying.append(
                RollLogEffect(
                    effect_id=slot.effect.effect_id,
                    name=slot.effect.display_name,
                    rarity=slot.rarity,
                    short_name=RARITY_SHORT_NAMES[slot.rarity],
                    is_target_match=slot.is_target_match,
                )
            )
    return qualifying


def should_log_roll(
    slots: Sequence[ManualSlot],
    filled_slot_indexes: Sequence[int],
    min_rarity: Rarity,
    log_enabled: bool = True,
) -> bool:
    if not log_enabled or not filled_slot_indexes:
        return False
    return bool(filter_qualifying_effects(slots, filled_slot_indexes, min_rarity))


def create_log_entry(
    roll_number: int,
    total_shards: float,
    roll_cost: float,
    effects: Sequence[RollLogEffect],
) -> RollLogEntry:
    return RollLogEntry(
        roll_number=roll_number,
        total_shards=total_shards,
        roll_cost=roll_cost,
        effects=tuple(effects),
    )


def add_log_entry(
    entries: Sequence[RollLogEntry],
    entry: RollLogEntry,
    max_entries: int = MAX_LOG_ENTRIES,
) -> tuple[RollLogEntry, ...]:
    """Prepend ``entry`` and drop the oldest entries beyond ``max_entries``."""

    return (entry, *entries)[:max_entries]


def process_roll_for_logging(
    slots: Sequence[ManualSlot],
    filled_slot_indexes: Sequence[int],
    roll_number: int,
    total_spent: float,
    roll_cost: float,
    log_entries: Sequence[RollLogEntry],
    minimum_log_rarity: Rarity,
    log_enabled: bool = True,
) -> tuple[RollLogEntry, ...]:
    """Return the log with this roll added when it qualifies.

    Parameters
    ----------
    slots:
        Slot states after the roll.
    filled_slot_indexes:
        Zero-based indexes of the slots the roll filled.
    roll_number:
        One-based number of the roll within the session.
    total_spent:
        Session spend including this roll.
    roll_cost:
        Price of this roll.
    log_entries:
        Current log, newest first.
    minimum_log_rarity:
        Rolls are logged only when a filled slot reaches this rarity.
    log_enabled:
        When False the log is returned unchanged.
    """

    if not should_log_roll(slots, filled_slot_indexes, minimum_log_rarity, log_enabled):
        return tuple(log_entries)
    effects = filter_qualifying_effects(slots, filled_slot_indexes, minimum_log_rarity)
    entry = create_log_entry(roll_number, total_spent, roll_cost, effects)
    return add_log_entry(log_entries, entry)


def roll_log_summary(entries: Sequence[RollLogEntry]) -> str:
    """Return a one-line header such as ``"12 entries | Latest: Legendary"``."""

    if not entries:
        return "Empty"
    count = f"{len(entries)} {'entry' if len(entries) == 1 else 'entries'}"
    latest = entries[0]
    if not latest.effects:
        return count
    highest = max(effect.rarity for effect in latest.effects)
    return f"{count} | Latest: {highest.label}"
