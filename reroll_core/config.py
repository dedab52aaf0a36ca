"""Calculator configuration: defaults, updates, selections, and validation."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Final, Optional

from .data import MIN_MODULE_LEVEL, RARITY_ORDER, Rarity, is_valid_module_level, slots_for_level
from .models import CalculatorConfig, PreLockedEffect, SlotTarget

MIN_ROLLABLE_MODULE_RARITY: Final[Rarity] = Rarity.RARE
ROLLABLE_MODULE_RARITIES: Final[tuple[Rarity, ...]] = tuple(
    rarity for rarity in RARITY_ORDER if rarity >= MIN_ROLLABLE_MODULE_RARITY
)
DEFAULT_MODULE_TYPE: Final[str] = "core"
DEFAULT_MODULE_LEVEL: Final[int] = 141
DEFAULT_MODULE_RARITY: Final[Rarity] = Rarity.ANCESTRAL


@dataclass(frozen=True)
class LevelValidation:
    is_valid: bool
    normalized_level: int
    error: Optional[str] = None


def validate_module_level(level: object) -> LevelValidation:
    """Normalise a user-entered level, rounding and clamping to the minimum."""

    try:
        numeric = float(level)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return LevelValidation(False, MIN_MODULE_LEVEL, "Level must be a valid number")
    if not math.isfinite(numeric):
        return LevelValidation(False, MIN_MODULE_LEVEL, "Level must be a valid number")

    normalized = max(MIN_MODULE_LEVEL, int(round(numeric)))
    if not is_valid_module_level(normalized):
        return LevelValidation(False, MIN_MODULE_LEVEL, f"Level must be at least {MIN_MODULE_LEVEL}")
    return LevelValidation(True, normalized)


def is_rollable_module_rarity(rarity: Rarity) -> bool:
    return rarity in ROLLABLE_MODULE_RARITIES


def calculate_slots_for_level(level: object) -> int:
    return slots_for_level(validate_module_level(level).normalized_level)


def create_default_config(module_type: str = DEFAULT_MODULE_TYPE) -> CalculatorConfig:
    return CalculatorConfig(
        module_type=module_type,
        module_level=DEFAULT_MODULE_LEVEL,
        module_rarity=DEFAULT_MODULE_RARITY,
        slot_count=slots_for_level(DEFAULT_MODULE_LEVEL),
    )


def update_module_type(config: CalculatorConfig, module_type: str) -> CalculatorConfig:
    """Switch module type; selections are cleared since the effects differ."""

    return replace(
        config,
        module_type=module_type,
        banned_effects=(),
        slot_targets=(),
        pre_locked_effects=(),
    )


def update_module_level(config: CalculatorConfig, level: object) -> CalculatorConfig:
    """Apply a new level, dropping targets for slots that no longer exist."""

    normalized = validate_module_level(level).normalized_level
    slot_count = slots_for_level(normalized)
    return replace(
        config,
        module_level=normalized,
        slot_count=slot_count,
        slot_targets=tuple(
            target for target in config.slot_targets if target.slot_number <= slot_count
        ),
    )


def update_module_rarity(config: CalculatorConfig, module_rarity: Rarity) -> CalculatorConfig:
    """Apply a new rarity cap, lowering target rarities that now exceed it."""

    targets = tuple(
        replace(target, min_rarity=module_rarity) if target.min_rarity > module_rarity else target
        for target in config.slot_targets
    )
    return replace(config, module_rarity=module_rarity, slot_targets=targets)


@dataclass(frozen=True)
class EffectSelection:
    """Per-effect choices made in the selection table."""

    effect_id: str
    min_rarity: Optional[Rarity] = None
    target_slots: tuple[int, ...] = ()
    is_banned: bool = False
    is_locked: bool = False
    locked_rarity: Optional[Rarity] = None


def toggle_min_rarity(
    selection: EffectSelection,
    rarity: Rarity,
    default_slot: int = 1,
) -> EffectSelection:
    """Select ``rarity`` as the minimum, or clear it when already selected.

    Choosing a rarity for an effect with no slots assigns ``default_slot``.
    """

    if selection.min_rarity == rarity:
        return replace(selection, min_rarity=None)
    if not selection.target_slots:
        return replace(selection, min_rarity=rarity, target_slots=(default_slot,))
    return replace(selection, min_rarity=rarity)


def toggle_slot_assignment(selection: EffectSelection, slot_number: int) -> EffectSelection:
    if slot_number in selection.target_slots:
        slots = tuple(slot for slot in selection.target_slots if slot != slot_number)
    else:
        slots = tuple(sorted((*selection.target_slots, slot_number)))
    return replace(selection, target_slots=slots)


def toggle_banned(selection: EffectSelection) -> EffectSelection:
    """Flip the ban; banning also clears targeting and lock choices."""

    if selection.is_banned:
        return replace(selection, is_banned=False)
    return replace(
        selection,
        is_banned=True,
        min_rarity=None,
        target_slots=(),
        is_locked=False,
        locked_rarity=None,
    )


def toggle_locked(
    selection: EffectSelection,
    rarity: Rarity,
    current_lock_count: int,
    max_locks: int,
) -> EffectSelection:
    """Lock the effect at ``rarity``, change its rarity, or unlock it.

    A new lock is refused once ``max_locks`` effects are locked; locking
    clears the targeting choices since the effect is already owned.
    """

    if selection.is_locked and selection.locked_rarity == rarity:
        return replace(selection, is_locked=False, locked_rarity=None)
    if selection.is_locked:
        return replace(selection, locked_rarity=rarity)
    if current_lock_count >= max_locks:
        return selection
    return replace(
        selection,
        is_locked=True,
        locked_rarity=rarity,
        min_rarity=None,
        target_slots=(),
    )


def count_locked_effects(selections: Sequence[EffectSelection]) -> int:
    return sum(1 for selection in selections if selection.is_locked)


def selections_to_slot_targets(selections: Sequence[EffectSelection]) -> list[SlotTarget]:
    """Group targeted effects by slot.

    A slot shared by several effects accepts any of them and keeps the most
    permissive minimum rarity. Banned or untargeted effects are ignored.
    """

    by_slot: dict[int, tuple[list[str], Rarity]] = {}
    for selection in selections:
        if selection.is_banned or selection.min_rarity is None:
            continue
        for slot_number in selection.target_slots:
            existing = by_slot.get(slot_number)
            if existing is None:
                by_slot[slot_number] = ([selection.effect_id], selection.min_rarity)
            else:
                effects, min_rarity = existing
                effects.append(selection.effect_id)
                by_slot[slot_number] = (effects, min(min_rarity, selection.min_rarity))

    return [
        SlotTarget(slot_number=slot_number, acceptable_effects=tuple(effects), min_rarity=rarity)
        for slot_number, (effects, rarity) in sorted(by_slot.items())
    ]


def selections_to_banned_effects(selections: Sequence[EffectSelection]) -> list[str]:
    return [selection.effect_id for selection in selections if selection.is_banned]


def selections_to_pre_locked_effects(
    selections: Sequence[EffectSelection],
) -> list[PreLockedEffect]:
    return [
        PreLockedEffect(effect_id=selection.effect_id, rarity=selection.locked_rarity)
        for selection in selections
        if selection.is_locked and selection.locked_rarity is not None
    ]


def apply_selections(
    config: CalculatorConfig,
    selections: Sequence[EffectSelection],
) -> CalculatorConfig:
    """Return ``config`` with targets, bans and pre-locks taken from ``selections``."""

    return replace(
        config,
        banned_effects=tuple(selections_to_banned_effects(selections)),
        slot_targets=tuple(selections_to_slot_targets(selections)),
        pre_locked_effects=tuple(selections_to_pre_locked_effects(selections)),
    )


def validate_config(config: CalculatorConfig) -> list[str]:
    """Return human-readable problems that prevent a simulation; empty if none."""

    errors: list[str] = []
    targets = config.slot_targets
    if not targets:
        errors.append("At least one target must be selected")
    if len(targets) > config.slot_count:
        errors.append("More targets than available slots")
    slot_numbers = [target.slot_number for target in targets]
    if len(set(slot_numbers)) != len(slot_numbers):
        errors.append("Multiple targets for the same slot")
    if any(not target.acceptable_effects for target in targets):
        errors.append("Some slots have no acceptable effects")
    return errors
