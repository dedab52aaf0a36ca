"""Priority-group resolution shared by bulk simulation and manual mode."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Optional

from .data import Rarity
from .models import SlotTarget


def current_priority_group(targets: Sequence[SlotTarget]) -> list[SlotTarget]:
    """Return the targets that must be satisfied before any other group.

    The group is anchored on the lowest slot number. Any other target whose
    acceptable effects overlap the anchor's is pursued alongside it.

    Example: slots 1 and 2 accept ``[A, B]`` and slot 3 accepts ``[C]``.
    Slots 1 and 2 form the first group. Once slot 1 is filled with ``A`` the
    remaining slot 2 accepts ``[B]`` and is pursued alone before slot 3.
    """

    if not targets:
        return []
    anchor = min(targets, key=lambda target: target.slot_number)
    anchor_effects = set(anchor.acceptable_effects)
    return [
        target
        for target in targets
        if target.slot_number == anchor.slot_number
        or any(effect_id in anchor_effects for effect_id in target.acceptable_effects)
    ]


def build_min_rarity_map(targets: Sequence[SlotTarget]) -> dict[str, Rarity]:
    """Map each acceptable effect to its most permissive required rarity."""

    min_rarities: dict[str, Rarity] = {}
    for target in targets:
        for effect_id in target.acceptable_effects:
            existing = min_rarities.get(effect_id)
            if existing is None or target.min_rarity < existing:
                min_rarities[effect_id] = target.min_rarity
    return min_rarities


def remove_locked_effect(targets: Sequence[SlotTarget], effect_id: str) -> list[SlotTarget]:
    """Strip ``effect_id`` from every target and drop targets left empty."""

    remaining: list[SlotTarget] = []
    for target in targets:
        effects = tuple(other for other in target.acceptable_effects if other != effect_id)
        if effects:
            remaining.append(
                SlotTarget(
                    slot_number=target.slot_number,
                    acceptable_effects=effects,
                    min_rarity=target.min_rarity,
                )
            )
    return remaining


def is_target_in_current_priority(
    target: SlotTarget,
    remaining_targets: Sequence[SlotTarget],
) -> bool:
    """Return True when ``target`` belongs to the group currently pursued."""

    return any(
        member.slot_number == target.slot_number
        for member in current_priority_group(remaining_targets)
    )


def find_satisfied_target(
    targets: Sequence[SlotTarget],
    effect_id: str,
    rarity: Rarity,
) -> Optional[SlotTarget]:
    """Return the target a locked ``effect_id`` at ``rarity`` fills, if any.

    Targets in the current priority group are preferred, then the remaining
    targets in slot order.
    """

    ordered = [
        *current_priority_group(targets),
        *sorted(targets, key=lambda target: target.slot_number),
    ]
    for target in ordered:
        if effect_id in target.acceptable_effects and rarity >= target.min_rarity:
            return target
    return None


def resolve_locked_effects(
    targets: Sequence[SlotTarget],
    locked: Iterable[tuple[str, Rarity]],
) -> list[SlotTarget]:
    """Apply already-locked effects to a target list.

    Each locked effect fills the target it satisfies and is stripped from
    every other target, exactly as a lock during rolling would.
    """

    remaining = list(targets)
    for effect_id, rarity in locked:
        filled = find_satisfied_target(remaining, effect_id, rarity)
        if filled is not None:
            remaining = [
                target for target in remaining if target.slot_number != filled.slot_number
            ]
        remaining = remove_locked_effect(remaining, effect_id)
    return remaining
