"""Domain constants, catalog helpers, and shared type aliases."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Final, Optional


class Rarity(IntEnum):
    """Ordered rarity tiers; comparison follows the integer value."""

    COMMON = 0
    RARE = 1
    EPIC = 2
    LEGENDARY = 3
    MYTHIC = 4
    ANCESTRAL = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: "str | int | Rarity") -> "Rarity":
        """Return the rarity for a name (case-insensitive) or index."""

        if isinstance(value, Rarity):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown rarity '{value}'") from exc


RARITY_ORDER: Final[tuple[Rarity, ...]] = tuple(Rarity)

RARITY_PROBABILITIES: Final[dict[Rarity, float]] = {
    Rarity.COMMON: 0.462,
    Rarity.RARE: 0.400,
    Rarity.EPIC: 0.100,
    Rarity.LEGENDARY: 0.025,
    Rarity.MYTHIC: 0.010,
    Rarity.ANCESTRAL: 0.003,
}

RARITY_SHORT_NAMES: Final[dict[Rarity, str]] = {
    Rarity.COMMON: "C",
    Rarity.RARE: "R",
    Rarity.EPIC: "E",
    Rarity.LEGENDARY: "L",
    Rarity.MYTHIC: "M",
    Rarity.ANCESTRAL: "A",
}

MODULE_TYPES: Final[tuple[str, ...]] = ("cannon", "armor", "generator", "core")

EffectValue = Optional[float]


@dataclass(frozen=True)
class EffectCatalogEntry:
    """Static description of a rollable sub-effect."""

    effect_id: str
    display_name: str
    module_type: str
    values: Mapping[Rarity, EffectValue] = field(default_factory=dict)
    unit: str = ""

    def value_at(self, rarity: Rarity) -> EffectValue:
        return self.values.get(rarity)


def rarity_probability(rarity: Rarity) -> float:
    """Return the base roll probability of a rarity."""

    return RARITY_PROBABILITIES[rarity]


def is_at_least_as_rare(rarity: Rarity, minimum: Rarity) -> bool:
    return rarity >= minimum


def rarities_at_or_above(minimum: Rarity) -> list[Rarity]:
    return [rarity for rarity in RARITY_ORDER if rarity >= minimum]


def rarities_at_or_below(maximum: Rarity) -> list[Rarity]:
    return [rarity for rarity in RARITY_ORDER if rarity <= maximum]


def cumulative_probability(minimum: Rarity) -> float:
    """Return the chance that a single roll lands at ``minimum`` or rarer."""

    return sum(RARITY_PROBABILITIES[rarity] for rarity in rarities_at_or_above(minimum))


def available_rarities(effect: EffectCatalogEntry) -> list[Rarity]:
    """Return the rarities an effect can actually roll at, in ascending order."""

    return [rarity for rarity in RARITY_ORDER if effect.values.get(rarity) is not None]


def _effect(
    effect_id: str,
    display_name: str,
    module_type: str,
    values: Sequence[EffectValue],
    unit: str = "",
) -> EffectCatalogEntry:
    return EffectCatalogEntry(
        effect_id=effect_id,
        display_name=display_name,
        module_type=module_type,
        values=dict(zip(RARITY_ORDER, values)),
        unit=unit,
    )


# Values are listed Common -> Ancestral; ``None`` marks an unavailable rarity.
CORE_SUB_EFFECTS: Final[tuple[EffectCatalogEntry, ...]] = (
    _effect("goldenTowerBonus", "Golden Tower - Bonus", "core", (None, None, 1, 2, 3, 4), "x"),
    _effect("goldenTowerDuration", "Golden Tower - Duration", "core", (None, None, None, 2, 4, 7), "s"),
    _effect("goldenTowerCooldown", "Golden Tower - Cooldown", "core", (None, None, None, -5, -8, -12), "s"),
    _effect("blackHoleSize", "Black Hole - Size", "core", (2, 4, 6, 8, 10, 12), "m"),
    _effect("blackHoleDuration", "Black Hole - Duration", "core", (None, None, None, 2, 3, 4), "s"),
    _effect("blackHoleCooldown", "Black Hole - Cooldown", "core", (None, None, None, -2, -3, -4), "s"),
    _effect("spotlightBonus", "Spotlight - Bonus", "core", (1.2, 2.5, 3.5, 10, 15, 20), "x"),
    _effect("spotlightAngle", "Spotlight - Angle", "core", (None, None, 3, 6, 11, 15), "°"),
    _effect("chronoFieldDuration", "Chrono Field - Duration", "core", (None, None, None, 4, 7, 10), "s"),
    _effect(
        "chronoFieldSpeedReduction",
        "Chrono Field - Speed Reduction",
        "core",
        (None, None, 3, 8, 11, 15),
        "%",
    ),
    _effect("chronoFieldCooldown", "Chrono Field - Cooldown", "core", (None, None, None, -4, -7, -10), "s"),
    _effect("deathWaveDamage", "Death Wave - Damage", "core", (8, 15, 25, 50, 100, 250), "x"),
    _effect("deathWaveQuantity", "Death Wave - Quantity", "core", (None, None, None, 1, 2, 3)),
    _effect("deathWaveCooldown", "Death Wave - Cooldown", "core", (None, None, None, -6, -10, -13), "s"),
    _effect("smartMissilesDamage", "Smart Missiles - Damage", "core", (8, 15, 25, 50, 100, 250), "x"),
    _effect("smartMissilesQuantity", "Smart Missiles - Quantity", "core", (None, None, 1, 2, 4, 5)),
    _effect("smartMissilesCooldown", "Smart Missiles - Cooldown", "core", (None, None, None, -2, -4, -6), "s"),
    _effect("innerLandMinesDamage", "Inner Land Mines - Damage", "core", (8, 15, 25, 50, 100, 250), "x"),
    _effect("innerLandMinesQuantity", "Inner Land Mines - Quantity", "core", (None, None, None, 1, 2, 3)),
    _effect(
        "innerLandMinesCooldown",
        "Inner Land Mines - Cooldown",
        "core",
        (None, None, -5, -8, -10, -13),
        "s",
    ),
    _effect("poisonSwampDamage", "Poison Swamp - Damage", "core", (8, 15, 25, 50, 100, 250), "x"),
    _effect("poisonSwampDuration", "Poison Swamp - Duration", "core", (None, None, None, 2, 5, 10), "s"),
    _effect("poisonSwampCooldown", "Poison Swamp - Cooldown", "core", (None, -2, -4, -6, -8, -10), "s"),
    _effect("chainLightningDamage", "Chain Lightning - Damage", "core", (8, 15, 25, 50, 100, 250), "x"),
    _effect("chainLightningQuantity", "Chain Lightning - Quantity", "core", (None, None, 1, 2, 3, 4)),
    _effect("chainLightningChance", "Chain Lightning - Chance", "core", (2, 4, 6, 9, 12, 15), "%"),
)

EffectCatalog = dict[str, list[EffectCatalogEntry]]

DEFAULT_EFFECT_CATALOG: Final[EffectCatalog] = {
    module_type: [effect for effect in CORE_SUB_EFFECTS if effect.module_type == module_type]
    for module_type in MODULE_TYPES
}


def effects_for_module(
    module_type: str,
    catalog: Optional[Mapping[str, Sequence[EffectCatalogEntry]]] = None,
) -> list[EffectCatalogEntry]:
    """Return catalog effects for a module type.

    Raises
    ------
    ValueError
        If the module type is not one of ``MODULE_TYPES``.
    """

    if module_type not in MODULE_TYPES:
        raise ValueError(f"Unknown module type '{module_type}'")
    source = DEFAULT_EFFECT_CATALOG if catalog is None else catalog
    return list(source.get(module_type, ()))


def find_effect(
    effect_id: str,
    catalog: Optional[Mapping[str, Sequence[EffectCatalogEntry]]] = None,
) -> Optional[EffectCatalogEntry]:
    """Return the catalog entry with the given id, if any."""

    source = DEFAULT_EFFECT_CATALOG if catalog is None else catalog
    for effects in source.values():
        for effect in effects:
            if effect.effect_id == effect_id:
                return effect
    return None


# ---- Slot unlock rules --------------------------------------------------------

MIN_MODULE_LEVEL: Final[int] = 1
MIN_SLOTS: Final[int] = 2
MAX_SLOTS: Final[int] = 8

# (minimum level, slot count), ascending.
SLOT_UNLOCK_LEVELS: Final[tuple[tuple[int, int], ...]] = (
    (1, 2),
    (41, 3),
    (101, 4),
    (141, 5),
    (161, 6),
    (201, 7),
    (241, 8),
)


def slots_for_level(level: int) -> int:
    """Return the number of sub-effect slots unlocked at a module level."""

    slots = MIN_SLOTS
    for min_level, slot_count in SLOT_UNLOCK_LEVELS:
        if level >= min_level:
            slots = slot_count
    return slots


def min_level_for_slots(slot_count: int) -> Optional[int]:
    for min_level, count in SLOT_UNLOCK_LEVELS:
        if count == slot_count:
            return min_level
    return None


def available_slot_counts() -> list[int]:
    return [count for _, count in SLOT_UNLOCK_LEVELS]


def is_valid_module_level(level: object) -> bool:
    return isinstance(level, int) and not isinstance(level, bool) and level >= MIN_MODULE_LEVEL


# ---- JSON catalog loading -----------------------------------------------------


def _parse_effect(module_type: str, raw: object) -> Optional[EffectCatalogEntry]:
    if not isinstance(raw, Mapping):
        return None
    effect_id = raw.get("id")
    if not isinstance(effect_id, str) or not effect_id:
        return None
    raw_values = raw.get("values")
    if not isinstance(raw_values, Mapping):
        return None

    values: dict[Rarity, EffectValue] = {}
    for key, value in raw_values.items():
        try:
            rarity = Rarity.parse(key)
        except ValueError:
            continue
        if value is None:
            values[rarity] = None
            continue
        try:
            values[rarity] = float(value)
        except (TypeError, ValueError):
            continue

    if not any(value is not None for value in values.values()):
        return None
    return EffectCatalogEntry(
        effect_id=effect_id,
        display_name=str(raw.get("displayName", effect_id)),
        module_type=module_type,
        values=values,
        unit=str(raw.get("unit", "") or ""),
    )


def parse_effect_catalog(raw_data: object) -> EffectCatalog:
    """Coerce JSON-compatible catalog data into ``EffectCatalog`` form.

    The expected layout maps each module type to a list of effects, each with
    an ``id``, optional ``displayName``/``unit`` and a ``values`` mapping from
    rarity name to number (or null). Unknown module types and malformed
    entries are skipped.
    """

    catalog: EffectCatalog = {module_type: [] for module_type in MODULE_TYPES}
    if not isinstance(raw_data, Mapping):
        return catalog

    for module_type, effects in raw_data.items():
        if module_type not in MODULE_TYPES or not isinstance(effects, Iterable):
            continue
        seen: set[str] = set()
        for raw in effects:
            effect = _parse_effect(module_type, raw)
            if effect is None or effect.effect_id in seen:
                continue
            seen.add(effect.effect_id)
            catalog[module_type].append(effect)
    return catalog


def load_effect_catalog(path: str | Path | None) -> EffectCatalog:
    """Load an effect catalog from JSON, falling back to the built-in data.

    Module types the file leaves empty keep their built-in effects.
    """

    if not path:
        return {key: list(effects) for key, effects in DEFAULT_EFFECT_CATALOG.items()}

    catalog_path = Path(path)
    try:
        raw_data = json.loads(catalog_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {key: list(effects) for key, effects in DEFAULT_EFFECT_CATALOG.items()}

    parsed = parse_effect_catalog(raw_data)
    return {
        module_type: parsed[module_type] or list(DEFAULT_EFFECT_CATALOG[module_type])
        for module_type in MODULE_TYPES
    }
