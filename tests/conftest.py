"""Shared fixtures for the reroll calculator tests."""

import random

import pytest

from reroll_core.data import MODULE_TYPES, EffectCatalogEntry, Rarity
from reroll_core.models import CalculatorConfig, PoolEntry, SlotTarget


def _all_rarities(effect_id: str, minimum: Rarity = Rarity.COMMON) -> EffectCatalogEntry:
    return EffectCatalogEntry(
        effect_id=effect_id,
        display_name=effect_id.upper(),
        module_type="core",
        values={rarity: float(rarity) + 1 for rarity in Rarity if rarity >= minimum},
    )


@pytest.fixture
def rng() -> random.Random:
    """Seeded generator so every test is reproducible."""
    return random.Random(12345)


@pytest.fixture
def tiny_catalog() -> dict[str, list[EffectCatalogEntry]]:
    """Three core effects: A and B roll at every rarity, C only Legendary and above."""
    catalog: dict[str, list[EffectCatalogEntry]] = {module_type: [] for module_type in MODULE_TYPES}
    catalog["core"] = [
        _all_rarities("A"),
        _all_rarities("B"),
        _all_rarities("C", Rarity.LEGENDARY),
    ]
    return catalog


@pytest.fixture
def single_effect_catalog() -> dict[str, list[EffectCatalogEntry]]:
    """A catalog whose core module has only effect A."""
    catalog: dict[str, list[EffectCatalogEntry]] = {module_type: [] for module_type in MODULE_TYPES}
    catalog["core"] = [_all_rarities("A")]
    return catalog


@pytest.fixture
def make_config():
    """Factory for core-module configurations."""

    def factory(
        targets=(),
        banned=(),
        pre_locked=(),
        slot_count=5,
        module_rarity=Rarity.ANCESTRAL,
        module_level=141,
    ) -> CalculatorConfig:
        return CalculatorConfig(
            module_type="core",
            module_level=module_level,
            module_rarity=module_rarity,
            slot_count=slot_count,
            banned_effects=tuple(banned),
            slot_targets=tuple(targets),
            pre_locked_effects=tuple(pre_locked),
        )

    return factory


@pytest.fixture
def make_entry():
    """Factory for a single pool entry with a given weight."""

    def factory(effect_id: str, rarity: Rarity, probability: float = 0.1) -> PoolEntry:
        return PoolEntry(effect=_all_rarities(effect_id), rarity=rarity, base_probability=probability)

    return factory


@pytest.fixture
def target():
    """Factory for ``SlotTarget`` values."""

    def factory(slot_number: int, effects, min_rarity: Rarity = Rarity.COMMON) -> SlotTarget:
        return SlotTarget(
            slot_number=slot_number,
            acceptable_effects=tuple(effects),
            min_rarity=min_rarity,
        )

    return factory
