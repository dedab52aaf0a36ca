"""Tests for the manual roll log."""

from reroll_core.data import EffectCatalogEntry, Rarity
from reroll_core.models import ManualSlot, RollLogEffect
from reroll_core.roll_log import (
    add_log_entry,
    create_log_entry,
    filter_qualifying_effects,
    process_roll_for_logging,
    roll_log_summary,
    should_log_roll,
)


def slot(number, effect_id, rarity, locked=False, match=False):
    effect = EffectCatalogEntry(effect_id=effect_id, display_name=effect_id.title(), module_type="core")
    return ManualSlot(slot_number=number, effect=effect, rarity=rarity, is_locked=locked, is_target_match=match)


SLOTS = [
    slot(1, "alpha", Rarity.ANCESTRAL, locked=True),
    slot(2, "beta", Rarity.COMMON),
    slot(3, "gamma", Rarity.LEGENDARY, match=True),
    slot(4, "delta", Rarity.MYTHIC),
    ManualSlot(slot_number=5),
]


class TestQualifyingEffects:
    """Filtering freshly rolled effects"""

    def test_only_filled_slots_at_threshold(self):
        effects = filter_qualifying_effects(SLOTS, [1, 2, 3, 4], Rarity.LEGENDARY)
        assert [effect.effect_id for effect in effects] == ["gamma", "delta"]
        assert effects[0].short_name == "L"
        assert effects[0].name == "Gamma"
        assert effects[0].is_target_match

    def test_should_log(self):
        assert should_log_roll(SLOTS, [1, 2, 3], Rarity.LEGENDARY)
        assert not should_log_roll(SLOTS, [1], Rarity.EPIC)
        assert not should_log_roll(SLOTS, [], Rarity.COMMON)
        assert not should_log_roll(SLOTS, [2], Rarity.COMMON, log_enabled=False)


class TestLogEntries:
    """Adding and capping entries"""

    def test_newest_first_and_capped(self):
        entries = ()
        for number in range(1, 5):
            entries = add_log_entry(entries, create_log_entry(number, number * 10, 10, []), max_entries=3)
        assert [entry.roll_number for entry in entries] == [4, 3, 2]

    def test_process_roll(self):
        entries = process_roll_for_logging(SLOTS, [1, 2, 3], 7, 70, 40, (), Rarity.LEGENDARY)
        assert len(entries) == 1
        assert entries[0].roll_number == 7
        assert entries[0].total_shards == 70
        assert entries[0].roll_cost == 40
        assert [effect.effect_id for effect in entries[0].effects] == ["gamma"]

    def test_process_roll_not_qualifying(self):
        existing = (create_log_entry(1, 10, 10, []),)
        assert process_roll_for_logging(SLOTS, [1], 2, 20, 10, existing, Rarity.LEGENDARY) == existing
        assert process_roll_for_logging(SLOTS, [2, 3], 2, 20, 10, existing, Rarity.COMMON, log_enabled=False) == existing


class TestSummary:
    """Collapsed header text"""

    def test_empty(self):
        assert roll_log_summary([]) == "Empty"

    def test_latest_highest_rarity(self):
        effects = [
            RollLogEffect("gamma", "Gamma", Rarity.LEGENDARY, "L"),
            RollLogEffect("delta", "Delta", Rarity.MYTHIC, "M"),
        ]
        assert roll_log_summary([create_log_entry(1, 10, 10, effects)]) == "1 entry | Latest: Mythic"

    def test_latest_without_effects(self):
        entries = [create_log_entry(2, 20, 10, []), create_log_entry(1, 10, 10, [])]
        assert roll_log_summary(entries) == "2 entries"
