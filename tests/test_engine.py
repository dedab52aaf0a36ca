"""Tests for the shared roll and lock primitives."""

import random

from reroll_core.data import Rarity
from reroll_core.engine import (
    is_simulation_complete,
    lock_effect,
    roll_round,
    roll_until_priority_hit,
)
from reroll_core.pool import EMPTY_POOL, build_initial_pool, prepare_pool
from reroll_core.priority import build_min_rarity_map


class TestRollRound:
    """One round across all open slots"""

    def test_one_result_per_open_slot(self, rng, target):
        pool = prepare_pool(build_initial_pool("core", Rarity.ANCESTRAL))
        targets = [target(1, ["blackHoleSize"])]
        result = roll_round(pool, 5, targets, build_min_rarity_map(targets), rng)
        assert len(result.slot_results) == 5

    def test_empty_pool_or_no_slots(self, rng, make_entry):
        pool = prepare_pool([make_entry("A", Rarity.COMMON)])
        assert roll_round(EMPTY_POOL, 3, [], {}, rng).slot_results == []
        assert roll_round(pool, 0, [], {}, rng).slot_results == []

    def test_draws_with_replacement(self, rng, make_entry):
        """A single-entry pool fills every open slot with the same entry"""
        pool = prepare_pool([make_entry("A", Rarity.EPIC)])
        result = roll_round(pool, 4, [], {}, rng)
        assert [slot.entry.effect_id for slot in result.slot_results] == ["A"] * 4

    def test_priority_hit_flags(self, rng, make_entry, target):
        targets = [target(1, ["A"]), target(2, ["B"])]
        rarity_map = build_min_rarity_map(targets)

        lower = roll_round(prepare_pool([make_entry("B", Rarity.RARE)]), 2, targets, rarity_map, rng)
        assert lower.has_target_hit
        assert not lower.has_current_priority_hit
        assert lower.first_priority_hit is None
        assert all(slot.is_target_match for slot in lower.slot_results)

        priority = roll_round(prepare_pool([make_entry("A", Rarity.RARE)]), 2, targets, rarity_map, rng)
        assert priority.has_current_priority_hit
        assert priority.first_priority_hit.target.slot_number == 1

    def test_no_match_below_rarity(self, rng, make_entry, target):
        targets = [target(1, ["A"], Rarity.MYTHIC)]
        result = roll_round(
            prepare_pool([make_entry("A", Rarity.EPIC)]), 3, targets, build_min_rarity_map(targets), rng
        )
        assert not result.has_target_hit
        assert not any(slot.is_target_match for slot in result.slot_results)

    def test_same_seed_same_round(self):
        pool = prepare_pool(build_initial_pool("core", Rarity.ANCESTRAL))
        first = roll_round(pool, 5, [], {}, random.Random(7))
        second = roll_round(pool, 5, [], {}, random.Random(7))
        assert [s.entry for s in first.slot_results] == [s.entry for s in second.slot_results]


class TestRollUntilPriorityHit:
    """Repeated rounds until the current priority lands"""

    def test_guaranteed_hit_first_round(self, rng, make_entry, target):
        targets = [target(1, ["A"])]
        hit = roll_until_priority_hit(
            prepare_pool([make_entry("A", Rarity.COMMON)]), 2, targets, build_min_rarity_map(targets), rng
        )
        assert hit.rounds == 1
        assert hit.entry.effect_id == "A"

    def test_unreachable_target_gives_up(self, rng, make_entry, target):
        targets = [target(1, ["C"])]
        hit = roll_until_priority_hit(
            prepare_pool([make_entry("A", Rarity.COMMON)]),
            2,
            targets,
            build_min_rarity_map(targets),
            rng,
            max_rounds=5,
        )
        assert hit is None

    def test_nothing_to_roll(self, rng, target):
        targets = [target(1, ["A"])]
        assert roll_until_priority_hit(EMPTY_POOL, 2, targets, {}, rng) is None


class TestLockEffect:
    """Pool and target updates after a lock"""

    def test_lock_updates_pool_and_targets(self, make_entry, target):
        pool = prepare_pool(
            [make_entry("A", Rarity.COMMON), make_entry("A", Rarity.EPIC), make_entry("B", Rarity.RARE)]
        )
        targets = [target(1, ["A"]), target(2, ["A", "B"]), target(3, ["C"])]
        outcome = lock_effect(pool, targets, "A", 1)
        assert {entry.effect_id for entry in outcome.pool.entries} == {"B"}
        assert outcome.pool.cumulative_probs[-1] == 1.0
        assert [(t.slot_number, t.acceptable_effects) for t in outcome.remaining_targets] == [
            (2, ("B",)),
            (3, ("C",)),
        ]
        assert len(pool) == 3

    def test_lock_without_filled_slot(self, make_entry, target):
        pool = prepare_pool([make_entry("A", Rarity.COMMON), make_entry("B", Rarity.COMMON)])
        targets = [target(1, ["A", "B"])]
        outcome = lock_effect(pool, targets, "A", None)
        assert [t.acceptable_effects for t in outcome.remaining_targets] == [("B",)]

    def test_completion(self, make_entry, target):
        pool = prepare_pool([make_entry("A", Rarity.COMMON)])
        assert is_simulation_complete([], pool)
        assert is_simulation_complete([target(1, ["A"])], EMPTY_POOL)
        assert not is_simulation_complete([target(1, ["A"])], pool)
