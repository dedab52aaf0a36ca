"""Tests for the high-level calculation entry points."""

import pytest

from reroll_core.api import (
    describe_pool,
    effect_ids_to_entries,
    make_cost_fn,
    make_slot_target,
    resolve_iterations,
    run_calculation,
)
from reroll_core.cost import LockCostTable, lock_cost
from reroll_core.data import Rarity
from reroll_core.models import PreLockedEffect


class TestHelpers:
    """Argument resolution"""

    def test_make_cost_fn(self):
        assert make_cost_fn() is lock_cost
        table = make_cost_fn([1, 2])
        assert isinstance(table, LockCostTable)
        assert table(5) == 2.0

    @pytest.mark.parametrize("value, expected", [("low", 1_000), ("Medium", 10_000), ("high", 100_000), (250, 250)])
    def test_resolve_iterations(self, value, expected):
        assert resolve_iterations(value) == expected

    def test_resolve_iterations_invalid(self):
        with pytest.raises(ValueError, match="Unknown iteration preset"):
            resolve_iterations("extreme")
        with pytest.raises(ValueError, match="positive"):
            resolve_iterations(0)

    def test_effect_lookup(self, tiny_catalog):
        entries = effect_ids_to_entries(["B", "A"], "core", tiny_catalog)
        assert [entry.effect_id for entry in entries] == ["B", "A"]
        with pytest.raises(ValueError, match="Unknown effect 'Z'"):
            effect_ids_to_entries(["Z"], "core", tiny_catalog)

    def test_make_slot_target(self):
        slot_target = make_slot_target(2, ["blackHoleSize", "spotlightBonus"], "epic", "core")
        assert slot_target.slot_number == 2
        assert slot_target.acceptable_effects == ("blackHoleSize", "spotlightBonus")
        assert slot_target.min_rarity is Rarity.EPIC


class TestDescribePool:
    """Starting pool summary"""

    def test_counts_and_odds(self, make_config, target, tiny_catalog):
        info = describe_pool(make_config(targets=[target(1, ["A"])]), tiny_catalog)
        assert info.effect_count == 3
        assert info.combination_count == 15
        assert info.priority_hit_probability == pytest.approx(1 / 2.038)

    def test_pre_locked_and_banned(self, make_config, target, tiny_catalog):
        config = make_config(
            targets=[target(1, ["A"]), target(2, ["B"])],
            banned=["C"],
            pre_locked=[PreLockedEffect("A", Rarity.COMMON)],
        )
        info = describe_pool(config, tiny_catalog)
        assert info.effect_count == 1
        assert info.priority_hit_probability == pytest.approx(1.0)


class TestRunCalculation:
    """End-to-end batches"""

    def test_runs_batch(self, make_config, target, tiny_catalog):
        progress = []
        outcome = run_calculation(
            make_config(targets=[target(1, ["A"], Rarity.EPIC)]),
            iterations=200,
            seed=7,
            allow_parallel=False,
            on_progress=lambda snapshot: progress.append(snapshot.percentage),
            catalog=tiny_catalog,
        )
        assert not outcome.cancelled
        assert outcome.iterations == 200
        assert outcome.results.run_count == 200
        assert outcome.results.shard_cost.min >= 10
        assert outcome.estimated_ms == pytest.approx(200 * 0.1 * 1.2)
        assert outcome.compute_seconds >= 0
        assert progress == [100.0]

    def test_same_seed_same_results(self, make_config, target, tiny_catalog):
        config = make_config(targets=[target(1, ["A"], Rarity.EPIC), target(2, ["B"])])
        first = run_calculation(config, iterations=300, seed=11, allow_parallel=False, catalog=tiny_catalog)
        second = run_calculation(config, iterations=300, seed=11, allow_parallel=False, catalog=tiny_catalog)
        assert first.results.shard_cost == second.results.shard_cost

    def test_custom_cost_table(self, make_config, target, tiny_catalog):
        outcome = run_calculation(
            make_config(targets=[target(1, ["A"])]),
            iterations=50,
            cost_fn=make_cost_fn([1]),
            allow_parallel=False,
            catalog=tiny_catalog,
        )
        assert outcome.results.shard_cost.mean == outcome.results.roll_count.mean

    def test_invalid_config(self, make_config):
        with pytest.raises(ValueError, match="At least one target must be selected"):
            run_calculation(make_config(), iterations=10)

    def test_cancelled(self, make_config, target, tiny_catalog):
        outcome = run_calculation(
            make_config(targets=[target(1, ["A"])]),
            iterations=100,
            allow_parallel=False,
            cancel_check=lambda: True,
            catalog=tiny_catalog,
        )
        assert outcome.cancelled
        assert outcome.results is None
