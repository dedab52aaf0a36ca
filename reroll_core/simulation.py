"""Single-run reroll simulation and Monte Carlo aggregation."""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping, Sequence
from typing import Final, Optional

import numpy as np

from .cost import CostFn, lock_cost
from .data import EffectCatalogEntry
from .engine import DEFAULT_MAX_ROUNDS, is_simulation_complete, lock_effect, roll_until_priority_hit
from .models import (
    CalculatorConfig,
    CostStatistics,
    HistogramBucket,
    LockedEffectRecord,
    SimulationResults,
    SimulationRunResult,
)
from .pool import PreparedPool, build_initial_pool, prepare_pool
from .priority import build_min_rarity_map, resolve_locked_effects

logger = logging.getLogger(__name__)

HISTOGRAM_BUCKET_COUNT: Final[int] = 20

Catalog = Optional[Mapping[str, Sequence[EffectCatalogEntry]]]


def build_simulation_pool(config: CalculatorConfig, catalog: Catalog = None) -> PreparedPool:
    """Return the starting pool with banned and pre-locked effects removed."""

    entries = build_initial_pool(
        config.module_type,
        config.module_rarity,
        config.excluded_effects,
        catalog=catalog,
    )
    return prepare_pool(entries)


def simulate_once(
    config: CalculatorConfig,
    rng: random.Random,
    cost_fn: CostFn = lock_cost,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
    catalog: Catalog = None,
    initial_pool: Optional[PreparedPool] = None,
) -> SimulationRunResult:
    """Simulate one complete reroll session.

    Each round fills every open slot at a price set by the current lock
    count. The player locks the first current-priority hit, which removes
    that effect from the pool and from every other target, then keeps
    rolling until all targets are filled.

    Parameters
    ----------
    config:
        Module, targets, bans, and pre-locked effects.
    rng:
        Deterministic random number generator.
    cost_fn:
        Shard price of one round given the number of locked slots.
    max_rounds:
        Per-target round cap; reaching it ends the run incomplete.
    catalog:
        Optional replacement for the built-in effect catalog.
    initial_pool:
        Pre-built starting pool; pools are immutable, so batches share one.

    Returns
    -------
    SimulationRunResult
        ``completed`` is False when the pool, the open slots, or the round
        cap ran out before every target was filled.
    """

    pool = initial_pool if initial_pool is not None else build_simulation_pool(config, catalog)
    remaining_targets = resolve_locked_effects(
        config.slot_targets,
        ((locked.effect_id, locked.rarity) for locked in config.pre_locked_effects),
    )
    pre_locked_count = len(config.pre_locked_effects)
    result = SimulationRunResult()

    while not is_simulation_complete(remaining_targets, pool):
        locked_count = pre_locked_count + len(result.lock_order)
        open_slots = config.slot_count - locked_count
        if open_slots <= 0:
            break

        hit = roll_until_priority_hit(
            pool,
            open_slots,
            remaining_targets,
            build_min_rarity_map(remaining_targets),
            rng,
            max_rounds=max_rounds,
        )
        if hit is None:
            logger.debug(
                "No priority hit within %d rounds; ending run with %d targets left",
                max_rounds,
                len(remaining_targets),
            )
            break

        cost_per_round = cost_fn(locked_count)
        result.total_rolls += hit.rounds
        result.total_shard_cost += hit.rounds * cost_per_round
        result.lock_order.append(
            LockedEffectRecord(
                effect_id=hit.entry.effect.effect_id,
                rarity=hit.entry.rarity,
                slot_number=hit.target.slot_number,
                rounds_to_acquire=hit.rounds,
                shard_cost_per_round=cost_per_round,
            )
        )

        outcome = lock_effect(
            pool, remaining_targets, hit.entry.effect.effect_id, hit.target.slot_number
        )
        pool = outcome.pool
        remaining_targets = outcome.remaining_targets

    result.completed = not remaining_targets
    return result


def simulate_many(
    config: CalculatorConfig,
    iterations: int = 10_000,
    seed: Optional[int] = 42,
    cost_fn: CostFn = lock_cost,
    max_rounds: int = DEFAULT_MAX_ROUNDS,
    catalog: Catalog = None,
) -> list[SimulationRunResult]:
    """Run ``iterations`` independent sessions and return every run."""

    rng = random.Random(seed)
    pool = build_simulation_pool(config, catalog)
    return [
        simulate_once(config, rng, cost_fn=cost_fn, max_rounds=max_rounds, initial_pool=pool)
        for _ in range(iterations)
    ]


def calculate_statistics(values: Sequence[float]) -> CostStatistics:
    """Return min, max, mean, median and p10/p90/p95 of ``values``.

    Percentiles interpolate linearly between the two nearest ranks
    (``index = p / 100 * (n - 1)``). An empty sample yields all zeros.
    """

    if len(values) == 0:
        return CostStatistics(
            min=0.0,
            max=0.0,
            mean=0.0,
            median=0.0,
            percentile10=0.0,
            percentile90=0.0,
            percentile95=0.0,
        )

    array = np.asarray(values, dtype=float)
    p10, p50, p90, p95 = np.percentile(array, [10, 50, 90, 95])
    return CostStatistics(
        min=float(array.min()),
        max=float(array.max()),
        mean=float(array.mean()),
        median=float(p50),
        percentile10=float(p10),
        percentile90=float(p90),
        percentile95=float(p95),
    )


def build_histogram(
    values: Sequence[float],
    stats: CostStatistics,
    bucket_count: int = HISTOGRAM_BUCKET_COUNT,
) -> list[HistogramBucket]:
    """Bucket ``values`` between the minimum and the 95th percentile.

    The last bucket also holds every value above p95 and reports the sample
    maximum as its upper bound.
    """

    if len(values) == 0:
        return []

    array = np.asarray(values, dtype=float)
    total = len(array)
    bucket_size = (stats.percentile95 - stats.min) / bucket_count or 1.0

    buckets: list[HistogramBucket] = []
    for index in range(bucket_count):
        bucket_min = stats.min + index * bucket_size
        bucket_max = stats.min + (index + 1) * bucket_size
        is_last = index == bucket_count - 1
        if is_last:
            count = int(np.count_nonzero(array >= bucket_min))
        else:
            count = int(np.count_nonzero((array >= bucket_min) & (array < bucket_max)))
        buckets.append(
            HistogramBucket(
                min=bucket_min,
                max=stats.max if is_last else bucket_max,
                count=count,
                percentage=100.0 * count / total,
            )
        )
    return buckets


def aggregate_runs(
    runs: Sequence[SimulationRunResult],
    include_incomplete: bool = True,
) -> SimulationResults:
    """Summarise run results into cost and roll statistics."""

    completed = sum(1 for run in runs if run.completed)
    if completed < len(runs):
        logger.warning(
            "%d of %d runs ended before all targets were filled",
            len(runs) - completed,
            len(runs),
        )
    kept = runs if include_incomplete else [run for run in runs if run.completed]

    shard_costs = [run.total_shard_cost for run in kept]
    roll_counts = [run.total_rolls for run in kept]
    shard_stats = calculate_statistics(shard_costs)
    return SimulationResults(
        run_count=len(kept),
        shard_cost=shard_stats,
        roll_count=calculate_statistics(roll_counts),
        shard_cost_histogram=build_histogram(shard_costs, shard_stats),
        completion_rate=completed / len(runs) if runs else 0.0,
    )


def run_simulation(
    config: CalculatorConfig,
    iterations: int = 10_000,
    seed: Optional[int] = 42,
    cost_fn: CostFn = lock_cost,
    include_incomplete: bool = True,
    catalog: Catalog = None,
) -> SimulationResults:
    """Run a full Monte Carlo batch on the calling thread."""

    runs = simulate_many(
        config, iterations=iterations, seed=seed, cost_fn=cost_fn, catalog=catalog
    )
    return aggregate_runs(runs, include_incomplete=include_incomplete)
