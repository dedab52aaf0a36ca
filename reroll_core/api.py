"""High-level entry points used by the UI and callers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from time import perf_counter
from typing import Optional, Union

from .config import validate_config
from .cost import CostFn, LockCostTable, lock_cost
from .data import EffectCatalogEntry, Rarity, effects_for_module
from .executor import (
    ITERATION_PRESETS,
    CancelCheck,
    ProgressCallback,
    create_simulation,
    estimate_simulation_time,
)
from .models import CalculatorConfig, SimulationResults, SlotTarget
from .pool import group_by_effect, target_hit_probability
from .priority import build_min_rarity_map, current_priority_group, resolve_locked_effects
from .simulation import Catalog, build_simulation_pool

logger = logging.getLogger(__name__)


def make_cost_fn(costs: Optional[Sequence[float]] = None) -> CostFn:
    """Return the default lock cost, or a table-backed one when ``costs`` is given."""

    if costs is None:
        return lock_cost
    return LockCostTable(costs)


def resolve_iterations(iterations: Union[int, str]) -> int:
    """Return an iteration count from a preset name or a positive integer.

    Raises
    ------
    ValueError
        If the preset is unknown or the count is not positive.
    """

    if isinstance(iterations, str):
        try:
            return ITERATION_PRESETS[iterations.lower()]
        except KeyError as exc:
            raise ValueError(f"Unknown iteration preset '{iterations}'") from exc
    if iterations <= 0:
        raise ValueError("Iteration count must be positive.")
    return int(iterations)


def effect_ids_to_entries(
    effect_ids: Sequence[str],
    module_type: str,
    catalog: Catalog = None,
) -> list[EffectCatalogEntry]:
    """Map effect ids to catalog entries for a module type.

    Parameters
    ----------
    effect_ids:
        Effect ids chosen by the caller.
    module_type:
        Module whose catalog the ids must belong to.
    catalog:
        Optional replacement for the built-in effect catalog.

    Returns
    -------
    list[EffectCatalogEntry]
        Entries in the order of ``effect_ids``.

    Raises
    ------
    ValueError
        If an id is not an effect of ``module_type``.
    """

    by_id = {effect.effect_id: effect for effect in effects_for_module(module_type, catalog)}
    entries: list[EffectCatalogEntry] = []
    for effect_id in effect_ids:
        try:
            entries.append(by_id[effect_id])
        except KeyError as exc:
            raise ValueError(f"Unknown effect '{effect_id}' for module '{module_type}'") from exc
    return entries


def make_slot_target(
    slot_number: int,
    effect_ids: Sequence[str],
    min_rarity: Union[str, int, Rarity],
    module_type: str,
    catalog: Catalog = None,
) -> SlotTarget:
    """Build a ``SlotTarget`` after checking every effect id exists."""

    entries = effect_ids_to_entries(effect_ids, module_type, catalog)
    return SlotTarget(
        slot_number=slot_number,
        acceptable_effects=tuple(entry.effect_id for entry in entries),
        min_rarity=Rarity.parse(min_rarity),
    )


@dataclass
class PoolInfo:
    """Size of the starting pool and the odds of the first target group."""

    effect_count: int
    combination_count: int
    priority_hit_probability: float


def describe_pool(config: CalculatorConfig, catalog: Catalog = None) -> PoolInfo:
    """Summarise the starting pool for ``config``.

    ``priority_hit_probability`` is the chance that one slot draw satisfies
    the first priority group.
    """

    pool = build_simulation_pool(config, catalog)
    remaining = resolve_locked_effects(
        config.slot_targets,
        ((locked.effect_id, locked.rarity) for locked in config.pre_locked_effects),
    )
    group = current_priority_group(remaining)
    return PoolInfo(
        effect_count=len(group_by_effect(pool.entries)),
        combination_count=len(pool),
        priority_hit_probability=target_hit_probability(pool, group, build_min_rarity_map(group)),
    )


@dataclass
class CalculationResult:
    """Bundle containing the simulation results and run metadata.

    ``results`` is ``None`` when the run was cancelled or a worker failed.
    """

    config: CalculatorConfig
    iterations: int
    seed: Optional[int]
    results: Optional[SimulationResults]
    compute_seconds: float
    estimated_ms: float
    pool_info: PoolInfo

    @property
    def cancelled(self) -> bool:
        return self.results is None


def run_calculation(
    config: CalculatorConfig,
    iterations: Union[int, str] = "medium",
    seed: Optional[int] = 42,
    cost_fn: Optional[CostFn] = None,
    allow_parallel: bool = True,
    num_workers: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_check: Optional[CancelCheck] = None,
    include_incomplete: bool = True,
    catalog: Catalog = None,
) -> CalculationResult:
    """Validate ``config`` and run a Monte Carlo batch for it.

    Parameters
    ----------
    config:
        Module, targets, bans, and pre-locked effects.
    iterations:
        Run count, or one of the ``ITERATION_PRESETS`` names.
    seed:
        Seed for the run RNGs; ``None`` draws a fresh one.
    cost_fn:
        Optional override for the default lock cost.
    allow_parallel:
        Permit fanning out to worker processes for large batches.
    num_workers:
        Worker process count; defaults to every core but one.
    on_progress:
        Called with a ``SimulationProgress`` as runs complete.
    cancel_check:
        Polled during the batch; returning True cancels it.
    include_incomplete:
        Keep runs that could not fill every target in the statistics.
    catalog:
        Optional replacement for the built-in effect catalog.

    Returns
    -------
    CalculationResult
        Results bundle; ``results`` is ``None`` if the batch was cancelled.

    Raises
    ------
    ValueError
        If the configuration fails validation or ``iterations`` is invalid.
    """

    errors = validate_config(config)
    if errors:
        raise ValueError("; ".join(errors))
    run_count = resolve_iterations(iterations)
    estimated_ms, is_long_running = estimate_simulation_time(config, run_count)
    logger.debug(
        "Starting %d iterations for %s (estimated %.0f ms%s)",
        run_count,
        config.module_type,
        estimated_ms,
        ", long running" if is_long_running else "",
    )

    runner = create_simulation(
        config,
        run_count,
        seed=seed,
        cost_fn=cost_fn if cost_fn is not None else lock_cost,
        allow_parallel=allow_parallel,
        num_workers=num_workers,
        include_incomplete=include_incomplete,
        catalog=catalog,
        cancel_check=cancel_check,
    )
    compute_start = perf_counter()
    results = runner.run(on_progress)
    compute_seconds = perf_counter() - compute_start
    logger.debug("Finished in %.3f s (cancelled=%s)", compute_seconds, results is None)

    return CalculationResult(
        config=config,
        iterations=run_count,
        seed=seed,
        results=results,
        compute_seconds=compute_seconds,
        estimated_ms=estimated_ms,
        pool_info=describe_pool(config, catalog),
    )
