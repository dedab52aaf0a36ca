"""Module sub-effect reroll cost calculator."""

from __future__ import annotations

from .api import (
    CalculationResult,
    PoolInfo,
    describe_pool,
    effect_ids_to_entries,
    make_cost_fn,
    make_slot_target,
    resolve_iterations,
    run_calculation,
)
from .config import (
    ROLLABLE_MODULE_RARITIES,
    EffectSelection,
    apply_selections,
    count_locked_effects,
    create_default_config,
    is_rollable_module_rarity,
    selections_to_banned_effects,
    selections_to_pre_locked_effects,
    selections_to_slot_targets,
    toggle_banned,
    toggle_locked,
    toggle_min_rarity,
    toggle_slot_assignment,
    update_module_level,
    update_module_rarity,
    update_module_type,
    validate_config,
    validate_module_level,
)
from .cost import LockCostTable, lock_cost
from .data import (
    DEFAULT_EFFECT_CATALOG,
    MODULE_TYPES,
    RARITY_PROBABILITIES,
    EffectCatalogEntry,
    Rarity,
    effects_for_module,
    find_effect,
    load_effect_catalog,
    slots_for_level,
)
from .executor import (
    ITERATION_PRESETS,
    CancellableSimulation,
    ParallelSimulation,
    create_simulation,
    estimate_simulation_time,
    run_parallel,
)
from .manual import (
    AutoRollResult,
    CanRollResult,
    ManualSession,
    ManualSessionState,
    RollResult,
    balance_status,
    current_balance,
    current_roll_cost,
    initialize_manual_session,
)
from .models import (
    CalculatorConfig,
    CostStatistics,
    HistogramBucket,
    ManualSlot,
    PreLockedEffect,
    SimulationProgress,
    SimulationResults,
    SimulationRunResult,
    SlotTarget,
)
from .roll_log import roll_log_summary
from .simulation import aggregate_runs, run_simulation, simulate_many, simulate_once

__all__ = [
    "AutoRollResult",
    "CalculationResult",
    "CalculatorConfig",
    "CanRollResult",
    "CancellableSimulation",
    "CostStatistics",
    "DEFAULT_EFFECT_CATALOG",
    "EffectCatalogEntry",
    "EffectSelection",
    "HistogramBucket",
    "ITERATION_PRESETS",
    "LockCostTable",
    "MODULE_TYPES",
    "ManualSession",
    "ManualSessionState",
    "ManualSlot",
    "ParallelSimulation",
    "PoolInfo",
    "PreLockedEffect",
    "RARITY_PROBABILITIES",
    "ROLLABLE_MODULE_RARITIES",
    "Rarity",
    "RollResult",
    "SimulationProgress",
    "SimulationResults",
    "SimulationRunResult",
    "SlotTarget",
    "aggregate_runs",
    "apply_selections",
    "balance_status",
    "count_locked_effects",
    "create_default_config",
    "create_simulation",
    "current_balance",
    "current_roll_cost",
    "describe_pool",
    "effect_ids_to_entries",
    "effects_for_module",
    "estimate_simulation_time",
    "find_effect",
    "initialize_manual_session",
    "is_rollable_module_rarity",
    "load_effect_catalog",
    "lock_cost",
    "make_cost_fn",
    "make_slot_target",
    "resolve_iterations",
    "roll_log_summary",
    "run_calculation",
    "run_parallel",
    "run_simulation",
    "selections_to_banned_effects",
    "selections_to_pre_locked_effects",
    "selections_to_slot_targets",
    "simulate_many",
    "simulate_once",
    "slots_for_level",
    "toggle_banned",
    "toggle_locked",
    "toggle_min_rarity",
    "toggle_slot_assignment",
    "update_module_level",
    "update_module_rarity",
    "update_module_type",
    "validate_config",
    "validate_module_level",
]
