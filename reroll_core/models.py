"""Dataclasses shared across pool, engine, and simulation modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .data import EffectCatalogEntry, Rarity


@dataclass(frozen=True)
class PoolEntry:
    """One rollable (effect, rarity) combination."""

    effect: EffectCatalogEntry
    rarity: Rarity
    base_probability: float

    @property
    def effect_id(self) -> str:
        return self.effect.effect_id


@dataclass(frozen=True)
class SlotTarget:
    """Requirement for one priority slot.

    Any effect in ``acceptable_effects`` rolled at ``min_rarity`` or rarer
    satisfies the target.
    """

    slot_number: int
    acceptable_effects: tuple[str, ...]
    min_rarity: Rarity

    def __post_init__(self) -> None:
        object.__setattr__(self, "acceptable_effects", tuple(self.acceptable_effects))


@dataclass(frozen=True)
class PreLockedEffect:
    """An effect already locked on the module before rolling starts."""

    effect_id: str
    rarity: Rarity


@dataclass(frozen=True)
class CalculatorConfig:
    """Complete module and target configuration for one calculation."""

    module_type: str
    module_level: int
    module_rarity: Rarity
    slot_count: int
    banned_effects: tuple[str, ...] = ()
    slot_targets: tuple[SlotTarget, ...] = ()
    pre_locked_effects: tuple[PreLockedEffect, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "banned_effects", tuple(self.banned_effects))
        object.__setattr__(self, "slot_targets", tuple(self.slot_targets))
        object.__setattr__(self, "pre_locked_effects", tuple(self.pre_locked_effects))

    @property
    def excluded_effects(self) -> list[str]:
        """Return banned plus pre-locked effect ids."""

        return [*self.banned_effects, *(locked.effect_id for locked in self.pre_locked_effects)]


@dataclass(frozen=True)
class LockedEffectRecord:
    """Record of one lock performed during a simulated session."""

    effect_id: str
    rarity: Rarity
    slot_number: int
    rounds_to_acquire: int
    shard_cost_per_round: float


@dataclass
class SimulationRunResult:
    """Outcome of a single simulated reroll session."""

    total_rolls: int = 0
    total_shard_cost: float = 0.0
    lock_order: list[LockedEffectRecord] = field(default_factory=list)
    completed: bool = False


@dataclass
class CostStatistics:
    """Summary statistics over a sample set."""

    min: float
    max: float
    mean: float
    median: float
    percentile10: float
    percentile90: float
    percentile95: float


@dataclass
class HistogramBucket:
    """One bar of the cost distribution chart."""

    min: float
    max: float
    count: int
    percentage: float


@dataclass
class SimulationResults:
    """Aggregated Monte Carlo metrics for one configuration."""

    run_count: int
    shard_cost: CostStatistics
    roll_count: CostStatistics
    shard_cost_histogram: list[HistogramBucket]
    completion_rate: float = 1.0


@dataclass(frozen=True)
class SimulationProgress:
    """Progress snapshot pushed to callers during a batch."""

    completed: int
    total: int

    @property
    def percentage(self) -> float:
        return 100.0 * self.completed / self.total if self.total > 0 else 100.0


@dataclass(frozen=True)
class ManualSlot:
    """Display state of one slot in a manual session."""

    slot_number: int
    effect: Optional[EffectCatalogEntry] = None
    rarity: Optional[Rarity] = None
    is_locked: bool = False
    is_target_match: bool = False

    @property
    def is_empty(self) -> bool:
        return self.effect is None


@dataclass(frozen=True)
class RollLogEffect:
    effect_id: str
    name: str
    rarity: Rarity
    short_name: str
    is_target_match: bool = False


@dataclass(frozen=True)
class RollLogEntry:
    """A notable manual roll kept in the session log."""

    roll_number: int
    total_shards: float
    roll_cost: float
    effects: tuple[RollLogEffect, ...] = ()
