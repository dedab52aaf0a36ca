"""Roll pool construction and the prepared weighted sampler."""

from __future__ import annotations

from bisect import bisect_left
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from itertools import accumulate
from typing import Optional

from .data import (
    EffectCatalogEntry,
    Rarity,
    available_rarities,
    effects_for_module,
    rarity_probability,
)
from .models import PoolEntry, SlotTarget


@dataclass(frozen=True)
class PreparedPool:
    """Pool entries paired with a normalised cumulative probability table.

    ``cumulative_probs[i]`` is the probability of drawing any of
    ``entries[: i + 1]``; the last value is exactly 1.0. Instances are never
    modified; removals build a new pool.
    """

    entries: tuple[PoolEntry, ...] = ()
    cumulative_probs: tuple[float, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries


EMPTY_POOL = PreparedPool()


def build_initial_pool(
    module_type: str,
    max_rarity: Rarity,
    excluded_effects: Iterable[str] = (),
    catalog: Optional[Mapping[str, Sequence[EffectCatalogEntry]]] = None,
) -> list[PoolEntry]:
    """Return every rollable (effect, rarity) entry for a module.

    Parameters
    ----------
    module_type:
        Module whose effects form the pool.
    max_rarity:
        Module rarity cap; rarer entries are omitted.
    excluded_effects:
        Effect ids removed entirely (banned or already locked).
    catalog:
        Optional replacement for the built-in effect catalog.
    """

    excluded = set(excluded_effects)
    pool: list[PoolEntry] = []
    for effect in effects_for_module(module_type, catalog):
        if effect.effect_id in excluded:
            continue
        for rarity in available_rarities(effect):
            if rarity <= max_rarity:
                pool.append(
                    PoolEntry(
                        effect=effect,
                        rarity=rarity,
                        base_probability=rarity_probability(rarity),
                    )
                )
    return pool


def prepare_pool(entries: Iterable[PoolEntry]) -> PreparedPool:
    """Normalise entry probabilities into a cumulative sampling table."""

    entry_tuple = tuple(entries)
    if not entry_tuple:
        return EMPTY_POOL
    total = sum(entry.base_probability for entry in entry_tuple)
    cumulative = list(accumulate(entry.base_probability / total for entry in entry_tuple))
    cumulative[-1] = 1.0
    return PreparedPool(entries=entry_tuple, cumulative_probs=tuple(cumulative))


def sample(pool: PreparedPool, u: float) -> PoolEntry:
    """Return the entry selected by a uniform variate ``u`` on ``[0, 1)``.

    Raises
    ------
    RuntimeError
        If the pool is empty; callers must check ``pool.is_empty`` first.
    """

    if not pool.entries:
        raise RuntimeError("Cannot sample from an empty pool.")
    index = bisect_left(pool.cumulative_probs, u)
    if index >= len(pool.entries):
        index = len(pool.entries) - 1
    return pool.entries[index]


def remove_one(pool: PreparedPool, effect_id: str, rarity: Rarity) -> PreparedPool:
    """Return a new pool without the single (effect, rarity) combination."""

    return prepare_pool(
        entry
        for entry in pool.entries
        if not (entry.effect.effect_id == effect_id and entry.rarity == rarity)
    )


def remove_effect(pool: PreparedPool, effect_id: str) -> PreparedPool:
    """Return a new pool without any rarity of ``effect_id``."""

    return prepare_pool(entry for entry in pool.entries if entry.effect.effect_id != effect_id)


def pool_entry_key(effect_id: str, rarity: Rarity) -> str:
    return f"{effect_id}:{rarity.name.lower()}"


def parse_pool_entry_key(key: str) -> tuple[str, Rarity]:
    effect_id, _, rarity_name = key.rpartition(":")
    return effect_id, Rarity.parse(rarity_name)


def normalized_probabilities(entries: Sequence[PoolEntry]) -> dict[str, float]:
    """Return the normalised draw probability of each entry keyed by ``pool_entry_key``."""

    total = sum(entry.base_probability for entry in entries)
    if total <= 0:
        return {}
    return {
        pool_entry_key(entry.effect.effect_id, entry.rarity): entry.base_probability / total
        for entry in entries
    }


def check_target_match(
    entry: PoolEntry,
    targets: Sequence[SlotTarget],
    min_rarity_map: Mapping[str, Rarity],
) -> Optional[SlotTarget]:
    """Return the first target the entry satisfies, or ``None``."""

    effect_id = entry.effect.effect_id
    effect_min = min_rarity_map.get(effect_id)
    if effect_min is None or entry.rarity < effect_min:
        return None
    for target in targets:
        if effect_id in target.acceptable_effects and entry.rarity >= target.min_rarity:
            return target
    return None


def target_hit_probability(
    pool: PreparedPool,
    targets: Sequence[SlotTarget],
    min_rarity_map: Mapping[str, Rarity],
) -> float:
    """Return the chance that a single draw satisfies any of ``targets``."""

    probability = 0.0
    previous = 0.0
    for entry, cumulative in zip(pool.entries, pool.cumulative_probs):
        if check_target_match(entry, targets, min_rarity_map) is not None:
            probability += cumulative - previous
        previous = cumulative
    return probability


def group_by_effect(entries: Iterable[PoolEntry]) -> dict[str, list[PoolEntry]]:
    groups: dict[str, list[PoolEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.effect.effect_id, []).append(entry)
    return groups
