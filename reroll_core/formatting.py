"""Display formatting for simulation results."""

from __future__ import annotations

from typing import Optional

from .models import CostStatistics


def format_cost(value: float) -> str:
    """Format a number with a K/M/B suffix (``1.5K``, ``2.50M``, ``3.70B``)."""

    magnitude = abs(value)
    if magnitude >= 1_000_000_000:
        return f"{value / 1_000_000_000:.2f}B"
    if magnitude >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if magnitude >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{value:.0f}"


def format_cost_range(minimum: float, maximum: float) -> str:
    return f"{format_cost(minimum)} - {format_cost(maximum)}"


def format_percentage(value: float, decimals: int = 1) -> str:
    return f"{value:.{decimals}f}%"


def format_probability(probability: float) -> str:
    """Format a 0-1 probability as a percentage with magnitude-based decimals."""

    percent = probability * 100
    if percent < 0.1:
        return format_percentage(percent, 2)
    if percent < 1:
        return format_percentage(percent, 1)
    return format_percentage(percent, 0)


def format_shard_cost(shards: float) -> str:
    return f"{format_cost(shards)} shards"


def format_roll_count(rolls: float) -> str:
    return f"{format_cost(rolls)} rolls"


def format_expected_rolls(probability: float) -> str:
    if probability <= 0:
        return "∞ rolls"
    return f"~{format_cost(1 / probability)} rolls"


def format_percentile_label(percentile: int) -> str:
    if percentile == 50:
        return "Median"
    if percentile == 10:
        return "10th %ile (lucky)"
    if percentile == 95:
        return "95th %ile (unlucky)"
    return f"{percentile}th %ile"


def format_run_count(count: int) -> str:
    return f"Based on {format_cost(count)} simulations"


def format_confidence_message(percentile95: float) -> str:
    return f"95% of runs cost less than {format_cost(percentile95)} shards"


def simulation_summary(
    stats: Optional[CostStatistics],
    is_running: bool = False,
    progress: float = 0.0,
    has_targets: bool = True,
) -> str:
    """Return the collapsed header line for the Monte Carlo panel."""

    if is_running:
        return f"Simulating... {format_percentage(progress, 0)}"
    if stats is not None:
        return (
            f"Lucky: {format_cost(stats.percentile10)} | "
            f"Typ: {format_cost(stats.median)} | "
            f"Unlucky: {format_cost(stats.percentile90)}"
        )
    if not has_targets:
        return "No targets selected"
    return "Ready to simulate"
