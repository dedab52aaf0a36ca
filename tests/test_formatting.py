"""Tests for result formatting helpers."""

import pytest

from reroll_core.formatting import (
    format_confidence_message,
    format_cost,
    format_cost_range,
    format_expected_rolls,
    format_percentage,
    format_percentile_label,
    format_probability,
    format_roll_count,
    format_run_count,
    format_shard_cost,
    simulation_summary,
)
from reroll_core.simulation import calculate_statistics


class TestFormatCost:
    """Magnitude suffixes"""

    @pytest.mark.parametrize(
        "value, text",
        [
            (0, "0"),
            (12.4, "12"),
            (999, "999"),
            (1000, "1.0K"),
            (1500, "1.5K"),
            (999_999, "1000.0K"),
            (2_500_000, "2.50M"),
            (3_700_000_000, "3.70B"),
        ],
    )
    def test_values(self, value, text):
        assert format_cost(value) == text

    def test_composites(self):
        assert format_cost_range(100, 2500) == "100 - 2.5K"
        assert format_shard_cost(40) == "40 shards"
        assert format_roll_count(12_000) == "12.0K rolls"
        assert format_run_count(10_000) == "Based on 10.0K simulations"
        assert format_confidence_message(1_250_000) == "95% of runs cost less than 1.25M shards"


class TestFormatProbability:
    """Percentages with magnitude-based precision"""

    @pytest.mark.parametrize(
        "probability, text",
        [(0.0003, "0.03%"), (0.005, "0.5%"), (0.46, "46%"), (1.0, "100%")],
    )
    def test_values(self, probability, text):
        assert format_probability(probability) == text

    def test_percentage(self):
        assert format_percentage(12.345) == "12.3%"

    def test_expected_rolls(self):
        assert format_expected_rolls(0.1) == "~10 rolls"
        assert format_expected_rolls(0.0) == "∞ rolls"


class TestLabels:
    """Percentile labels and panel summary"""

    @pytest.mark.parametrize(
        "percentile, label",
        [(10, "10th %ile (lucky)"), (50, "Median"), (95, "95th %ile (unlucky)"), (90, "90th %ile")],
    )
    def test_percentile_label(self, percentile, label):
        assert format_percentile_label(percentile) == label

    def test_summary_states(self):
        stats = calculate_statistics([1000, 2000, 3000, 4000, 5000])
        assert simulation_summary(stats) == "Lucky: 1.4K | Typ: 3.0K | Unlucky: 4.6K"
        assert simulation_summary(stats, is_running=True, progress=42.4) == "Simulating... 42%"
        assert simulation_summary(None, has_targets=False) == "No targets selected"
        assert simulation_summary(None) == "Ready to simulate"
