"""Streamlit front-end for the module reroll calculator."""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from reroll_core import (
    ITERATION_PRESETS,
    MODULE_TYPES,
    ROLLABLE_MODULE_RARITIES,
    CalculationResult,
    CalculatorConfig,
    EffectCatalogEntry,
    EffectSelection,
    ManualSession,
    Rarity,
    SimulationProgress,
    apply_selections,
    balance_status,
    create_default_config,
    current_balance,
    current_roll_cost,
    effects_for_module,
    estimate_simulation_time,
    load_effect_catalog,
    roll_log_summary,
    run_calculation,
    update_module_level,
    update_module_rarity,
    update_module_type,
    validate_config,
)
from reroll_core.data import available_rarities
from reroll_core.formatting import (
    format_confidence_message,
    format_cost,
    format_cost_range,
    format_percentage,
    format_probability,
    format_run_count,
    simulation_summary,
)

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).resolve().parent / "effect_catalog.json"
EFFECT_CATALOG = load_effect_catalog(CATALOG_PATH)
NO_RARITY = "-"
SHARD_MODE_LABELS = {"accumulator": "Count spend", "budget": "Spend down a budget"}
BALANCE_COLORS = {"normal": "#0f172a", "warning": "#f97316", "critical": "#ef4444"}


def format_rarity_option(option: object) -> str:
    if isinstance(option, Rarity):
        return option.label
    return str(option)


def reset_simulation_results() -> None:
    """Clear cached results so the UI reflects new inputs."""

    st.session_state.calculation_result = None
    st.session_state.calculation_error = None


def ensure_session_state_defaults() -> None:
    """Populate Streamlit session state with expected default entries."""

    if "config" not in st.session_state:
        st.session_state.config = create_default_config()
    if "selections" not in st.session_state:
        st.session_state.selections = {}

    st.session_state.setdefault("calculation_result", None)
    st.session_state.setdefault("calculation_error", None)
    st.session_state.setdefault("iteration_preset", "medium")
    st.session_state.setdefault("simulation_seed_input", 42)
    st.session_state.setdefault("allow_parallel", True)
    st.session_state.setdefault("manual_session", None)
    st.session_state.setdefault("manual_message", None)
    st.session_state.setdefault("shard_mode", "accumulator")
    st.session_state.setdefault("starting_balance", 100_000)


def render_module_configuration() -> CalculatorConfig:
    """Render module type, level, and rarity inputs and return the updated config."""

    config: CalculatorConfig = st.session_state.config
    with st.container(border=True):
        st.markdown('<div class="card-title">Module</div>', unsafe_allow_html=True)
        type_col, level_col, rarity_col = st.columns(3)
        module_type = type_col.selectbox(
            "Module type",
            options=list(MODULE_TYPES),
            index=list(MODULE_TYPES).index(config.module_type),
            format_func=str.capitalize,
        )
        level = level_col.number_input("Module level", min_value=1, value=config.module_level, step=1)
        module_rarity = rarity_col.selectbox(
            "Module rarity",
            options=list(ROLLABLE_MODULE_RARITIES),
            index=list(ROLLABLE_MODULE_RARITIES).index(config.module_rarity),
            format_func=format_rarity_option,
        )

    if module_type != config.module_type:
        config = update_module_type(config, module_type)
        st.session_state.selections = {}
        reset_simulation_results()
    if int(level) != config.module_level:
        config = update_module_level(config, int(level))
        reset_simulation_results()
    if module_rarity != config.module_rarity:
        config = update_module_rarity(config, module_rarity)
        reset_simulation_results()

    st.caption(f"{config.slot_count} sub-effect slots unlocked at level {config.module_level}.")
    st.session_state.config = config
    return config


def render_effect_row(
    effect: EffectCatalogEntry,
    config: CalculatorConfig,
    current: EffectSelection,
) -> EffectSelection:
    """Render the controls for one effect and return its selection."""

    rarities = [rarity for rarity in available_rarities(effect) if rarity <= config.module_rarity]
    name_col, rarity_col, slots_col, ban_col, lock_col = st.columns([2.0, 1.1, 1.6, 0.6, 1.1])
    name_col.markdown(f"<div class='effect-name'>{effect.display_name}</div>", unsafe_allow_html=True)

    rarity_options: list[object] = [NO_RARITY, *rarities]
    min_rarity = rarity_col.selectbox(
        "Min rarity",
        options=rarity_options,
        index=rarity_options.index(current.min_rarity) if current.min_rarity in rarity_options else 0,
        key=f"min_rarity_{effect.effect_id}",
        format_func=format_rarity_option,
        label_visibility="collapsed",
    )
    slot_numbers = list(range(1, config.slot_count + 1))
    target_slots = slots_col.multiselect(
        "Slots",
        options=slot_numbers,
        default=[slot for slot in current.target_slots if slot in slot_numbers]
        or ([1] if min_rarity != NO_RARITY else []),
        key=f"slots_{effect.effect_id}",
        label_visibility="collapsed",
        placeholder="Slots",
    )
    is_banned = ban_col.checkbox(
        "Ban",
        value=current.is_banned,
        key=f"ban_{effect.effect_id}",
    )
    locked_rarity = lock_col.selectbox(
        "Locked",
        options=rarity_options,
        index=(
            rarity_options.index(current.locked_rarity)
            if current.locked_rarity in rarity_options
            else 0
        ),
        key=f"locked_{effect.effect_id}",
        format_func=lambda option: "Not locked" if option == NO_RARITY else format_rarity_option(option),
        label_visibility="collapsed",
    )

    if is_banned:
        return EffectSelection(effect_id=effect.effect_id, is_banned=True)
    if locked_rarity != NO_RARITY:
        return EffectSelection(effect_id=effect.effect_id, is_locked=True, locked_rarity=locked_rarity)
    return EffectSelection(
        effect_id=effect.effect_id,
        min_rarity=None if min_rarity == NO_RARITY else min_rarity,
        target_slots=tuple(sorted(target_slots)),
    )


def render_effect_table(config: CalculatorConfig) -> CalculatorConfig:
    """Render the effect selection table and fold the selections into the config."""

    effects = effects_for_module(config.module_type, EFFECT_CATALOG)
    with st.container(border=True):
        st.markdown('<div class="card-title">Targets</div>', unsafe_allow_html=True)
        if not effects:
            st.warning(
                f"No effects are available for {config.module_type} modules. "
                f"Add them to {CATALOG_PATH.name} to enable this module type."
            )
            return config
        st.caption("Minimum rarity · target slots · ban · already locked")

        previous: Mapping[str, EffectSelection] = st.session_state.selections
        selections: dict[str, EffectSelection] = {}
        for effect in effects:
            current = previous.get(effect.effect_id, EffectSelection(effect_id=effect.effect_id))
            selections[effect.effect_id] = render_effect_row(effect, config, current)

    if selections != previous:
        reset_simulation_results()
    st.session_state.selections = selections
    updated = apply_selections(config, list(selections.values()))
    st.session_state.config = updated
    return updated


def render_simulation_controls(config: CalculatorConfig) -> bool:
    """Render the Monte Carlo controls and return whether a run was requested."""

    errors = validate_config(config)
    with st.container(border=True):
        st.markdown('<div class="card-title">Monte Carlo</div>', unsafe_allow_html=True)
        preset_col, seed_col = st.columns(2)
        preset_col.selectbox(
            "Iterations",
            options=list(ITERATION_PRESETS),
            key="iteration_preset",
            format_func=lambda name: f"{name.capitalize()} ({ITERATION_PRESETS[name]:,})",
            on_change=reset_simulation_results,
        )
        seed_col.number_input(
            "Seed",
            min_value=0,
            step=1,
            key="simulation_seed_input",
            on_change=reset_simulation_results,
        )
        st.checkbox("Use worker processes for large runs", key="allow_parallel")

        estimated_ms, is_long_running = estimate_simulation_time(
            config, ITERATION_PRESETS[st.session_state.iteration_preset]
        )
        if is_long_running:
            st.caption(f"Estimated time: about {estimated_ms / 1000:.1f} s")
        for error in errors:
            st.caption(f"⚠️ {error}")

        result = st.session_state.calculation_result
        st.caption(
            simulation_summary(
                result.results.shard_cost if isinstance(result, CalculationResult) and result.results else None,
                has_targets=bool(config.slot_targets),
            )
        )
        return st.button("Run simulation", type="primary", disabled=bool(errors))


def compute_simulation(config: CalculatorConfig) -> None:
    """Run the Monte Carlo batch with a progress bar."""

    st.session_state.calculation_error = None
    st.session_state.calculation_result = None
    progress_bar = st.progress(0.0, text="Simulating...")

    def on_progress(progress: SimulationProgress) -> None:
        progress_bar.progress(
            min(progress.percentage / 100, 1.0),
            text=f"Simulating... {format_percentage(progress.percentage, 0)}",
        )

    try:
        result = run_calculation(
            config,
            iterations=st.session_state.iteration_preset,
            seed=int(st.session_state.simulation_seed_input),
            allow_parallel=bool(st.session_state.allow_parallel),
            on_progress=on_progress,
            catalog=EFFECT_CATALOG,
        )
        st.session_state.calculation_result = result
    except Exception as exc:  # broad to surface configuration issues to the user
        logger.exception("Simulation failed")
        st.session_state.calculation_error = str(exc)
    finally:
        progress_bar.empty()


def build_histogram_frame(result: CalculationResult) -> pd.DataFrame:
    buckets = result.results.shard_cost_histogram if result.results else []
    return pd.DataFrame(
        {
            "bin_start": [bucket.min for bucket in buckets],
            "bin_end": [bucket.max for bucket in buckets],
            "count": [bucket.count for bucket in buckets],
            "probability": [bucket.percentage / 100 for bucket in buckets],
        }
    )


def render_simulation_results(result: CalculationResult) -> None:
    """Render cost statistics and the cost distribution chart.

    Parameters
    ----------
    result:
        Dataclass bundle returned by ``run_calculation``.
    """

    with st.container(border=True):
        st.markdown("**Simulation results**")
        if result.results is None:
            st.info("The simulation was cancelled.")
            return

        stats = result.results.shard_cost
        rolls = result.results.roll_count
        cols = st.columns(3)
        cols[0].metric("Median shards", format_cost(stats.median))
        cols[1].metric("Mean shards", format_cost(stats.mean))
        cols[2].metric("Median rolls", format_cost(rolls.median))

        cols = st.columns(3)
        cols[0].metric("Lucky (p10)", format_cost(stats.percentile10))
        cols[1].metric("Unlucky (p90)", format_cost(stats.percentile90))
        cols[2].metric("Worst case (p95)", format_cost(stats.percentile95))

        st.caption(format_confidence_message(stats.percentile95))
        st.caption(
            f"{format_run_count(result.results.run_count)} · range "
            f"{format_cost_range(stats.min, stats.max)} · computed in {result.compute_seconds:.2f} s"
        )
        if result.results.completion_rate < 1.0:
            st.warning(
                f"Only {format_percentage(result.results.completion_rate * 100)} of runs "
                "filled every target; the rest ran out of effects or open slots."
            )
        st.caption(
            f"Pool: {result.pool_info.effect_count} effects, "
            f"{result.pool_info.combination_count} combinations · first target per slot roll "
            f"{format_probability(result.pool_info.priority_hit_probability)}"
        )

        chart_data = build_histogram_frame(result)
        if chart_data.empty:
            st.caption("No samples to chart.")
            return
        histogram = alt.Chart(chart_data).mark_bar(
            color="#6366f1",
            opacity=0.9,
            cornerRadiusTopLeft=2,
            cornerRadiusTopRight=2,
        ).encode(
            x=alt.X(
                "bin_start:Q",
                title="Shard cost",
                axis=alt.Axis(labelFontSize=11, titleFontSize=12, format="~s"),
            ),
            x2="bin_end:Q",
            y=alt.Y(
                "probability:Q",
                title="Share of runs",
                axis=alt.Axis(format=".0%", labelFontSize=11, titleFontSize=12),
            ),
            tooltip=[
                alt.Tooltip("bin_start:Q", title="From", format=",.0f"),
                alt.Tooltip("bin_end:Q", title="To", format=",.0f"),
                alt.Tooltip("count:Q", title="Runs"),
                alt.Tooltip("probability:Q", title="Share", format=".2%"),
            ],
        ).properties(height=240)
        histogram = histogram.configure_view(strokeOpacity=0)
        histogram = histogram.configure_axis(gridColor="#e2e8f0")
        st.altair_chart(histogram, use_container_width=True)


def start_manual_session(config: CalculatorConfig) -> None:
    session = ManualSession(
        config,
        shard_mode=st.session_state.shard_mode,
        starting_balance=float(st.session_state.starting_balance),
        catalog=EFFECT_CATALOG,
    )
    session.activate()
    st.session_state.manual_session = session
    st.session_state.manual_message = None


def build_slot_frame(session: ManualSession) -> pd.DataFrame:
    state = session.state
    slots = state.slots if state is not None else ()
    return pd.DataFrame(
        {
            "Slot": [slot.slot_number for slot in slots],
            "Effect": [slot.effect.display_name if slot.effect else "" for slot in slots],
            "Rarity": [slot.rarity.label if slot.rarity is not None else "" for slot in slots],
            "Locked": [slot.is_locked for slot in slots],
            "Target": [slot.is_target_match for slot in slots],
        }
    )


def render_slot_actions(session: ManualSession) -> None:
    state = session.state
    if state is None:
        return
    cols = st.columns(len(state.slots))
    for col, slot in zip(cols, state.slots):
        if slot.is_locked:
            if col.button(f"Unlock {slot.slot_number}", key=f"unlock_{slot.slot_number}"):
                session.unlock(slot.slot_number)
                st.rerun()
        elif col.button(
            f"Lock {slot.slot_number}",
            key=f"lock_{slot.slot_number}",
            disabled=slot.effect is None,
        ):
            session.lock(slot.slot_number)
            st.rerun()


def render_manual_panel(config: CalculatorConfig) -> None:
    """Render the interactive practice panel."""

    with st.container(border=True):
        st.markdown('<div class="card-title">Manual practice</div>', unsafe_allow_html=True)
        mode_col, balance_col = st.columns(2)
        mode_col.radio(
            "Shard mode",
            options=list(SHARD_MODE_LABELS),
            key="shard_mode",
            format_func=SHARD_MODE_LABELS.get,
            horizontal=True,
        )
        balance_col.number_input(
            "Starting balance",
            min_value=0,
            step=1_000,
            key="starting_balance",
            disabled=st.session_state.shard_mode != "budget",
        )

        session: Optional[ManualSession] = st.session_state.manual_session
        start_label = "Restart session" if session is not None else "Start session"
        if st.button(start_label):
            start_manual_session(config)
            session = st.session_state.manual_session
        if session is None or session.state is None:
            st.caption("Start a session to roll with the current configuration.")
            return
        if session.config != config:
            st.caption("The configuration changed; restart to roll with the new targets.")

        roll_col, auto_col = st.columns(2)
        check = session.can_roll()
        if roll_col.button("Roll", type="primary", disabled=not check.allowed):
            session.roll()
        if auto_col.button("Auto-roll until priority hit", disabled=not check.allowed):
            outcome = session.auto_roll(max_rolls=10_000)
            st.session_state.manual_message = f"Auto-roll stopped after {outcome.rolls} rolls: {outcome.reason}"
        if not check.allowed:
            st.caption(f"⚠️ {check.reason}")
        if st.session_state.manual_message:
            st.caption(st.session_state.manual_message)

        state = session.state
        status = balance_status(state, session.cost_fn)
        balance_label = "Balance" if state.shard_mode == "budget" else "Spent"
        cols = st.columns(4)
        cols[0].metric("Rolls", f"{state.roll_count:,}")
        cols[1].metric(balance_label, format_cost(current_balance(state)))
        cols[2].metric("Next roll", format_cost(current_roll_cost(state, session.cost_fn)))
        cols[3].metric("Pool", f"{len(state.pool)}")
        if status != "normal":
            st.markdown(
                f"<span style='color:{BALANCE_COLORS[status]}'>Balance is {status}.</span>",
                unsafe_allow_html=True,
            )
        if state.is_complete:
            st.success("All targets acquired.")

        st.dataframe(build_slot_frame(session), hide_index=True, use_container_width=True)
        render_slot_actions(session)

        with st.expander(f"Roll log · {roll_log_summary(state.log_entries)}"):
            if state.log_entries:
                st.dataframe(
                    pd.DataFrame(
                        {
                            "Roll": [entry.roll_number for entry in state.log_entries],
                            "Shards": [format_cost(entry.total_shards) for entry in state.log_entries],
                            "Effects": [
                                ", ".join(f"{effect.name} ({effect.short_name})" for effect in entry.effects)
                                for entry in state.log_entries
                            ],
                        }
                    ),
                    hide_index=True,
                    use_container_width=True,
                )


def apply_page_styling() -> None:
    """Inject CSS tweaks that style the Streamlit app."""

    st.set_page_config(page_title="Module Reroll Calculator", layout="wide")
    st.markdown(
        """
        <style>
        div[data-testid="stVerticalBlockBorderWrapper"] {
            border: 1px solid #e3e6eb;
            border-radius: 12px;
            padding: 1.25rem;
            background-color: #ffffff;
            box-shadow: 0 4px 10px rgba(15, 23, 42, 0.06);
            margin-bottom: 1.25rem;
        }
        .card-title {
            font-size: 1.1rem;
            font-weight: 600;
            margin-bottom: 0.8rem;
        }
        .effect-name {
            display: flex;
            align-items: center;
            font-weight: 500;
            font-size: 0.95rem;
            padding-top: 0.4rem;
        }
        div[data-testid="stMetricValue"] {
            font-size: 1.6rem;
            font-weight: 600;
            color: #0f172a;
        }
        div[data-testid="stMetricLabel"] {
            font-size: 0.95rem;
            color: #475569;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    """Entry point used by Streamlit."""

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    apply_page_styling()
    ensure_session_state_defaults()

    st.title("Module Reroll Calculator")
    config = render_module_configuration()
    config = render_effect_table(config)

    results_col, manual_col = st.columns(2)
    with results_col:
        if render_simulation_controls(config):
            compute_simulation(config)
        if st.session_state.calculation_error:
            st.error(f"Simulation failed: {st.session_state.calculation_error}")
        elif isinstance(st.session_state.calculation_result, CalculationResult):
            render_simulation_results(st.session_state.calculation_result)
    with manual_col:
        render_manual_panel(config)


if __name__ == "__main__":
    main()
