"""
Streamlit application for the farmledger workbench.

Interactive controls for configuring a multi-pool reward farm, running
randomized staking scenarios against the ledger, and inspecting payouts,
accumulators and final positions.

Run locally with: streamlit run streamlit_app.py
"""

from pathlib import Path
from typing import Any, Dict

import pandas as pd
import streamlit as st

# Import from the farmledger package (installed via pip install -e .)
from farmledger.config.loader import load_config
from farmledger.config.schema import Config
from farmledger.reporting.charts import (
    create_reward_per_share_chart,
    create_rewards_paid_chart,
    create_staked_chart,
    create_tvl_chart,
)
from farmledger.reporting.export import export_csv, export_json, metrics_frame, positions_frame
from farmledger.simulation.monte_carlo import MonteCarloRunner
from farmledger.simulation.runner import SimulationRunner
from farmledger.validation.sanity_checks import SanityChecker, validate_simulation_results

# Page config
st.set_page_config(
    page_title="farmledger Workbench",
    page_icon="🌾",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    @import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;500;600;700&display=swap');

    :root {
        --void: #08090a;
        --surface: #0e1012;
        --cyan: #22d3ee;
        --cyan-dim: rgba(34, 211, 238, 0.12);
        --amber: #f59e0b;
        --red: #ef4444;
    }

    .stApp { background: var(--void); font-family: 'Inter', -apple-system, sans-serif; }

    .validation-error {
        border-left: 3px solid var(--red);
        background: rgba(239, 68, 68, 0.08);
        padding: 0.4rem 0.6rem;
        margin-bottom: 0.35rem;
        font-size: 0.8rem;
    }

    .validation-warning {
        border-left: 3px solid var(--amber);
        background: rgba(245, 158, 11, 0.08);
        padding: 0.4rem 0.6rem;
        margin-bottom: 0.35rem;
        font-size: 0.8rem;
    }
</style>
""", unsafe_allow_html=True)

# Initialize session state
if 'config' not in st.session_state:
    st.session_state.config = load_config()
if 'simulation_result' not in st.session_state:
    st.session_state.simulation_result = None
if 'validation_warnings' not in st.session_state:
    st.session_state.validation_warnings = []


@st.cache_data(show_spinner=False)
def _run_monte_carlo_cached(config_dict: Dict[str, Any], num_runs: int, seed: int) -> pd.DataFrame:
    """Run Monte Carlo with caching to avoid repeated heavy compute."""
    config = Config.from_dict(config_dict)
    results = MonteCarloRunner(config).run(num_runs=num_runs, random_seed=seed)
    return MonteCarloRunner.summarize(results)


def run_simulation():
    """Run the simulation with current config and validation."""
    with st.spinner("Running simulation..."):
        try:
            result = SimulationRunner(st.session_state.config).run()
            st.session_state.simulation_result = result
            st.session_state.validation_warnings = validate_simulation_results(result)

            errors = [w for w in st.session_state.validation_warnings if w.severity == "error"]
            if errors:
                st.warning(f"Simulation completed with {len(errors)} validation error(s).")
            else:
                st.success("Simulation completed.")
            st.rerun()
        except Exception as e:
            st.error(f"Error: {str(e)}")


def render_validation_panel():
    """Render validation warnings and errors if any exist."""
    warnings = st.session_state.validation_warnings
    if not warnings:
        return

    errors = [w for w in warnings if w.severity == "error"]
    warns = [w for w in warnings if w.severity == "warning"]
    with st.expander(f"Validation Issues ({len(errors)} errors, {len(warns)} warnings)", expanded=len(errors) > 0):
        for css, items in (("validation-error", errors), ("validation-warning", warns)):
            for item in items:
                st.markdown(
                    f"""<div class="{css}">
                        <strong>{item.category.upper()}:</strong> {item.message}
                        {f'<br/><small>{item.details}</small>' if item.details else ''}
                    </div>""",
                    unsafe_allow_html=True
                )


def render_header():
    """Render header with run button."""
    col1, col2 = st.columns([3, 1], vertical_alignment="bottom")
    with col1:
        st.title("farmledger Workbench")
        st.caption(
            "Multi-pool staking with time-weighted reward accumulators. "
            "Every payout is traceable to pool weight, emission rate and stake share."
        )
    with col2:
        if st.button("Run Simulation", type="primary", width="stretch"):
            run_simulation()


def render_sidebar():
    """Render sidebar configuration panel."""
    with st.sidebar:
        st.markdown("## Controls")
        config = st.session_state.config
        data = config.to_dict()

        st.markdown("### Schedule")
        bonus_multiplier = st.slider(
            "Bonus multiplier", 1, 10, config.ledger.bonus_multiplier,
            help="Accrual weight per unit of time inside the bonus window"
        )
        bonus_duration = st.number_input(
            "Bonus window length", min_value=0, value=config.schedule.bonus_duration, step=60
        )

        st.markdown("### Simulation")
        steps = st.slider("Steps", 10, 500, config.simulation.steps)
        num_users = st.slider("Users", 1, 50, config.simulation.num_users)
        seed = st.number_input("Random seed", value=config.simulation.random_seed, step=1)

        st.markdown("### Pools")
        for pool in data['pools']:
            with st.expander(f"{pool['asset']} ({pool['vault']} vault)"):
                pool['weight'] = st.number_input(
                    "Weight", min_value=0, value=pool['weight'], key=f"weight_{pool['asset']}"
                )
                pool['fee_rate'] = st.slider(
                    "Fee (per thousand)", 0, config.ledger.max_fee_rate, pool['fee_rate'],
                    key=f"fee_{pool['asset']}"
                )

        st.markdown("### Reward Funding")
        for token in config.reward_token_ids:
            data['simulation']['reward_funding'][token] = st.number_input(
                token, min_value=0, value=config.simulation.reward_funding.get(token, 0), step=100_000,
                key=f"funding_{token}"
            )

        data['ledger']['bonus_multiplier'] = bonus_multiplier
        data['schedule']['bonus_duration'] = int(bonus_duration)
        data['simulation'].update({'steps': steps, 'num_users': num_users, 'random_seed': int(seed)})

        if st.button("Apply Changes"):
            try:
                st.session_state.config = Config.from_dict(data)
                st.session_state.simulation_result = None
                st.session_state.validation_warnings = SanityChecker(st.session_state.config).check_config_inputs()
                st.rerun()
            except ValueError as exc:
                st.error(f"Invalid configuration: {exc}")

        st.markdown("---")
        render_export()


def render_overview():
    """Headline numbers and the main charts."""
    result = st.session_state.simulation_result
    if result is None:
        st.info("Configure the farm in the sidebar and press Run Simulation.")
        return

    render_validation_panel()
    final = result.final_metrics
    tokens = result.config.reward_token_ids

    cols = st.columns(2 + len(tokens))
    cols[0].metric("Total staked", f"{final['total_staked']:,}")
    cols[1].metric("Vault TVL", f"{final['total_tvl']:,}")
    for col, token in zip(cols[2:], tokens):
        shortfall = final[f'total_shortfall_{token}']
        col.metric(
            f"{token} paid", f"{final[f'total_paid_{token}']:,}",
            delta=f"-{shortfall:,} short" if shortfall else None,
            delta_color="inverse"
        )

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(create_staked_chart(result.metrics_over_time), width="stretch")
    with col2:
        st.plotly_chart(create_rewards_paid_chart(result.metrics_over_time), width="stretch")

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(create_reward_per_share_chart(result.metrics_over_time), width="stretch")
    with col2:
        st.plotly_chart(create_tvl_chart(result.metrics_over_time), width="stretch")


def render_positions():
    """Final positions and pending rewards."""
    result = st.session_state.simulation_result
    if result is None:
        st.caption("Run simulation to see positions")
        return

    st.markdown("#### Pools")
    pools = pd.DataFrame([
        {k: v for k, v in pool.items() if k not in ('positions', 'accumulators', 'reward_rates')}
        for pool in result.final_snapshot['pools']
    ])
    st.dataframe(pools, width="stretch", hide_index=True)

    st.markdown("#### Positions")
    st.dataframe(positions_frame(result.final_snapshot), width="stretch", hide_index=True)

    st.markdown("#### Activity")
    st.write(result.action_counts)
    if result.rejected_actions:
        with st.expander(f"Rejected actions ({len(result.rejected_actions)})"):
            st.code("\n".join(result.rejected_actions[:200]))


def render_events():
    """Committed ledger events."""
    result = st.session_state.simulation_result
    if result is None:
        st.caption("Run simulation to see events")
        return
    events = pd.DataFrame(result.events)
    kinds = sorted(events['kind'].unique()) if not events.empty else []
    selected = st.multiselect("Event kinds", kinds, default=kinds)
    if not events.empty:
        st.dataframe(events[events['kind'].isin(selected)], width="stretch", hide_index=True)
    st.markdown("#### Per-step metrics")
    st.dataframe(metrics_frame(result), width="stretch")


def render_monte_carlo():
    """Distribution of outcomes across seeds."""
    config = st.session_state.config
    num_runs = st.slider("Runs", 2, 50, config.simulation.monte_carlo_runs)
    if st.button("Run Monte Carlo"):
        with st.spinner(f"Running {num_runs} simulations..."):
            summary = _run_monte_carlo_cached(config.to_dict(), num_runs, config.simulation.random_seed)
        st.dataframe(summary, width="stretch")


def render_export():
    """Export panel in sidebar."""
    st.markdown("### Export")

    if st.session_state.simulation_result is None:
        st.caption("Run simulation to enable exports")
        return

    output_dir = st.text_input("Export folder", value="exports")
    csv_name = st.text_input("CSV filename", value="farm_simulation.csv")
    json_name = st.text_input("JSON filename", value="farm_simulation.json")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Write CSV"):
            try:
                export_path = Path(output_dir)
                export_path.mkdir(parents=True, exist_ok=True)
                csv_path = export_path / csv_name
                export_csv(st.session_state.simulation_result, str(csv_path))
                st.success(f"Saved CSV to {csv_path}")
            except OSError as exc:
                st.error(f"CSV export failed: {exc}")
    with col2:
        if st.button("Write JSON"):
            try:
                export_path = Path(output_dir)
                export_path.mkdir(parents=True, exist_ok=True)
                json_path = export_path / json_name
                export_json(st.session_state.simulation_result, str(json_path))
                st.success(f"Saved JSON to {json_path}")
            except OSError as exc:
                st.error(f"JSON export failed: {exc}")


def main():
    """Main application entry point."""
    render_header()
    render_sidebar()

    main_tabs = st.tabs(["Overview", "Positions", "Events", "Monte Carlo"])
    with main_tabs[0]:
        render_overview()
    with main_tabs[1]:
        render_positions()
    with main_tabs[2]:
        render_events()
    with main_tabs[3]:
        render_monte_carlo()


if __name__ == "__main__":
    main()
