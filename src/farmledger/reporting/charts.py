"""Chart generation using Plotly."""

from typing import Any, Dict, List

import plotly.graph_objects as go

THEME = {
    "text": "#e8eaed",
    "text_secondary": "#9aa0a6",
    "grid": "rgba(30, 33, 36, 0.8)",
    "cyan": "#00d4ff",
    "cyan_fill": "rgba(0, 212, 255, 0.12)",
    "amber": "#ffab00",
    "amber_fill": "rgba(255, 171, 0, 0.12)",
    "red": "#ff5252",
    "green": "#00e676",
}

SERIES_COLORS = [THEME["cyan"], THEME["amber"], THEME["green"], THEME["red"], THEME["text_secondary"]]


def apply_dark_layout(fig: go.Figure, title: str, x_title: str, y_title: str, showlegend: bool = True) -> None:
    """Apply the dark layout shared by every chart."""
    fig.update_layout(
        title={
            "text": title,
            "x": 0,
            "xanchor": "left",
            "font": {"size": 11, "color": THEME["text_secondary"], "family": "Inter, -apple-system, sans-serif"}
        },
        xaxis_title=x_title,
        yaxis_title=y_title,
        hovermode="x unified",
        template="plotly_dark",
        height=340,
        margin=dict(l=50, r=20, t=40, b=40),
        showlegend=showlegend,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0, bgcolor="rgba(0,0,0,0)"),
        plot_bgcolor="rgba(8, 9, 10, 1)",
        paper_bgcolor="rgba(8, 9, 10, 1)",
        font={"color": THEME["text"], "family": "Inter, -apple-system, sans-serif", "size": 11},
        xaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"]),
        yaxis=dict(gridcolor=THEME["grid"], zerolinecolor=THEME["grid"])
    )


def _series(metrics: List[Dict[str, Any]], prefix: str) -> List[str]:
    """Metric keys starting with ``prefix``, in first-seen order."""
    if not metrics:
        return []
    return [key for key in metrics[-1] if key.startswith(prefix)]


def create_staked_chart(metrics: List[Dict[str, Any]]) -> go.Figure:
    """Staked amount per pool over time."""
    times = [m['t'] for m in metrics]
    fig = go.Figure()
    for i, key in enumerate(_series(metrics, 'staked_')):
        fig.add_trace(go.Scatter(
            x=times,
            y=[m.get(key, 0) for m in metrics],
            name=f"Pool {key.split('_', 1)[1]}",
            mode='lines',
            line=dict(color=SERIES_COLORS[i % len(SERIES_COLORS)], width=2),
            stackgroup='staked'
        ))
    apply_dark_layout(fig, "Staked per Pool", "Time", "Amount")
    return fig


def create_rewards_paid_chart(metrics: List[Dict[str, Any]]) -> go.Figure:
    """Lifetime paid and shortfall per reward token."""
    times = [m['t'] for m in metrics]
    fig = go.Figure()
    for i, key in enumerate(_series(metrics, 'paid_')):
        token = key.split('_', 1)[1]
        color = SERIES_COLORS[i % len(SERIES_COLORS)]
        fig.add_trace(go.Scatter(
            x=times,
            y=[m.get(key, 0) for m in metrics],
            name=f"{token} paid",
            mode='lines',
            line=dict(color=color, width=2)
        ))
        shortfall_key = f'shortfall_{token}'
        if any(m.get(shortfall_key, 0) for m in metrics):
            fig.add_trace(go.Scatter(
                x=times,
                y=[m.get(shortfall_key, 0) for m in metrics],
                name=f"{token} shortfall",
                mode='lines',
                line=dict(color=color, width=2, dash='dot')
            ))
    apply_dark_layout(fig, "Lifetime Rewards Paid", "Time", "Reward units")
    return fig


def create_reward_per_share_chart(metrics: List[Dict[str, Any]]) -> go.Figure:
    """Accumulator growth (reward per unit stake) for every pool and token."""
    times = [m['t'] for m in metrics]
    fig = go.Figure()
    for i, key in enumerate(_series(metrics, 'reward_per_share_')):
        pid, token = key[len('reward_per_share_'):].split('_', 1)
        fig.add_trace(go.Scatter(
            x=times,
            y=[m.get(key) for m in metrics],
            name=f"Pool {pid} / {token}",
            mode='lines',
            line=dict(color=SERIES_COLORS[i % len(SERIES_COLORS)], width=2)
        ))
    apply_dark_layout(fig, "Reward per Unit Stake", "Time", "Accumulator")
    return fig


def create_tvl_chart(metrics: List[Dict[str, Any]]) -> go.Figure:
    """Total staked versus value custodied by the vaults."""
    times = [m['t'] for m in metrics]
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=times,
        y=[m['total_staked'] for m in metrics],
        name='Staked (ledger)',
        mode='lines',
        line=dict(color=THEME["cyan"], width=2),
        fill='tozeroy',
        fillcolor=THEME["cyan_fill"]
    ))
    fig.add_trace(go.Scatter(
        x=times,
        y=[m['total_tvl'] for m in metrics],
        name='TVL (vaults)',
        mode='lines',
        line=dict(color=THEME["amber"], width=2, dash='dot')
    ))
    apply_dark_layout(fig, "Ledger vs Vault Custody", "Time", "Amount")
    return fig
