"""Export functionality for CSV and JSON."""

import json
from typing import Any, Dict

import pandas as pd

from ..simulation.runner import SimulationResult


def metrics_frame(result: SimulationResult) -> pd.DataFrame:
    """Per-step metrics as a DataFrame indexed by step."""
    df = pd.DataFrame(result.metrics_over_time)
    if not df.empty:
        df = df.set_index('step')
    return df


def positions_frame(snapshot: Dict[str, Any]) -> pd.DataFrame:
    """Flatten a farm snapshot into one row per (pool, user) with pending rewards as columns."""
    rows = []
    for pool in snapshot['pools']:
        for user, position in pool['positions'].items():
            row = {'pid': pool['pid'], 'asset': pool['asset'], 'user': user, 'amount': position['amount']}
            for token, pending in position['pending'].items():
                row[f'pending_{token}'] = pending
            rows.append(row)
    return pd.DataFrame(rows)


def export_csv(result: SimulationResult, filepath: str):
    """Export per-step simulation metrics to CSV."""
    metrics_frame(result).to_csv(filepath)


def export_positions_csv(result: SimulationResult, filepath: str):
    """Export final positions to CSV."""
    positions_frame(result.final_snapshot).to_csv(filepath, index=False)


def export_json(result: SimulationResult, filepath: str):
    """Export simulation results to JSON."""
    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'metrics_over_time': result.metrics_over_time,
        'final_metrics': result.final_metrics,
        'final_snapshot': result.final_snapshot,
        'events': result.events,
        'conservation_errors': result.conservation_errors,
        'rejected_actions': result.rejected_actions,
        'action_counts': result.action_counts
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2, default=str)
