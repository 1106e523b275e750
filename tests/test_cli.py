"""Tests for the command-line entry point."""

import json

from farmledger.cli import main


def write_config(tmp_path):
    path = tmp_path / "scenario.yaml"
    path.write_text(
        "tokens:\n  - symbol: LP\n  - symbol: R\n"
        "pools:\n  - asset: LP\n    weight: 1\n    rewards:\n      - token: R\n        rate: 5\n"
        "simulation:\n  steps: 12\n  num_users: 2\n  monte_carlo_runs: 2\n"
        "  reward_funding:\n    R: 1000000\n"
    )
    return str(path)


def test_run_writes_outputs(tmp_path, capsys):
    config = write_config(tmp_path)
    csv_path = tmp_path / "out.csv"
    json_path = tmp_path / "out.json"
    code = main(["run", "--config", config, "--seed", "3", "--csv", str(csv_path), "--json", str(json_path)])
    assert code == 0
    assert "config hash" in capsys.readouterr().out
    assert csv_path.exists()
    assert json.loads(json_path.read_text())['action_counts']


def test_monte_carlo(tmp_path, capsys):
    code = main(["--log-level", "ERROR", "monte-carlo", "--config", write_config(tmp_path)])
    assert code == 0
    assert "total_paid_R" in capsys.readouterr().out
