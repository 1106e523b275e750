"""Command-line entry point: run farm scenarios and export the results."""

import argparse
import logging
import sys
from typing import List, Optional

from .config.loader import load_config
from .reporting.export import export_csv, export_json, export_positions_csv
from .simulation.monte_carlo import MonteCarloRunner
from .simulation.runner import SimulationRunner
from .validation.sanity_checks import validate_simulation_results


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="farmledger", description="Multi-pool reward farm ledger")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run one scenario")
    run.add_argument("--config", default=None, help="YAML config (defaults to packaged defaults)")
    run.add_argument("--seed", type=int, default=None, help="Random seed override")
    run.add_argument("--csv", default=None, help="Write per-step metrics to this CSV file")
    run.add_argument("--positions-csv", default=None, help="Write final positions to this CSV file")
    run.add_argument("--json", default=None, help="Write the full result to this JSON file")

    mc = sub.add_parser("monte-carlo", help="Repeat a scenario across seeds")
    mc.add_argument("--config", default=None, help="YAML config (defaults to packaged defaults)")
    mc.add_argument("--runs", type=int, default=None, help="Number of runs")
    mc.add_argument("--seed", type=int, default=None, help="First random seed")
    mc.add_argument("--csv", default=None, help="Write the per-run table to this CSV file")
    return parser


def _run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    result = SimulationRunner(config).run(random_seed=args.seed)

    print(f"config hash: {config.compute_hash()}")
    for key, value in result.final_metrics.items():
        print(f"  {key}: {value}")
    print(f"  actions: {result.action_counts}")

    warnings = validate_simulation_results(result)
    for warning in warnings:
        print(f"[{warning.severity}] {warning.category}: {warning.message}", file=sys.stderr)

    if args.csv:
        export_csv(result, args.csv)
    if args.positions_csv:
        export_positions_csv(result, args.positions_csv)
    if args.json:
        export_json(result, args.json)
    return 1 if result.conservation_errors else 0


def _monte_carlo(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    results = MonteCarloRunner(config).run(num_runs=args.runs, random_seed=args.seed)
    print(MonteCarloRunner.summarize(results).to_string())
    if args.csv:
        MonteCarloRunner.to_frame(results).to_csv(args.csv, index=False)
    return 1 if any(result.conservation_errors for result in results) else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    if args.command == "run":
        return _run(args)
    return _monte_carlo(args)


if __name__ == "__main__":
    sys.exit(main())
