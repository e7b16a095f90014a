# src/synthpivot/cli.py
"""
synthpivot CLI

Simulate one or more null distributions and print a JSON summary per run
(sorted keys, one object per line) to stdout.

Examples:
  synthpivot --kind sphericity --nsample 100 --pvariates 4 --iterations 10000 --seed 1
  synthpivot --kind canonical --part 2 --nsample 100 --pvariates 4 --quantiles 0.9 0.95 0.99
  synthpivot --config runs.yaml --log-level DEBUG
  python -m synthpivot --config runs.yaml

Exit codes: 0 success, 1 simulation failure, 2 usage or configuration error.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .config import DEFAULT_ITERATIONS, DEFAULT_QUANTILES, RunConfig
from .driver import run_config
from .errors import ConfigError, InvalidPartition, SynthPivotError
from .io import load_config, parse_config

LOG = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="synthpivot",
        description="Monte Carlo null distributions of pivotal statistics for singly imputed synthetic data.",
    )
    ap.add_argument("--config", type=str, default=None, help="Path to YAML run configuration.")
    ap.add_argument(
        "--kind",
        type=str,
        default=None,
        help="generalized_variance | sphericity | independence | canonical (or T1..T4, regression).",
    )
    ap.add_argument("--nsample", type=int, default=None, help="Sample size n.")
    ap.add_argument("--pvariates", type=int, default=None, help="Number of variables p.")
    ap.add_argument("--iterations", type=int, default=None, help=f"Monte Carlo iterations (default {DEFAULT_ITERATIONS}).")
    ap.add_argument("--part", type=int, default=None, help="Variables in the first subset (independence/canonical).")
    ap.add_argument("--seed", type=int, default=None, help="Seed (default: $SYNTHPIVOT_SEED or OS entropy).")
    ap.add_argument("--seed-policy", type=str, default=None, choices=["sequential", "per_iteration"])
    ap.add_argument("--jobs", type=int, default=None, help="Parallel workers (requires per_iteration).")
    ap.add_argument("--executor", type=str, default=None, choices=["thread", "process"])
    ap.add_argument("--quantiles", type=float, nargs="+", default=None, help="Quantiles to report.")
    ap.add_argument("--log-level", type=str, default="WARNING", help="Logging level.")
    return ap


def _resolve_config(args: argparse.Namespace) -> RunConfig:
    """Config file (if any) overlaid with explicit flags."""
    overrides: Dict[str, Any] = {
        "seed": args.seed,
        "seed_policy": args.seed_policy,
        "jobs": args.jobs,
        "executor": args.executor,
        "quantiles": list(args.quantiles) if args.quantiles else None,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}

    if args.config is not None:
        if args.kind is not None:
            raise ConfigError("use either --config or --kind, not both")
        base = load_config(args.config)
        if not overrides:
            return base
        data = base.model_dump(mode="json")
        data.update(overrides)
        return parse_config(data, source=f"{args.config!r} + command line")

    if args.kind is None or args.nsample is None or args.pvariates is None:
        raise ConfigError("either --config or --kind/--nsample/--pvariates is required")
    run: Dict[str, Any] = {"kind": args.kind, "nsample": args.nsample, "pvariates": args.pvariates}
    if args.iterations is not None:
        run["iterations"] = args.iterations
    if args.part is not None:
        run["part"] = args.part
    return parse_config({"runs": [run], **overrides}, source="command line")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    try:
        cfg = _resolve_config(args)
    except (ConfigError, ValidationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    try:
        dists = run_config(cfg)
    except (ConfigError, InvalidPartition) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except SynthPivotError as e:
        LOG.exception("Simulation failed.")
        print(f"ERROR: simulation failed: {e}", file=sys.stderr)
        return 1

    quantiles: List[float] = list(cfg.quantiles) if cfg.quantiles else list(DEFAULT_QUANTILES)
    for d in dists:
        print(json.dumps(d.to_dict(quantiles), sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
