"""Command-line entry point.

Run with::

    python -m agv_fleet --vehicles 5 --duration 480 --optimize
"""

from __future__ import annotations

import argparse
import logging

from .config import SimConfig, VNSConfig
from .headless import SCENARIOS, run_headless
from .kpis import format_report, target_kpis

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Run one headless simulation and print its KPI report."""
    parser = argparse.ArgumentParser(description="AGV fleet simulation with VNS dispatch planning")
    parser.add_argument("--vehicles", type=int, default=5,
                        help="Fleet size (default: 5)")
    parser.add_argument("--duration", type=float, default=480.0,
                        help="Simulated minutes to run (default: 480 = 8 hours)")
    parser.add_argument("--seed", type=int, default=1234,
                        help="Random seed for demand and search (default: 1234)")
    parser.add_argument("--scenario", choices=SCENARIOS, default="generated",
                        help="Demand scenario (default: generated)")
    parser.add_argument("--optimize", action="store_true",
                        help="Plan dispatch with VNS instead of plain greedy assignment")
    parser.add_argument("--reoptimize-every", type=float, default=None,
                        help="Minutes between VNS re-plans (default: evaluation horizon)")
    parser.add_argument("--iterations", type=int, default=None,
                        help="VNS outer-iteration cap")
    parser.add_argument("--workers", type=int, default=1,
                        help="Processes used to evaluate VNS candidates (default: 1)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log run summary and debug detail")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    overrides = {"seed": args.seed, "workers": args.workers}
    if args.iterations is not None:
        overrides["max_outer_iterations"] = args.iterations
    vns_config = VNSConfig(**overrides)

    config = SimConfig()
    logger.info(
        "Running %s scenario: %d vehicles, %.0f min, seed %d, %s dispatch",
        args.scenario, args.vehicles, args.duration, args.seed,
        "VNS-planned" if args.optimize else "greedy",
    )
    result = run_headless(
        num_vehicles=args.vehicles,
        duration=args.duration,
        seed=args.seed,
        optimize_plan=args.optimize,
        vns_config=vns_config,
        scenario=args.scenario,
        reoptimize_every=args.reoptimize_every,
        config=config,
        verbose=args.verbose,
    )

    print(format_report(
        result["final_kpis"],
        target_kpis(config, result["num_vehicles"]),
        result["num_vehicles"],
    ))
    print()
    print(f"Fitness: {result['fitness']:.4f}  "
          f"VNS runs: {result['optimizations']}  "
          f"Pending: {result['pending_orders']}  "
          f"Wall: {result['wall_clock_seconds']:.1f}s")


if __name__ == "__main__":
    main()
