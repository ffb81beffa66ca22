#!/usr/bin/env python3
"""
Parameter sweep for the AGV fleet simulation.

Runs run_headless() across combinations of fleet sizes and seeds,
reports KPI metrics, and optionally writes CSV output.

Usage:
    python sweep.py
    python sweep.py --vehicles 3,5,8 --seeds 1,2,3 --duration 480
    python sweep.py --optimize --csv results.csv --parallel
"""
import argparse
import csv
import logging
import multiprocessing

from agv_fleet import VNSConfig, run_headless
from agv_fleet.headless import SCENARIOS


def _run_single(args):
    """Wrapper for multiprocessing: unpack args and call run_headless."""
    num_vehicles, seed, duration, scenario, optimize_plan, iterations = args
    return run_headless(
        num_vehicles=num_vehicles,
        duration=duration,
        seed=seed,
        optimize_plan=optimize_plan,
        vns_config=VNSConfig(seed=seed, max_outer_iterations=iterations),
        scenario=scenario,
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description="AGV fleet simulation parameter sweep")
    parser.add_argument("--duration", type=float, default=480.0,
                        help="Simulation duration in sim-minutes (default: 480 = 8 hours)")
    parser.add_argument("--vehicles", type=str, default="2,3,4,5,6,8",
                        help="Comma-separated list of fleet sizes to sweep")
    parser.add_argument("--seeds", type=str, default="1,2,3",
                        help="Comma-separated list of random seeds")
    parser.add_argument("--scenario", choices=SCENARIOS, default="generated",
                        help="Demand scenario (default: generated)")
    parser.add_argument("--optimize", action="store_true",
                        help="Plan dispatch with VNS")
    parser.add_argument("--iterations", type=int, default=10,
                        help="VNS outer-iteration cap per plan (default: 10)")
    parser.add_argument("--csv", type=str, default=None,
                        help="Optional CSV output file path")
    parser.add_argument("--parallel", action="store_true",
                        help="Run sweep using multiprocessing")
    parser.add_argument("--workers", type=int, default=None,
                        help="Number of parallel workers (default: cpu_count, capped at 8)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(message)s")

    fleet_sizes = [int(x.strip()) for x in args.vehicles.split(",")]
    seeds = [int(x.strip()) for x in args.seeds.split(",")]
    duration = args.duration

    combos = [
        (n, s, duration, args.scenario, args.optimize, args.iterations)
        for n in fleet_sizes for s in seeds
    ]
    total = len(combos)

    print(f"Sweep: {len(fleet_sizes)} fleet sizes x {len(seeds)} seeds = {total} runs")
    print(f"Duration: {duration:.0f} min ({duration/60:.1f} sim-hours), scenario: {args.scenario}, "
          f"dispatch: {'VNS' if args.optimize else 'greedy'}")
    if args.parallel:
        n_workers = args.workers or min(multiprocessing.cpu_count(), 8)
        print(f"Mode: parallel ({n_workers} workers)")
    else:
        print("Mode: serial")
    print()

    results = []

    if args.parallel:
        n_workers = args.workers or min(multiprocessing.cpu_count(), 8)
        ctx = multiprocessing.get_context("fork")
        with ctx.Pool(processes=n_workers) as pool:
            for i, result in enumerate(pool.imap_unordered(_run_single, combos), 1):
                results.append(result)
                print(f"  [{i}/{total}] Vehicles={result['num_vehicles']:>2}  "
                      f"Seed={result['seed']:>3}  "
                      f"Completed={result['completed_orders']:>4}  "
                      f"Wall={result['wall_clock_seconds']:.1f}s")
    else:
        for i, combo in enumerate(combos, 1):
            print(f"  [{i}/{total}] Vehicles={combo[0]}, Seed={combo[1]} ...", end="", flush=True)
            result = _run_single(combo)
            results.append(result)
            print(f"  Completed={result['completed_orders']:>4}  "
                  f"Wall={result['wall_clock_seconds']:.1f}s")

    results.sort(key=lambda r: (r["num_vehicles"], r["seed"]))

    print()
    header = f"{'AGVs':>5}  {'Seed':>5}  {'Done':>5}  {'Late':>5}  {'Ord/hr':>6}  " \
             f"{'Idle%':>6}  {'Util%':>6}  {'OnTime%':>8}  {'Dist(m)':>8}  {'Wall(s)':>8}"
    print(header)
    print("-" * len(header))

    best = None
    for r in results:
        print(f"{r['num_vehicles']:>5}  {r['seed']:>5}  "
              f"{r['completed_orders']:>5}  {r['late_orders']:>5}  "
              f"{r['orders_per_hour']:>6.1f}  "
              f"{r['idle_fraction']*100:>5.1f}%  "
              f"{r['utilization']*100:>5.1f}%  "
              f"{r['on_time_fraction']*100:>7.1f}%  "
              f"{r['total_distance']:>8.1f}  "
              f"{r['wall_clock_seconds']:>7.1f}")
        if best is None or r["fitness"] > best["fitness"]:
            best = r

    if best:
        print(f"\nBest fitness: {best['fitness']:.4f} "
              f"with {best['num_vehicles']} vehicles (seed {best['seed']})")

    if args.csv:
        fieldnames = [
            "num_vehicles", "seed", "scenario", "optimized", "total_orders",
            "completed_orders", "late_orders", "pending_orders", "orders_per_hour",
            "avg_completion_time", "idle_fraction", "utilization", "on_time_fraction",
            "total_distance", "fitness", "sim_duration", "wall_clock_seconds", "total_ticks",
        ]
        with open(args.csv, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for r in results:
                row = {k: r[k] for k in fieldnames}
                writer.writerow(row)
        print(f"\nCSV written to: {args.csv}")


if __name__ == "__main__":
    main()
