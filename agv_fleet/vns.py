"""Variable Neighbourhood Search over order-to-vehicle plans.

A candidate is a route per vehicle (an ordered tuple of order ids); the
assignment map is derived from it. Every candidate is scored by running an
independent snapshot of the fleet for ``evaluation_horizon`` minutes with
the candidate installed as the dispatch plan, then applying the weighted
KPI fitness.
"""

from __future__ import annotations

import logging
import multiprocessing
from collections import deque
from dataclasses import dataclass
from typing import Iterator

import numpy as np

from .config import VNSConfig
from .dispatcher import dispatch_key
from .engine import SimulationState, clone_for_evaluation, run
from .enums import Priority
from .kpis import KPISnapshot, fitness
from .layout import grid_distance, to_cell

logger = logging.getLogger(__name__)

Routes = dict[int, tuple[int, ...]]


@dataclass(frozen=True)
class VNSSolution:
    routes: Routes
    kpis: KPISnapshot
    fitness: float
    is_feasible: bool = True

    @property
    def assignments(self) -> dict[int, int]:
        """``{order_id: vehicle_id}`` for every planned order."""
        return {oid: vid for vid, route in self.routes.items() for oid in route}

    @property
    def total_distance(self) -> float:
        return self.kpis.total_distance


# ----------------------------------------------------------------------
# Route transforms (pure: always return a new mapping)
# ----------------------------------------------------------------------

def _freeze(routes: dict[int, list[int]]) -> Routes:
    return {vid: tuple(route) for vid, route in routes.items()}


def _thaw(routes: Routes) -> dict[int, list[int]]:
    return {vid: list(route) for vid, route in routes.items()}


def _planned(routes: Routes) -> list[tuple[int, int]]:
    return [(vid, oid) for vid in sorted(routes) for oid in routes[vid]]


def swap_routes(routes: Routes, k: int, rng: np.random.Generator) -> Routes:
    """Move *k* random planned orders, each to a different random vehicle's route end."""
    planned = _planned(routes)
    vehicle_ids = sorted(routes)
    new = _thaw(routes)
    if not planned or len(vehicle_ids) < 2:
        return _freeze(new)
    picks = rng.choice(len(planned), size=min(k, len(planned)), replace=False)
    for idx in picks:
        source, oid = planned[int(idx)]
        others = [vid for vid in vehicle_ids if vid != source]
        target = others[int(rng.integers(len(others)))]
        new[source].remove(oid)
        new[target].append(oid)
    return _freeze(new)


def insert_routes(routes: Routes, k: int, rng: np.random.Generator, place) -> Routes:
    """Pull *k* random planned orders out and reinsert each where ``place`` puts it.

    ``place(routes, order_id)`` returns a vehicle id or ``None``; an order
    nobody will take goes back to the vehicle it came from.
    """
    planned = _planned(routes)
    new = _thaw(routes)
    if not planned:
        return _freeze(new)
    picks = rng.choice(len(planned), size=min(k, len(planned)), replace=False)
    removed = [planned[int(idx)] for idx in picks]
    for source, oid in removed:
        new[source].remove(oid)
    for source, oid in removed:
        target = place(new, oid)
        new[source if target is None else target].append(oid)
    return _freeze(new)


def two_opt_routes(routes: Routes, vehicle_id: int, rng: np.random.Generator) -> Routes:
    """Reverse the stretch between two random positions ``i <= j`` of one route."""
    new = dict(routes)
    route = list(routes[vehicle_id])
    if len(route) < 2:
        return new
    i, j = sorted(int(x) for x in rng.integers(len(route), size=2))
    route[i:j + 1] = route[i:j + 1][::-1]
    new[vehicle_id] = tuple(route)
    return new


# ----------------------------------------------------------------------
# Snapshots and evaluation
# ----------------------------------------------------------------------

def release_all(state: SimulationState) -> None:
    """Drop every vehicle's task and put every open order back in the pending queue."""
    for v in state.vehicles:
        v.release_task(state.orders)
    open_ids = []
    for oid, order in state.orders.items():
        if not order.status.is_terminal:
            order.requeue()
            open_ids.append(oid)
    state.pending = sorted(open_ids, key=lambda oid: dispatch_key(state.orders[oid]))
    state.plans = {}


def evaluate_routes(base: SimulationState, routes: Routes, horizon: float) -> KPISnapshot:
    """Run a fresh copy of *base* for *horizon* minutes with *routes* as the plan."""
    sim = clone_for_evaluation(base)
    sim.plans = {vid: deque(route) for vid, route in routes.items()}
    return run(sim, horizon)[-1]


_worker_base: SimulationState | None = None
_worker_horizon: float = 0.0


def _init_worker(base: SimulationState, horizon: float) -> None:
    global _worker_base, _worker_horizon
    _worker_base = base
    _worker_horizon = horizon


def _evaluate_in_worker(routes: Routes) -> KPISnapshot:
    return evaluate_routes(_worker_base, routes, _worker_horizon)


# ----------------------------------------------------------------------
# Solver
# ----------------------------------------------------------------------

class VNSSolver:
    """One optimisation run against a fixed snapshot of a live state.

    The live state is never touched; the solver keeps its own snapshot with
    every task released, which is the state :func:`apply_solution` produces.
    """

    def __init__(self, state: SimulationState, config: VNSConfig | None = None) -> None:
        self.config = config or VNSConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.base = clone_for_evaluation(state)
        release_all(self.base)
        self.vehicle_ids = [v.vehicle_id for v in self.base.vehicles]
        self.baseline_distance: float | None = None
        self.initial: VNSSolution | None = None
        self.fitness_history: list[float] = []
        self.evaluations = 0
        self._pool = None

    # -- scoring -----------------------------------------------------------

    def placement_score(self, vehicle, route: list[int], order) -> float:
        """Distance, load-balance and urgency score for appending *order* to *route*."""
        cfg = self.config
        warehouse = self.base.config.warehouse
        start = warehouse.output_dock if route else to_cell(vehicle.position, warehouse.resolution)
        distance = grid_distance(start, order.pickup_slot)
        distance_score = 1.0 / (1.0 + distance / cfg.distance_scale)
        balance_score = 1.0 / (1.0 + len(route) / cfg.balance_scale)
        urgency = cfg.urgency_bonus if order.priority == Priority.URGENT else 0.0
        return (
            cfg.distance_weight * distance_score
            + cfg.balance_weight * balance_score
            + cfg.urgency_weight * urgency
        )

    def place(self, routes: dict[int, list[int]], oid: int) -> int | None:
        """Best feasible vehicle for order *oid* given the partial *routes*."""
        order = self.base.orders[oid]
        best_id = None
        best_score = float("-inf")
        for vehicle in self.base.vehicles:
            if not vehicle.can_accept(order):
                continue
            s = self.placement_score(vehicle, routes[vehicle.vehicle_id], order)
            if s > best_score:
                best_score = s
                best_id = vehicle.vehicle_id
        return best_id

    def _solution(self, routes: Routes, kpis: KPISnapshot) -> VNSSolution:
        self.evaluations += 1
        feasible = (
            self.baseline_distance is None
            or kpis.total_distance <= self.baseline_distance + 1e-9
        )
        return VNSSolution(routes, kpis, fitness(kpis, self.config.kpi_weights), feasible)

    def evaluate(self, routes: Routes) -> VNSSolution:
        kpis = evaluate_routes(self.base, routes, self.config.evaluation_horizon)
        return self._solution(routes, kpis)

    def _evaluate_many(self, candidates: list[Routes]) -> Iterator[VNSSolution]:
        if self._pool is None:
            for routes in candidates:
                yield self.evaluate(routes)
            return
        for routes, kpis in zip(candidates, self._pool.map(_evaluate_in_worker, candidates)):
            yield self._solution(routes, kpis)

    @staticmethod
    def improves(candidate: VNSSolution, reference: VNSSolution) -> bool:
        return candidate.is_feasible and candidate.fitness > reference.fitness

    # -- construction and neighbourhoods -------------------------------------

    def construct_initial(self) -> VNSSolution:
        """Greedy plan: pending orders in dispatch order, each to its best-scoring vehicle.

        Its evaluated distance becomes the ceiling every later candidate must respect.
        """
        routes: dict[int, list[int]] = {vid: [] for vid in self.vehicle_ids}
        unplanned = 0
        for oid in self.base.pending:
            vid = self.place(routes, oid)
            if vid is None:
                unplanned += 1
                continue
            routes[vid].append(oid)
        solution = self.evaluate(_freeze(routes))
        self.baseline_distance = solution.total_distance
        self.initial = solution
        logger.info(
            "[VNS] Initial plan: %d orders over %d vehicles (%d unplanned), "
            "fitness %.4f, distance %.2f m",
            len(solution.assignments), len(routes), unplanned,
            solution.fitness, solution.total_distance,
        )
        return solution

    def swap(self, solution: VNSSolution, k: int) -> VNSSolution:
        return self.evaluate(swap_routes(solution.routes, k, self.rng))

    def insert(self, solution: VNSSolution, k: int) -> VNSSolution:
        return self.evaluate(insert_routes(solution.routes, k, self.rng, self.place))

    def two_opt(self, solution: VNSSolution, vehicle_id: int | None = None) -> VNSSolution:
        if vehicle_id is None:
            vehicle_id = self.vehicle_ids[int(self.rng.integers(len(self.vehicle_ids)))]
        return self.evaluate(two_opt_routes(solution.routes, vehicle_id, self.rng))

    def neighbourhood(self, routes: Routes) -> list[Routes]:
        """Swap-k and Insert-k for each local-search k, then one 2-opt per vehicle."""
        candidates = []
        for k in self.config.local_search_k:
            candidates.append(swap_routes(routes, k, self.rng))
            candidates.append(insert_routes(routes, k, self.rng, self.place))
        for vid in self.vehicle_ids:
            candidates.append(two_opt_routes(routes, vid, self.rng))
        return candidates

    def local_search(self, solution: VNSSolution) -> VNSSolution:
        """First-improvement hill climbing, capped at ``local_search_passes`` passes."""
        current = solution
        for _ in range(self.config.local_search_passes):
            improved = None
            for candidate in self._evaluate_many(self.neighbourhood(current.routes)):
                if self.improves(candidate, current):
                    improved = candidate
                    break
            if improved is None:
                break
            current = improved
        return current

    def shake(self, solution: VNSSolution, k: int) -> VNSSolution:
        move = int(self.rng.integers(3))
        if move == 0:
            return self.swap(solution, k)
        if move == 1:
            return self.insert(solution, k)
        return self.two_opt(solution)

    # -- main loop -----------------------------------------------------------

    def solve(self) -> VNSSolution:
        cfg = self.config
        if cfg.workers > 1:
            ctx = multiprocessing.get_context("fork")
            self._pool = ctx.Pool(
                processes=cfg.workers,
                initializer=_init_worker,
                initargs=(self.base, cfg.evaluation_horizon),
            )
        try:
            return self._search()
        finally:
            if self._pool is not None:
                self._pool.close()
                self._pool.join()
                self._pool = None

    def _search(self) -> VNSSolution:
        cfg = self.config
        intensities = cfg.shaking_intensities
        best = current = self.construct_initial()
        self.fitness_history = [best.fitness]
        no_improvement = 0

        for iteration in range(1, cfg.max_outer_iterations + 1):
            improved = False
            idx = 0
            while idx < len(intensities):
                candidate = self.local_search(self.shake(current, intensities[idx]))
                if self.improves(candidate, current):
                    current = candidate
                    improved = True
                    idx = 0
                    if candidate.fitness > best.fitness:
                        best = candidate
                        logger.info(
                            "[VNS] Iteration %d: new best fitness %.4f (distance %.2f m)",
                            iteration, best.fitness, best.total_distance,
                        )
                else:
                    idx += 1

            self.fitness_history.append(best.fitness)
            no_improvement = 0 if improved else no_improvement + 1
            if no_improvement >= cfg.max_no_improvement:
                logger.info("[VNS] No improvement for %d iterations, stopping", no_improvement)
                break

        logger.info(
            "[VNS] Done after %d evaluations: fitness %.4f -> %.4f",
            self.evaluations, self.fitness_history[0], best.fitness,
        )
        return best


def optimize(state: SimulationState, config: VNSConfig | None = None) -> VNSSolution:
    """Search for a better plan for *state*'s open orders. Does not modify *state*."""
    config = config or VNSConfig()
    config.validate()
    return VNSSolver(state, config).solve()


def apply_solution(state: SimulationState, solution: VNSSolution) -> list[tuple[int, int]]:
    """Install *solution* on a live state and dispatch the head of each route.

    Every vehicle's task is released and every open order returns to pending
    first; completed and late orders are left alone. Returns the
    ``(order_id, vehicle_id)`` pairs assigned straight away.
    """
    known = {v.vehicle_id for v in state.vehicles}
    unknown = set(solution.routes) - known
    if unknown:
        raise ValueError(f"Solution names unknown vehicles: {sorted(unknown)}")
    missing = [oid for oid in solution.assignments if oid not in state.orders]
    if missing:
        raise ValueError(f"Solution names unknown orders: {sorted(missing)}")

    release_all(state)
    state.plans = {
        vid: deque(oid for oid in route if not state.orders[oid].status.is_terminal)
        for vid, route in solution.routes.items()
    }
    made = state.dispatcher.assign(state)
    logger.info("[VNS] Plan applied: %d orders dispatched immediately", len(made))
    return made
