"""Time-stepped simulation engine.

One tick of :func:`advance` runs, in this order: clock and shift update
(with shift handoff), order ingestion, assignment, vehicle motion, occupancy
grid rebuild, conflict resolution, task completion and the KPI snapshot.
The order matters for determinism.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from typing import Callable

from .collision import new_occupancy_grid, rebuild_occupancy, resolve_conflicts
from .config import SimConfig
from .demand import OrderGenerator, ScheduledOrders
from .dispatcher import Dispatcher
from .enums import VehicleState
from .kpis import KPIHistory, KPISnapshot, compute_kpis, detect_trends, target_kpis
from .layout import build_layout
from .models import Layout, Order
from .vehicle import Vehicle

logger = logging.getLogger(__name__)


class SimulationState:
    """Everything one simulation run owns. Mutated only through this module."""

    def __init__(
        self,
        layout: Layout,
        vehicles: list[Vehicle],
        config: SimConfig,
        source: OrderGenerator | ScheduledOrders | None = None,
        seed: int | None = None,
    ) -> None:
        self.layout = layout
        self.config = config
        self.vehicles = vehicles
        self.orders: dict[int, Order] = {}
        self.pending: list[int] = []
        self.plans: dict[int, deque[int]] = {}
        self.current_time: float = 0.0
        self.start_time: float = 0.0
        self.current_shift: int = 1
        self.current_hour: int = 1
        self.occupancy = new_occupancy_grid(config.warehouse)
        self.kpi_history = KPIHistory()
        self.targets = target_kpis(config, len(vehicles))
        self.time_scale: float = config.time_scale
        self.paused: bool = False
        self.source = source
        self.seed = seed
        self.dispatcher = Dispatcher(config)

    @property
    def elapsed(self) -> float:
        return self.current_time - self.start_time

    def vehicle(self, vehicle_id: int) -> Vehicle:
        for v in self.vehicles:
            if v.vehicle_id == vehicle_id:
                return v
        raise ValueError(f"No vehicle with id {vehicle_id}")


def initial_position(index: int, config: SimConfig) -> tuple[float, float]:
    """Start position of the *index*-th vehicle (1-based), along the left wall."""
    fleet = config.fleet
    return (fleet.start_x + (index - 1) * fleet.start_spacing, config.warehouse.height / 2)


def create_state(
    config: SimConfig | None = None,
    num_vehicles: int = 5,
    seed: int | None = 1234,
    generate_orders: bool = True,
) -> SimulationState:
    """Build a fresh state: layout, fleet at its start positions, seeded order source."""
    config = config or SimConfig()
    if num_vehicles <= 0:
        raise ValueError(f"num_vehicles must be positive, got {num_vehicles}")
    layout = build_layout(config.warehouse)
    vehicles = [Vehicle(i, initial_position(i, config), config) for i in range(1, num_vehicles + 1)]
    source = OrderGenerator(layout, config.demand, seed=seed) if generate_orders else None
    return SimulationState(layout, vehicles, config, source=source, seed=seed)


def add_orders(state: SimulationState, orders: list[Order]) -> None:
    """Register externally produced orders as pending."""
    for order in orders:
        state.orders[order.order_id] = order
        state.pending.append(order.order_id)


# ----------------------------------------------------------------------
# Tick
# ----------------------------------------------------------------------

def _update_shift(state: SimulationState) -> None:
    config = state.config
    hours = state.current_time / 60.0
    state.current_shift = int(hours // config.shift_hours) % config.shifts_per_day + 1
    state.current_hour = int(hours % config.shift_hours) + 1
    if state.current_time % config.shift_minutes < config.handoff_minutes:
        _shift_handoff(state)


def _shift_handoff(state: SimulationState) -> None:
    """Send low-budget vehicles to charge and give their tasks back to the queue."""
    threshold = state.config.handoff_budget_minutes
    for v in state.vehicles:
        if v.work_time_remaining >= threshold or v.state == VehicleState.CHARGING:
            continue
        order = v.release_task(state.orders)
        v.start_charging()
        if order is not None:
            state.dispatcher.requeue(state, order, v.vehicle_id)
        logger.info(
            "[Engine] Shift handoff: vehicle %d charging (%.1f min left)%s",
            v.vehicle_id, v.work_time_remaining,
            f", order #{order.order_id} requeued" if order is not None else "",
        )


def _ingest(state: SimulationState, dt: float) -> None:
    if state.source is None:
        return
    new_orders = state.source.orders_for_window(dt, state.current_time)
    add_orders(state, new_orders)


def _complete_tasks(state: SimulationState) -> None:
    for v in state.vehicles:
        if v.current_task is None:
            continue
        order = state.orders[v.current_task]
        if v.state == VehicleState.LOADING:
            v.commit_pickup(order)
            logger.debug("[Engine] Vehicle %d loaded order #%d", v.vehicle_id, order.order_id)
        elif v.state == VehicleState.UNLOADING:
            v.commit_delivery(order, state.current_time)
            logger.debug(
                "[Engine] Vehicle %d delivered order #%d (%s) at t=%.1f",
                v.vehicle_id, order.order_id, order.status.value, state.current_time,
            )


def advance(state: SimulationState, dt: float = 1.0) -> KPISnapshot | None:
    """Advance the simulation by one tick of *dt* minutes (scaled by the time-scale).

    Returns the tick's KPI snapshot, or ``None`` when the state is paused.
    """
    if dt < 0:
        raise ValueError(f"dt must be >= 0, got {dt}")
    if state.paused:
        return None

    scaled = dt * state.time_scale
    config = state.config

    # 1. clock, shift, handoff
    state.current_time += scaled
    _update_shift(state)

    # 2. new orders
    _ingest(state, scaled)
    state.dispatcher.abandon_stale(state)

    # 3. assignment
    state.dispatcher.assign(state)

    # 4. motion
    for v in state.vehicles:
        v.update(scaled, state.orders)

    # 5-6. occupancy and conflicts
    rebuild_occupancy(state.occupancy, state.vehicles, config.warehouse)
    for vehicle, order in resolve_conflicts(state.vehicles, state.orders, config.warehouse):
        state.dispatcher.requeue(state, order, vehicle.vehicle_id)

    # 7. loading / unloading commits
    _complete_tasks(state)
    for v in state.vehicles:
        v.check_invariants(state.orders)

    # 8. KPIs
    kpis = compute_kpis(
        state.vehicles, state.orders.values(), state.elapsed,
        config.shift_minutes, config.shifts_per_day,
    )
    state.kpi_history.record(state.current_time, kpis)
    return kpis


def run(
    state: SimulationState,
    duration: float,
    per_tick_hook: Callable[[SimulationState, KPISnapshot], None] | None = None,
    dt: float = 1.0,
) -> list[KPISnapshot]:
    """Advance tick by tick until *duration* simulated minutes have passed."""
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    end_time = state.current_time + duration
    results: list[KPISnapshot] = []
    while state.current_time < end_time:
        kpis = advance(state, dt)
        if kpis is None:
            break
        results.append(kpis)
        if per_tick_hook is not None:
            per_tick_hook(state, kpis)
    return results


def reset(state: SimulationState) -> None:
    """Return *state* to time zero: no orders, fleet at the start positions, fresh source."""
    state.orders = {}
    state.pending = []
    state.plans = {}
    state.current_time = 0.0
    state.start_time = 0.0
    state.current_shift = 1
    state.current_hour = 1
    state.occupancy.fill(False)
    state.kpi_history = KPIHistory()
    if isinstance(state.source, OrderGenerator):
        state.source = OrderGenerator(state.layout, state.config.demand, seed=state.seed)
    elif isinstance(state.source, ScheduledOrders):
        state.source.rewind()

    for index, v in enumerate(state.vehicles, start=1):
        v.position = initial_position(index, state.config)
        v.load_kg = 0.0
        v.crate_count = 0
        v.state = VehicleState.IDLE
        v.target = None
        v.current_task = None
        v.work_time_remaining = state.config.fleet.max_work_minutes
        v.distance_traveled = 0.0
        v.idle_time = 0.0
        v.tasks_completed = 0
        v.last_update_time = 0.0


def vehicle_utilization(state: SimulationState, vehicle_id: int) -> float:
    return state.vehicle(vehicle_id).utilization(state.elapsed)


def pause(state: SimulationState) -> None:
    state.paused = True


def resume(state: SimulationState) -> None:
    state.paused = False


def clone_for_evaluation(state: SimulationState) -> SimulationState:
    """Independent snapshot for scoring a candidate plan.

    Holds copies of the vehicles (distance and idle counters zeroed) and of
    the non-terminal orders only; no order source; clock continues from
    *state* and KPIs are measured from that point.
    """
    vehicles = []
    for v in state.vehicles:
        twin = copy.copy(v)
        twin.distance_traveled = 0.0
        twin.idle_time = 0.0
        vehicles.append(twin)

    clone = SimulationState(state.layout, vehicles, state.config, source=None, seed=state.seed)
    clone.orders = {
        oid: copy.copy(o) for oid, o in state.orders.items() if not o.status.is_terminal
    }
    clone.pending = [oid for oid in state.pending if oid in clone.orders]
    clone.plans = {vid: deque(route) for vid, route in state.plans.items()}
    clone.current_time = state.current_time
    clone.start_time = state.current_time
    clone.current_shift = state.current_shift
    clone.current_hour = state.current_hour
    clone.time_scale = state.time_scale
    return clone


def summary(state: SimulationState, snapshots: list[KPISnapshot]) -> str:
    """Human-readable run summary with trends and per-vehicle totals."""
    if not snapshots:
        return "No simulation data available."
    final = snapshots[-1]
    targets = state.targets
    trends = detect_trends(state.kpi_history)
    lines = [
        "===== SIMULATION SUMMARY =====",
        f"Duration: {state.elapsed / 60.0:.1f} hours",
        f"Total orders: {len(state.orders)} ({len(state.pending)} still pending)",
        "",
        "Final KPIs:",
        f"- Idle time: {final.idle_fraction * 100:.1f}% (target {targets.idle_fraction * 100:.1f}%)",
        f"- Utilization: {final.utilization * 100:.1f}% (target {targets.utilization * 100:.1f}%)",
        f"- On-time delivery: {final.on_time_fraction * 100:.1f}% "
        f"(target {targets.on_time_fraction * 100:.1f}%)",
        "",
        "Trends:",
        f"- Idle time: {trends['idle']}",
        f"- Utilization: {trends['utilization']}",
        f"- On-time delivery: {trends['on_time']}",
        "",
        "Vehicles:",
    ]
    for v in state.vehicles:
        lines.append(
            f"- Vehicle {v.vehicle_id}: {v.tasks_completed} tasks, "
            f"{v.distance_traveled:.1f} m, {v.state.value}"
        )
    return "\n".join(lines)
