"""Vehicle (AGV) state machine and axis-aligned motion model."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from .enums import OrderStatus, VehicleState
from .errors import InvariantViolation
from .layout import grid_distance, to_cell, to_metres

if TYPE_CHECKING:
    from .config import SimConfig
    from .models import Order

logger = logging.getLogger(__name__)

_TASK_STATES = (VehicleState.MOVING, VehicleState.LOADING, VehicleState.UNLOADING)


class Vehicle:
    """An automated guided vehicle carrying at most one order at a time.

    Positions are in metres. Orders are referenced by id; the owning
    simulation state holds the ``{order_id: Order}`` arena.
    """

    def __init__(self, vehicle_id: int, pos: tuple[float, float], config: SimConfig) -> None:
        self.vehicle_id: int = vehicle_id
        self.config: SimConfig = config
        self.position: tuple[float, float] = pos
        self.load_kg: float = 0.0
        self.crate_count: int = 0
        self.state: VehicleState = VehicleState.IDLE
        self.target: tuple[float, float] | None = None
        self.current_task: int | None = None
        self.work_time_remaining: float = config.fleet.max_work_minutes
        self.distance_traveled: float = 0.0
        self.idle_time: float = 0.0
        self.tasks_completed: int = 0
        self.last_update_time: float = 0.0

    def __repr__(self) -> str:
        return (
            f"Vehicle({self.vehicle_id}, pos={self.position}, state={self.state.value}, "
            f"task={self.current_task})"
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def estimate_task_time(self, order: Order) -> float:
        """Minutes to drive to the pickup, load, drive to the output dock and unload."""
        fleet = self.config.fleet
        resolution = self.config.warehouse.resolution
        pickup_dist = grid_distance(to_cell(self.position, resolution), order.pickup_slot)
        output_dist = grid_distance(order.pickup_slot, self.config.warehouse.output_dock)
        travel = (pickup_dist + output_dist) * resolution / fleet.speed
        loading = fleet.load_base_minutes + order.total_crates * fleet.load_per_crate
        unloading = fleet.unload_base_minutes + order.total_crates * fleet.unload_per_crate
        return travel + loading + unloading

    def can_accept(self, order: Order) -> bool:
        """Return ``True`` if *order* fits this vehicle's capacity, state and work budget."""
        fleet = self.config.fleet
        if self.load_kg + order.total_weight > fleet.capacity_kg:
            return False
        if self.crate_count + order.total_crates > fleet.capacity_crates:
            return False
        if self.state in (VehicleState.CHARGING, VehicleState.MAINTENANCE):
            return False
        if self.current_task is not None:
            return False
        needed = self.estimate_task_time(order) + fleet.task_buffer_minutes
        return self.work_time_remaining >= needed

    def utilization(self, elapsed: float) -> float:
        """Fraction of *elapsed* minutes this vehicle was not idle."""
        if elapsed <= 0:
            return 0.0
        return (elapsed - self.idle_time) / elapsed

    # ------------------------------------------------------------------
    # Task transitions
    # ------------------------------------------------------------------

    def assign(self, order: Order) -> None:
        """Idle -> Moving towards *order*'s pickup slot."""
        if self.current_task is not None:
            raise InvariantViolation(
                f"Vehicle {self.vehicle_id} already holds order {self.current_task}"
            )
        order.mark_assigned(self.vehicle_id)
        self.current_task = order.order_id
        self.target = to_metres(order.pickup_slot, self.config.warehouse.resolution)
        self.state = VehicleState.MOVING

    def commit_pickup(self, order: Order) -> None:
        """Loading -> Moving: take the crates on board and head for the output dock."""
        fleet = self.config.fleet
        load = self.load_kg + order.total_weight
        crates = self.crate_count + order.total_crates
        if load > fleet.capacity_kg or crates > fleet.capacity_crates:
            raise InvariantViolation(
                f"Vehicle {self.vehicle_id}: load {load}kg/{crates} crates exceeds capacity "
                f"{fleet.capacity_kg}kg/{fleet.capacity_crates} crates"
            )
        self.load_kg = load
        self.crate_count = crates
        order.mark_in_progress()
        self.target = to_metres(self.config.warehouse.output_dock, self.config.warehouse.resolution)
        self.state = VehicleState.MOVING

    def commit_delivery(self, order: Order, now: float) -> None:
        """Unloading -> Idle: hand over the crates and close the order."""
        order.finish(now)
        self.load_kg = 0.0
        self.crate_count = 0
        self.tasks_completed += 1
        self.current_task = None
        self.state = VehicleState.IDLE

    def release_task(self, orders: dict[int, Order]) -> Order | None:
        """Drop the current task (and any load) and return the order to pending.

        The vehicle ends Idle with no target. Returns the released order.
        """
        order = orders.get(self.current_task) if self.current_task is not None else None
        if order is not None:
            order.requeue()
        self.current_task = None
        self.target = None
        self.load_kg = 0.0
        self.crate_count = 0
        self.state = VehicleState.IDLE
        return order

    def start_charging(self) -> None:
        self.state = VehicleState.CHARGING
        self.target = None

    # ------------------------------------------------------------------
    # Time step
    # ------------------------------------------------------------------

    def update(self, dt: float, orders: dict[int, Order]) -> None:
        """Advance position or charge/idle counters by *dt* minutes."""
        fleet = self.config.fleet

        if self.state == VehicleState.MOVING:
            if self.target is None:
                self.state = VehicleState.IDLE
            else:
                if self._advance(fleet.speed * dt):
                    self.target = None
                    self.state = self._arrival_state(orders)
                self.work_time_remaining -= dt

        elif self.state == VehicleState.IDLE:
            self.idle_time += dt
            if self.work_time_remaining < fleet.low_budget_minutes:
                self.start_charging()
                logger.debug("[Vehicle] %d charging (%.1f min left)",
                             self.vehicle_id, self.work_time_remaining)

        elif self.state == VehicleState.CHARGING:
            self.work_time_remaining += dt * fleet.charge_rate
            self.idle_time += dt
            if self.work_time_remaining >= fleet.max_work_minutes:
                self.work_time_remaining = fleet.max_work_minutes
                self.state = VehicleState.IDLE

        self.last_update_time += dt

    def _advance(self, budget: float) -> bool:
        """Spend *budget* metres: x axis first, then y. Returns ``True`` on arrival."""
        eps = self.config.fleet.arrival_epsilon
        x, y = self.position
        tx, ty = self.target

        if abs(tx - x) + abs(ty - y) < eps:
            self.position = (tx, ty)
            return True

        dx = tx - x
        if abs(dx) <= eps:
            x = tx
        else:
            step = min(budget, abs(dx))
            budget -= step
            self.distance_traveled += step
            x = tx if step == abs(dx) else x + math.copysign(step, dx)

        if x == tx and budget > 0:
            dy = ty - y
            if abs(dy) <= eps:
                y = ty
            else:
                step = min(budget, abs(dy))
                self.distance_traveled += step
                y = ty if step == abs(dy) else y + math.copysign(step, dy)

        if x == tx and abs(ty - y) <= eps:
            self.position = (tx, ty)
            return True
        self.position = (x, y)
        return False

    def _arrival_state(self, orders: dict[int, Order]) -> VehicleState:
        if self.current_task is None:
            return VehicleState.IDLE
        order = orders[self.current_task]
        if order.status == OrderStatus.ASSIGNED:
            return VehicleState.LOADING
        if order.status == OrderStatus.IN_PROGRESS:
            return VehicleState.UNLOADING
        return VehicleState.IDLE

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def check_invariants(self, orders: dict[int, Order]) -> None:
        """Raise :class:`InvariantViolation` if the vehicle's state is inconsistent."""
        fleet = self.config.fleet
        if self.load_kg > fleet.capacity_kg or self.crate_count > fleet.capacity_crates:
            raise InvariantViolation(
                f"Vehicle {self.vehicle_id}: load {self.load_kg}kg/{self.crate_count} crates "
                f"over capacity"
            )
        if (self.target is not None) != (self.state == VehicleState.MOVING):
            raise InvariantViolation(
                f"Vehicle {self.vehicle_id}: target {self.target} in state {self.state.value}"
            )
        if self.current_task is not None:
            order = orders.get(self.current_task)
            if (
                self.state not in _TASK_STATES
                or order is None
                or order.assigned_vehicle != self.vehicle_id
            ):
                raise InvariantViolation(
                    f"Vehicle {self.vehicle_id}: dangling task {self.current_task} "
                    f"in state {self.state.value}"
                )
        elif self.state in _TASK_STATES:
            raise InvariantViolation(
                f"Vehicle {self.vehicle_id}: {self.state.value} without a task"
            )
