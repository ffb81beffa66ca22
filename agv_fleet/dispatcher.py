"""Dispatcher: matches pending orders to vehicles each tick."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .enums import OrderStatus, Priority, VehicleState
from .layout import grid_distance, to_cell

if TYPE_CHECKING:
    from .config import SimConfig
    from .engine import SimulationState
    from .models import Order
    from .vehicle import Vehicle

logger = logging.getLogger(__name__)


def dispatch_key(order: Order) -> tuple[int, float]:
    """Queue order: urgent before normal before low, then earliest deadline."""
    return (order.priority.rank, order.deadline)


class Dispatcher:
    """Assigns pending orders greedily, or from per-vehicle plans when a plan is installed."""

    def __init__(self, config: SimConfig) -> None:
        self.config = config

    def score(self, vehicle: Vehicle, order: Order, elapsed: float) -> float:
        """Urgency bonus + bonus for less-utilized vehicles - normalised pickup distance."""
        resolution = self.config.warehouse.resolution
        distance = grid_distance(to_cell(vehicle.position, resolution), order.pickup_slot)
        urgency = self.config.urgency_bonus if order.priority == Priority.URGENT else 0.0
        utilization = (1.0 - vehicle.utilization(elapsed)) * self.config.utilization_weight
        return urgency + utilization - distance / self.config.distance_norm

    def _best_vehicle(
        self,
        order: Order,
        vehicles: list[Vehicle],
        elapsed: float,
    ) -> Vehicle | None:
        best: Vehicle | None = None
        best_score = float("-inf")
        for vehicle in vehicles:
            if not vehicle.can_accept(order):
                continue
            s = self.score(vehicle, order, elapsed)
            if s > best_score:
                best_score = s
                best = vehicle
        return best

    def assign(self, state: SimulationState) -> list[tuple[int, int]]:
        """Run one assignment round. Returns ``(order_id, vehicle_id)`` pairs made."""
        made: list[tuple[int, int]] = []
        planned: set[int] = set()
        free = state.vehicles
        if state.plans:
            made.extend(self._assign_planned(state))
            for route in state.plans.values():
                planned.update(route)
            free = [v for v in state.vehicles if not state.plans.get(v.vehicle_id)]
        made.extend(self._assign_greedy(state, free, planned))
        return made

    def _assign_greedy(
        self,
        state: SimulationState,
        vehicles: list[Vehicle],
        skip: set[int],
    ) -> list[tuple[int, int]]:
        orders = state.orders
        state.pending.sort(key=lambda oid: dispatch_key(orders[oid]))
        elapsed = state.elapsed
        made: list[tuple[int, int]] = []
        remaining: list[int] = []
        for oid in state.pending:
            order = orders[oid]
            vehicle = None if oid in skip else self._best_vehicle(order, vehicles, elapsed)
            if vehicle is None:
                remaining.append(oid)
                continue
            vehicle.assign(order)
            made.append((oid, vehicle.vehicle_id))
            logger.debug(
                "[Dispatcher] Vehicle %d assigned order #%d (%s) -> slot %s",
                vehicle.vehicle_id, oid, order.priority.value, order.pickup_slot,
            )
        state.pending = remaining
        return made

    def _assign_planned(self, state: SimulationState) -> list[tuple[int, int]]:
        """Give each vehicle the head of its route once it can take it.

        An idle vehicle that cannot afford its head goes to charge and the
        head drops out of the plan, so greedy dispatch can hand it to a
        vehicle without a plan.
        """
        orders = state.orders
        made: list[tuple[int, int]] = []
        for vehicle in state.vehicles:
            route = state.plans.get(vehicle.vehicle_id)
            while route:
                order = orders.get(route[0])
                if order is None or order.status != OrderStatus.PENDING:
                    route.popleft()
                    continue
                if vehicle.can_accept(order):
                    route.popleft()
                    vehicle.assign(order)
                    state.pending.remove(order.order_id)
                    made.append((order.order_id, vehicle.vehicle_id))
                    logger.debug(
                        "[Dispatcher] Vehicle %d takes planned order #%d",
                        vehicle.vehicle_id, order.order_id,
                    )
                elif vehicle.state == VehicleState.IDLE and vehicle.current_task is None:
                    # an idle, empty vehicle only refuses for lack of work time
                    route.popleft()
                    vehicle.start_charging()
                    logger.debug(
                        "[Dispatcher] Vehicle %d too low to take planned order #%d, charging",
                        vehicle.vehicle_id, order.order_id,
                    )
                break
        return made

    def requeue(self, state: SimulationState, order: Order, vehicle_id: int) -> None:
        """Put a released order back in the pending queue (and at the head of its route)."""
        state.pending.append(order.order_id)
        route = state.plans.get(vehicle_id)
        if route is not None:
            route.appendleft(order.order_id)

    def abandon_stale(self, state: SimulationState) -> list[int]:
        """Mark pending orders older than ``max_pending_age`` as late. Returns their ids."""
        max_age = self.config.max_pending_age
        if max_age is None:
            return []
        stale = [
            oid for oid in state.pending
            if state.current_time - state.orders[oid].creation_time > max_age
        ]
        for oid in stale:
            state.orders[oid].abandon()
            state.pending.remove(oid)
            for route in state.plans.values():
                if oid in route:
                    route.remove(oid)
            logger.info("[Dispatcher] Order #%d abandoned after %.0f min", oid, max_age)
        return stale
