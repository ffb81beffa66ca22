"""Occupancy grid and pairwise conflict resolution.

Planning distances are Manhattan; safety checks here are Euclidean between
vehicle centres.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from .enums import Priority
from .layout import euclidean_distance, to_cell

if TYPE_CHECKING:
    from .config import WarehouseConfig
    from .models import Order
    from .vehicle import Vehicle

logger = logging.getLogger(__name__)


def new_occupancy_grid(config: WarehouseConfig) -> np.ndarray:
    return np.zeros((config.grid_width, config.grid_height), dtype=bool)


def rebuild_occupancy(
    grid: np.ndarray,
    vehicles: list[Vehicle],
    config: WarehouseConfig,
) -> None:
    """Mark every vehicle's cell and its ``safety_cells`` neighbourhood, clipped to the grid."""
    grid.fill(False)
    width, height = grid.shape
    reach = config.safety_cells
    for v in vehicles:
        cx, cy = to_cell(v.position, config.resolution)
        x0, x1 = max(cx - reach, 0), min(cx + reach + 1, width)
        y0, y1 = max(cy - reach, 0), min(cy + reach + 1, height)
        if x0 < x1 and y0 < y1:
            grid[x0:x1, y0:y1] = True


def task_rank(vehicle: Vehicle, orders: dict[int, Order]) -> int:
    """2 for an urgent task, 1 for any other task, 0 without a task."""
    if vehicle.current_task is None:
        return 0
    return 2 if orders[vehicle.current_task].priority == Priority.URGENT else 1


def pick_yielder(a: Vehicle, b: Vehicle, orders: dict[int, Order]) -> Vehicle:
    """Return the vehicle that gives way: lower task rank, then the larger id."""
    rank_a, rank_b = task_rank(a, orders), task_rank(b, orders)
    if rank_a != rank_b:
        return a if rank_a < rank_b else b
    return a if a.vehicle_id > b.vehicle_id else b


def resolve_conflicts(
    vehicles: list[Vehicle],
    orders: dict[int, Order],
    config: WarehouseConfig,
) -> list[tuple[Vehicle, Order]]:
    """Check every pair once; the yielding vehicle drops to Idle and releases its task.

    Only pairs where both vehicles hold a task are resolved. Returns the
    ``(vehicle, released order)`` pairs so the caller can requeue the orders.
    """
    radius = config.safety_radius
    released: list[tuple[Vehicle, Order]] = []
    for i, first in enumerate(vehicles):
        for second in vehicles[i + 1:]:
            if first.current_task is None or second.current_task is None:
                continue
            if euclidean_distance(first.position, second.position) >= radius:
                continue
            loser = pick_yielder(first, second, orders)
            winner = second if loser is first else first
            order = loser.release_task(orders)
            if order is not None:
                released.append((loser, order))
            logger.debug(
                "[Collision] Vehicle %d yields to vehicle %d at %s",
                loser.vehicle_id, winner.vehicle_id, loser.position,
            )
    return released
