"""
AGV fleet simulation package.

Public API re-exports.
"""

from .enums import VehicleState, OrderStatus, Priority, ItemClass, Zone
from .errors import ConfigError, InvariantViolation
from .config import WarehouseConfig, FleetConfig, DemandConfig, SimConfig, VNSConfig
from .models import Order, StorageSlot, Layout
from .layout import (
    build_layout, nearest_slot, grid_distance, euclidean_distance, verify_layout,
)
from .demand import OrderGenerator, ScheduledOrders, scenario_orders
from .vehicle import Vehicle
from .dispatcher import Dispatcher
from .kpis import KPISnapshot, KPIHistory, compute_kpis, fitness, detect_trends, format_report
from .engine import (
    SimulationState, create_state, add_orders, advance, run, reset,
    pause, resume, clone_for_evaluation, summary,
)
from .vns import VNSSolution, VNSSolver, optimize, apply_solution
from .headless import run_headless

__all__ = [
    "VehicleState", "OrderStatus", "Priority", "ItemClass", "Zone",
    "ConfigError", "InvariantViolation",
    "WarehouseConfig", "FleetConfig", "DemandConfig", "SimConfig", "VNSConfig",
    "Order", "StorageSlot", "Layout",
    "build_layout", "nearest_slot", "grid_distance", "euclidean_distance", "verify_layout",
    "OrderGenerator", "ScheduledOrders", "scenario_orders",
    "Vehicle",
    "Dispatcher",
    "KPISnapshot", "KPIHistory", "compute_kpis", "fitness", "detect_trends", "format_report",
    "SimulationState", "create_state", "add_orders", "advance", "run", "reset",
    "pause", "resume", "clone_for_evaluation", "summary",
    "VNSSolution", "VNSSolver", "optimize", "apply_solution",
    "run_headless",
]
