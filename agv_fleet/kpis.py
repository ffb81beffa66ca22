"""KPI scoring: snapshot computation, scalar fitness, history and reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

import numpy as np

from .enums import OrderStatus, VehicleState

if TYPE_CHECKING:
    from .config import SimConfig
    from .models import Order
    from .vehicle import Vehicle

TREND_WINDOW = 10
TREND_FLAT_SLOPE = 0.001


@dataclass(frozen=True)
class KPISnapshot:
    idle_fraction: float
    active_vehicles: int
    utilization: float
    on_time_fraction: float
    total_orders: int
    completed_orders: int
    late_orders: int
    average_completion_time: float
    total_distance: float
    throughput_per_hour: float
    distance_per_order: float
    elapsed: float
    shift_on_time: dict[int, float] = field(default_factory=dict)


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def shift_of(time: float, shift_minutes: float = 720.0, shifts_per_day: int = 2) -> int:
    """1-based shift index of a simulated time in minutes."""
    return int(time // shift_minutes) % shifts_per_day + 1


def compute_kpis(
    vehicles: Iterable[Vehicle],
    orders: Iterable[Order],
    elapsed: float,
    shift_minutes: float = 720.0,
    shifts_per_day: int = 2,
) -> KPISnapshot:
    """Roll fleet and order state up into a :class:`KPISnapshot`. Pure."""
    vehicles = list(vehicles)
    orders = list(orders)
    fleet_size = len(vehicles)

    if elapsed > 0 and fleet_size:
        total_idle = sum(v.idle_time for v in vehicles)
        idle_fraction = _clamp(total_idle / (fleet_size * elapsed))
        utilization = sum(_clamp(1.0 - v.idle_time / elapsed) for v in vehicles) / fleet_size
    else:
        idle_fraction = 0.0
        utilization = 0.0
    active = sum(
        1 for v in vehicles if v.state not in (VehicleState.IDLE, VehicleState.CHARGING)
    )

    completed = sum(1 for o in orders if o.status == OrderStatus.COMPLETED)
    late = sum(1 for o in orders if o.status == OrderStatus.LATE)
    on_time = completed / (completed + late) if completed + late else 0.0

    durations = [o.completion_time - o.creation_time for o in orders if o.completion_time is not None]
    avg_completion = sum(durations) / len(durations) if durations else 0.0

    total_distance = sum(v.distance_traveled for v in vehicles)
    throughput = completed / elapsed * 60.0 if elapsed > 0 else 0.0
    per_order = total_distance / completed if completed else 0.0

    per_shift: dict[int, list[int]] = {s: [0, 0] for s in range(1, shifts_per_day + 1)}
    for o in orders:
        counts = per_shift[shift_of(o.creation_time, shift_minutes, shifts_per_day)]
        if o.status == OrderStatus.COMPLETED:
            counts[0] += 1
        elif o.status == OrderStatus.LATE:
            counts[1] += 1
    shift_on_time = {
        s: (c / (c + l) if c + l else 0.0) for s, (c, l) in per_shift.items()
    }

    return KPISnapshot(
        idle_fraction=idle_fraction,
        active_vehicles=active,
        utilization=utilization,
        on_time_fraction=on_time,
        total_orders=len(orders),
        completed_orders=completed,
        late_orders=late,
        average_completion_time=avg_completion,
        total_distance=total_distance,
        throughput_per_hour=throughput,
        distance_per_order=per_order,
        elapsed=elapsed,
        shift_on_time=shift_on_time,
    )


def fitness(kpis: KPISnapshot, weights: dict[str, float]) -> float:
    """Weighted sum of the clamped (1 - idle), utilization and on-time components.

    *weights* must already sum to 1; they are not normalised here.
    """
    components = {
        "idle": _clamp(1.0 - kpis.idle_fraction),
        "utilization": _clamp(kpis.utilization),
        "on_time": _clamp(kpis.on_time_fraction),
    }
    return sum(weights[name] * value for name, value in components.items())


def target_kpis(config: SimConfig, fleet_size: int) -> KPISnapshot:
    """Operational targets expressed as a snapshot, for reports."""
    return KPISnapshot(
        idle_fraction=config.target_idle,
        active_vehicles=int(round(fleet_size * config.target_utilization)),
        utilization=config.target_utilization,
        on_time_fraction=config.target_on_time,
        total_orders=0,
        completed_orders=0,
        late_orders=0,
        average_completion_time=config.target_completion_minutes,
        total_distance=0.0,
        throughput_per_hour=0.0,
        distance_per_order=0.0,
        elapsed=0.0,
        shift_on_time={s: config.target_on_time for s in range(1, config.shifts_per_day + 1)},
    )


@dataclass
class KPIHistory:
    timestamps: list[float] = field(default_factory=list)
    idle_fractions: list[float] = field(default_factory=list)
    utilizations: list[float] = field(default_factory=list)
    on_time_fractions: list[float] = field(default_factory=list)
    throughputs: list[float] = field(default_factory=list)
    shift_on_time: dict[int, list[float]] = field(default_factory=dict)

    def record(self, time: float, kpis: KPISnapshot) -> None:
        self.timestamps.append(time)
        self.idle_fractions.append(kpis.idle_fraction)
        self.utilizations.append(kpis.utilization)
        self.on_time_fractions.append(kpis.on_time_fraction)
        self.throughputs.append(kpis.throughput_per_hour)
        for shift, value in kpis.shift_on_time.items():
            self.shift_on_time.setdefault(shift, []).append(value)

    def __len__(self) -> int:
        return len(self.timestamps)


def _classify(slope: float) -> str:
    if abs(slope) < TREND_FLAT_SLOPE:
        return "stable"
    return "improving" if slope > 0 else "declining"


def detect_trends(history: KPIHistory, window: int = TREND_WINDOW) -> dict[str, str]:
    """Least-squares slope of the last *window* samples of each headline KPI."""
    if len(history) < window:
        return {"idle": "stable", "utilization": "stable", "on_time": "stable"}

    x = np.arange(1, window + 1, dtype=float)

    def slope(series: list[float]) -> float:
        return float(np.polyfit(x, np.asarray(series[-window:], dtype=float), 1)[0])

    return {
        # falling idle time is an improvement
        "idle": _classify(-slope(history.idle_fractions)),
        "utilization": _classify(slope(history.utilizations)),
        "on_time": _classify(slope(history.on_time_fractions)),
    }


def format_report(kpis: KPISnapshot, targets: KPISnapshot, fleet_size: int) -> str:
    """Plain-text KPI report against *targets*."""
    lines = [
        "===== WAREHOUSE KPI REPORT =====",
        "",
        "Vehicle performance:",
        f"- Idle time: {kpis.idle_fraction * 100:.1f}% (target {targets.idle_fraction * 100:.1f}%)",
        f"- Active vehicles: {kpis.active_vehicles}/{fleet_size}",
        f"- Utilization: {kpis.utilization * 100:.1f}% (target {targets.utilization * 100:.1f}%)",
        "",
        "Order performance:",
        f"- On-time delivery: {kpis.on_time_fraction * 100:.1f}% "
        f"(target {targets.on_time_fraction * 100:.1f}%)",
        f"- Total orders: {kpis.total_orders}",
        f"- Completed on time: {kpis.completed_orders}",
        f"- Late: {kpis.late_orders}",
        f"- Average completion time: {kpis.average_completion_time:.1f} min",
        "",
        "Efficiency:",
        f"- Orders per hour: {kpis.throughput_per_hour:.1f}",
        f"- Total distance: {kpis.total_distance:.1f} m",
        f"- Distance per order: {kpis.distance_per_order:.2f} m",
        "",
        "Shift performance:",
    ]
    for shift, value in sorted(kpis.shift_on_time.items()):
        lines.append(f"- Shift {shift}: {value * 100:.1f}% on-time")
    lines.append("")
    lines.append(f"Simulated time: {kpis.elapsed / 60.0:.1f} h")
    return "\n".join(lines)
