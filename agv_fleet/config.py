"""Immutable configuration values threaded through the layout, vehicles, engine and optimizer.

Every tunable of the system lives here. Nothing at runtime reads
``constants.py`` directly; the constants only supply defaults.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace

from . import constants as C
from .errors import ConfigError

KPI_WEIGHT_KEYS = frozenset({"idle", "utilization", "on_time"})


def _require_positive(owner: str, **values: float) -> None:
    for name, value in values.items():
        if not value > 0:
            raise ConfigError(f"{owner}.{name} must be positive, got {value!r}")


@dataclass(frozen=True)
class WarehouseConfig:
    width: float = C.WAREHOUSE_WIDTH
    height: float = C.WAREHOUSE_HEIGHT
    resolution: float = C.GRID_RESOLUTION
    slot_capacity_kg: float = C.SLOT_CAPACITY_KG
    high_freq_slots: int = C.HIGH_FREQ_SLOTS
    med_freq_slots: int = C.MED_FREQ_SLOTS
    low_freq_slots: int = C.LOW_FREQ_SLOTS
    input_dock: tuple[int, int] = C.INPUT_DOCK_POS
    output_dock: tuple[int, int] = C.OUTPUT_DOCK_POS
    safety_cells: int = C.SAFETY_CELLS

    def __post_init__(self) -> None:
        _require_positive(
            "WarehouseConfig",
            width=self.width, height=self.height,
            resolution=self.resolution, slot_capacity_kg=self.slot_capacity_kg,
        )
        if self.safety_cells < 0:
            raise ConfigError("WarehouseConfig.safety_cells must be >= 0")
        for name, dock in (("input_dock", self.input_dock), ("output_dock", self.output_dock)):
            x, y = dock
            if not (0 <= x < self.grid_width and 0 <= y < self.grid_height):
                raise ConfigError(f"WarehouseConfig.{name} {dock} lies outside the grid")

    @property
    def grid_width(self) -> int:
        return int(round(self.width / self.resolution))

    @property
    def grid_height(self) -> int:
        return int(round(self.height / self.resolution))

    @property
    def safety_radius(self) -> float:
        """Euclidean separation (metres) below which two vehicles conflict."""
        return self.safety_cells * self.resolution


@dataclass(frozen=True)
class FleetConfig:
    capacity_kg: float = C.CAPACITY_KG
    capacity_crates: int = C.CAPACITY_CRATES
    speed: float = C.SPEED_M_PER_MIN
    max_work_minutes: float = C.MAX_WORK_MINUTES
    charge_rate: float = C.CHARGE_RATE
    low_budget_minutes: float = C.LOW_BUDGET_MINUTES
    task_buffer_minutes: float = C.TASK_BUFFER_MINUTES
    load_base_minutes: float = C.LOAD_BASE_MINUTES
    load_per_crate: float = C.LOAD_PER_CRATE
    unload_base_minutes: float = C.UNLOAD_BASE_MINUTES
    unload_per_crate: float = C.UNLOAD_PER_CRATE
    arrival_epsilon: float = C.ARRIVAL_EPSILON
    start_x: float = C.START_X
    start_spacing: float = C.START_SPACING

    def __post_init__(self) -> None:
        _require_positive(
            "FleetConfig",
            capacity_kg=self.capacity_kg, capacity_crates=self.capacity_crates,
            speed=self.speed, max_work_minutes=self.max_work_minutes,
            charge_rate=self.charge_rate, arrival_epsilon=self.arrival_epsilon,
        )
        if self.low_budget_minutes >= self.max_work_minutes:
            raise ConfigError(
                "FleetConfig.low_budget_minutes must be below max_work_minutes"
            )


@dataclass(frozen=True)
class DemandConfig:
    small_order_prob: float = C.SMALL_ORDER_PROB
    medium_order_prob: float = C.MEDIUM_ORDER_PROB
    urgent_prob: float = C.URGENT_ORDER_PROB
    normal_prob: float = C.NORMAL_ORDER_PROB
    urgent_prob_cap: float = C.URGENT_PROB_CAP
    item_a_prob: float = C.ITEM_A_PROB
    item_b_prob: float = C.ITEM_B_PROB
    crate_weight_kg: float = C.CRATE_WEIGHT_KG
    deadline_minutes: dict = field(default_factory=lambda: dict(C.DEADLINE_MINUTES))
    patterns: dict = field(default_factory=lambda: {k: list(v) for k, v in C.DEMAND_PATTERNS.items()})
    rate_factor: float = 1.0
    peak_factor: float = C.PEAK_DEMAND_FACTOR
    hours_per_shift: int = C.HOURS_PER_SHIFT
    shifts_per_day: int = C.SHIFTS_PER_DAY

    def __post_init__(self) -> None:
        _require_positive(
            "DemandConfig",
            hours_per_shift=self.hours_per_shift, shifts_per_day=self.shifts_per_day,
            peak_factor=self.peak_factor,
        )
        if self.small_order_prob + self.medium_order_prob > 1.0:
            raise ConfigError("DemandConfig order-size probabilities exceed 1")
        if self.item_a_prob + self.item_b_prob > 1.0:
            raise ConfigError("DemandConfig item-class probabilities exceed 1")
        if set(self.deadline_minutes) != {"urgent", "normal", "low"}:
            raise ConfigError("DemandConfig.deadline_minutes needs urgent/normal/low")
        for shift in range(1, self.shifts_per_day + 1):
            if len(self.patterns.get(shift, ())) < self.hours_per_shift:
                raise ConfigError(
                    f"DemandConfig.patterns[{shift}] needs {self.hours_per_shift} hourly entries"
                )
        if self.rate_factor < 0:
            raise ConfigError("DemandConfig.rate_factor must be >= 0")


@dataclass(frozen=True)
class SimConfig:
    """Everything the engine needs: geometry, fleet, shifts, dispatch scoring, targets."""

    warehouse: WarehouseConfig = field(default_factory=WarehouseConfig)
    fleet: FleetConfig = field(default_factory=FleetConfig)
    demand: DemandConfig = field(default_factory=DemandConfig)
    shift_hours: int = C.HOURS_PER_SHIFT
    shifts_per_day: int = C.SHIFTS_PER_DAY
    handoff_minutes: float = C.SHIFT_HANDOFF_MINUTES
    handoff_budget_minutes: float = C.HANDOFF_BUDGET_MINUTES
    urgency_bonus: float = C.DISPATCH_URGENCY_BONUS
    utilization_weight: float = C.DISPATCH_UTILIZATION_W
    distance_norm: float = C.DISPATCH_DISTANCE_NORM
    target_idle: float = C.TARGET_IDLE_FRACTION
    target_utilization: float = C.TARGET_UTILIZATION
    target_on_time: float = C.TARGET_ON_TIME
    target_completion_minutes: float = C.TARGET_COMPLETION_MINUTES
    time_scale: float = 1.0
    max_pending_age: float | None = None

    def __post_init__(self) -> None:
        _require_positive(
            "SimConfig",
            shift_hours=self.shift_hours, shifts_per_day=self.shifts_per_day,
            distance_norm=self.distance_norm, time_scale=self.time_scale,
        )
        if self.handoff_minutes < 0:
            raise ConfigError("SimConfig.handoff_minutes must be >= 0")
        if self.max_pending_age is not None and self.max_pending_age <= 0:
            raise ConfigError("SimConfig.max_pending_age must be positive or None")
        demand = self.demand
        if (demand.hours_per_shift, demand.shifts_per_day) != (self.shift_hours, self.shifts_per_day):
            # the order generator keeps its own hour/shift pointer in step with the engine
            object.__setattr__(self, "demand", replace(
                demand, hours_per_shift=self.shift_hours, shifts_per_day=self.shifts_per_day,
            ))

    @property
    def shift_minutes(self) -> float:
        return self.shift_hours * 60.0


@dataclass(frozen=True)
class VNSConfig:
    max_outer_iterations: int = C.VNS_MAX_OUTER_ITERATIONS
    max_no_improvement: int = C.VNS_MAX_NO_IMPROVEMENT
    shaking_intensities: tuple[int, ...] = C.VNS_SHAKING_INTENSITIES
    kpi_weights: dict = field(default_factory=lambda: dict(C.DEFAULT_KPI_WEIGHTS))
    local_search_passes: int = C.VNS_LOCAL_SEARCH_PASSES
    local_search_k: tuple[int, ...] = C.VNS_LOCAL_SEARCH_K
    evaluation_horizon: float = C.VNS_EVALUATION_HORIZON
    distance_weight: float = C.VNS_DISTANCE_WEIGHT
    balance_weight: float = C.VNS_BALANCE_WEIGHT
    urgency_weight: float = C.VNS_URGENCY_WEIGHT
    urgency_bonus: float = C.VNS_URGENCY_BONUS
    distance_scale: float = C.VNS_DISTANCE_SCALE
    balance_scale: float = C.VNS_BALANCE_SCALE
    seed: int | None = None
    workers: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "shaking_intensities", tuple(self.shaking_intensities))
        object.__setattr__(self, "local_search_k", tuple(self.local_search_k))
        self.validate()

    def validate(self) -> None:
        """Reject malformed settings before any search starts."""
        keys = set(self.kpi_weights)
        if keys != KPI_WEIGHT_KEYS:
            raise ConfigError(
                f"VNSConfig.kpi_weights keys must be {sorted(KPI_WEIGHT_KEYS)}, got {sorted(keys)}"
            )
        if any(w < 0 for w in self.kpi_weights.values()):
            raise ConfigError(f"VNSConfig.kpi_weights must be non-negative: {self.kpi_weights}")
        total = sum(self.kpi_weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ConfigError(f"VNSConfig.kpi_weights must sum to 1, got {total}")

        if not self.shaking_intensities:
            raise ConfigError("VNSConfig.shaking_intensities must not be empty")
        if any(k <= 0 for k in self.shaking_intensities):
            raise ConfigError("VNSConfig.shaking_intensities must be positive")
        if any(b <= a for a, b in zip(self.shaking_intensities, self.shaking_intensities[1:])):
            raise ConfigError(
                f"VNSConfig.shaking_intensities must be ascending: {self.shaking_intensities}"
            )
        if not self.local_search_k or any(k <= 0 for k in self.local_search_k):
            raise ConfigError("VNSConfig.local_search_k must hold positive intensities")

        _require_positive(
            "VNSConfig",
            max_outer_iterations=self.max_outer_iterations,
            max_no_improvement=self.max_no_improvement,
            local_search_passes=self.local_search_passes,
            evaluation_horizon=self.evaluation_horizon,
            distance_scale=self.distance_scale,
            balance_scale=self.balance_scale,
            workers=self.workers,
        )
