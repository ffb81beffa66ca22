"""Data models: Order, StorageSlot and Layout."""

from __future__ import annotations

from dataclasses import dataclass, field

from .enums import ItemClass, OrderStatus, Priority, Zone
from .errors import InvariantViolation


@dataclass
class Order:
    """A pick-and-deliver order: collect at ``pickup_slot``, drop at the output dock."""

    order_id: int
    items: tuple[tuple[ItemClass, int], ...]
    total_weight: float
    total_crates: int
    priority: Priority
    creation_time: float
    deadline: float
    pickup_slot: tuple[int, int]
    status: OrderStatus = OrderStatus.PENDING
    assigned_vehicle: int | None = None
    completion_time: float | None = None

    def __post_init__(self) -> None:
        classes = [cls for cls, _ in self.items]
        if len(classes) != len(set(classes)):
            raise ValueError(f"Order {self.order_id}: item classes must be unique, got {classes}")

    @property
    def primary_class(self) -> ItemClass:
        return self.items[0][0]

    def _require(self, *allowed: OrderStatus) -> None:
        if self.status not in allowed:
            raise InvariantViolation(
                f"Order {self.order_id}: illegal transition from {self.status.value}"
            )

    def mark_assigned(self, vehicle_id: int) -> None:
        self._require(OrderStatus.PENDING)
        self.status = OrderStatus.ASSIGNED
        self.assigned_vehicle = vehicle_id

    def mark_in_progress(self) -> None:
        self._require(OrderStatus.ASSIGNED)
        self.status = OrderStatus.IN_PROGRESS

    def finish(self, now: float) -> None:
        """Close the order at *now*: completed if on time, otherwise late."""
        self._require(OrderStatus.IN_PROGRESS)
        self.status = OrderStatus.COMPLETED if now <= self.deadline else OrderStatus.LATE
        self.completion_time = now

    def requeue(self) -> None:
        """Return an in-flight order to the pending pool (forced yield, shift handoff)."""
        self._require(OrderStatus.PENDING, OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS)
        self.status = OrderStatus.PENDING
        self.assigned_vehicle = None

    def abandon(self) -> None:
        """Give up on a pending order that waited too long. Counts as late."""
        self._require(OrderStatus.PENDING)
        self.status = OrderStatus.LATE


@dataclass(frozen=True)
class StorageSlot:
    """One storage location, in grid coordinates."""

    slot_id: int
    position: tuple[int, int]
    zone: Zone
    capacity: float
    current_load: float
    item_class: ItemClass

    @property
    def free_capacity(self) -> float:
        return self.capacity - self.current_load


@dataclass(frozen=True)
class Layout:
    """Read-only warehouse geometry."""

    dimensions: tuple[float, float]
    grid_size: tuple[int, int]
    storage_slots: tuple[StorageSlot, ...]
    input_dock: tuple[int, int]
    output_dock: tuple[int, int]
    charging_stations: tuple[tuple[int, int], ...] = field(default=())
