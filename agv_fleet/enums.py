from enum import Enum


class VehicleState(Enum):
    IDLE        = "idle"
    MOVING      = "moving"
    LOADING     = "loading"
    UNLOADING   = "unloading"
    CHARGING    = "charging"
    MAINTENANCE = "maintenance"


class OrderStatus(Enum):
    PENDING     = "pending"
    ASSIGNED    = "assigned"       # vehicle on its outbound leg
    IN_PROGRESS = "in_progress"    # picked up, heading to the output dock
    COMPLETED   = "completed"
    LATE        = "late"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.LATE)


class Priority(Enum):
    URGENT = "urgent"
    NORMAL = "normal"
    LOW    = "low"

    @property
    def rank(self) -> int:
        """Sort key: urgent < normal < low."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.URGENT: 0, Priority.NORMAL: 1, Priority.LOW: 2}


class ItemClass(Enum):
    A = "A"     # high-demand items
    B = "B"
    C = "C"     # low-demand items


class Zone(Enum):
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"
