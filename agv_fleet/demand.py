"""Order generation from hour-of-shift demand patterns.

Arrivals per window are Poisson distributed. All randomness comes from the
generator's own ``numpy.random.Generator`` so a seed reproduces the stream.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace

import numpy as np

from .config import DemandConfig
from .enums import ItemClass, Priority
from .layout import nearest_slot
from .models import Layout, Order

logger = logging.getLogger(__name__)

_SCENARIO_CHUNK_MINUTES = 5.0


class OrderGenerator:
    """Produces order records for successive time windows."""

    def __init__(
        self,
        layout: Layout,
        config: DemandConfig,
        seed: int | None = None,
        start_id: int = 1,
    ) -> None:
        self.layout = layout
        self.config = config
        self.rng = np.random.default_rng(seed)
        self.next_order_id: int = start_id
        self.current_shift: int = 1
        self.current_hour: int = 1
        self.time_accumulator: float = 0.0

    def current_pattern(self) -> tuple[float, float, float]:
        """Return ``(base_rate, peak_multiplier, urgency_multiplier)`` for the current hour."""
        return self.config.patterns[self.current_shift][self.current_hour - 1]

    def orders_for_window(self, dt: float, now: float) -> list[Order]:
        """Draw the orders arriving during the *dt*-minute window ending at *now*."""
        base_rate, peak, urgency = self.current_pattern()
        expected = base_rate * peak * self.config.rate_factor * dt
        count = int(self.rng.poisson(expected)) if expected > 0 else 0
        orders = [self._make_order(now, urgency) for _ in range(count)]
        self._advance_clock(dt)
        if orders:
            logger.debug("[Demand] %d new orders at t=%.1f", len(orders), now)
        return orders

    def generate_orders(self, count: int, now: float = 0.0) -> list[Order]:
        """Produce exactly *count* orders created at *now*."""
        _, _, urgency = self.current_pattern()
        return [self._make_order(now, urgency) for _ in range(count)]

    def _advance_clock(self, dt: float) -> None:
        self.time_accumulator += dt
        while self.time_accumulator >= 60.0:
            self.time_accumulator -= 60.0
            self.current_hour += 1
            if self.current_hour > self.config.hours_per_shift:
                self.current_hour = 1
                self.current_shift = self.current_shift % self.config.shifts_per_day + 1

    # ------------------------------------------------------------------
    # Order attributes
    # ------------------------------------------------------------------

    def _order_size(self) -> int:
        r = self.rng.random()
        if r < self.config.small_order_prob:
            return int(self.rng.integers(1, 3))
        if r < self.config.small_order_prob + self.config.medium_order_prob:
            return int(self.rng.integers(3, 5))
        return 5

    def _priority(self, urgency_multiplier: float) -> Priority:
        urgent_prob = min(self.config.urgent_prob * urgency_multiplier, self.config.urgent_prob_cap)
        r = self.rng.random()
        if r < urgent_prob:
            return Priority.URGENT
        if r < urgent_prob + self.config.normal_prob:
            return Priority.NORMAL
        return Priority.LOW

    def _items(self, crates: int) -> tuple[tuple[ItemClass, int], ...]:
        counts: dict[ItemClass, int] = {}
        for _ in range(crates):
            r = self.rng.random()
            if r < self.config.item_a_prob:
                cls = ItemClass.A
            elif r < self.config.item_a_prob + self.config.item_b_prob:
                cls = ItemClass.B
            else:
                cls = ItemClass.C
            counts[cls] = counts.get(cls, 0) + 1
        return tuple(counts.items())

    def _make_order(self, now: float, urgency_multiplier: float) -> Order:
        order_id = self.next_order_id
        self.next_order_id += 1

        crates = self._order_size()
        items = self._items(crates)
        weight = crates * self.config.crate_weight_kg
        priority = self._priority(urgency_multiplier)
        deadline = now + self.config.deadline_minutes[priority.value]

        slot = nearest_slot(self.layout, items[0][0], weight)
        if slot is None:
            slot = self.layout.storage_slots[int(self.rng.integers(len(self.layout.storage_slots)))]

        return Order(
            order_id=order_id,
            items=items,
            total_weight=weight,
            total_crates=crates,
            priority=priority,
            creation_time=now,
            deadline=deadline,
            pickup_slot=slot.position,
        )


def scenario_orders(
    kind: str,
    hours: int,
    layout: Layout,
    config: DemandConfig,
    seed: int | None = None,
) -> list[Order]:
    """Pre-generate a whole scenario's orders in 5-minute windows.

    ``kind`` is ``"base"``, ``"peak_demand"`` (rate x ``peak_factor``) or ``"agv_failure"``
    (base demand; the caller runs it with fewer vehicles).
    """
    if kind == "peak_demand":
        config = replace(config, rate_factor=config.rate_factor * config.peak_factor)
    elif kind not in ("base", "agv_failure"):
        raise ValueError(f"Unknown scenario {kind!r}")

    generator = OrderGenerator(layout, config, seed=seed)
    total = hours * 60.0
    now = 0.0
    orders: list[Order] = []
    while now < total:
        dt = min(_SCENARIO_CHUNK_MINUTES, total - now)
        orders.extend(generator.orders_for_window(dt, now))
        now += dt
    return orders


class ScheduledOrders:
    """Replays a pre-generated order book, releasing each order at its creation time.

    Hands out copies so the book can be replayed after a reset.
    """

    def __init__(self, orders: list[Order]) -> None:
        self.book = sorted(orders, key=lambda o: (o.creation_time, o.order_id))
        self.cursor = 0

    def orders_for_window(self, dt: float, now: float) -> list[Order]:
        released = []
        while self.cursor < len(self.book) and self.book[self.cursor].creation_time <= now:
            released.append(copy.copy(self.book[self.cursor]))
            self.cursor += 1
        return released

    def rewind(self) -> None:
        self.cursor = 0

    def __len__(self) -> int:
        return len(self.book)
