"""Layout builder and distance primitives for the V-shaped warehouse."""

from __future__ import annotations

import logging
import math

from .config import WarehouseConfig
from .enums import ItemClass, Zone
from .models import Layout, StorageSlot

logger = logging.getLogger(__name__)


def build_layout(config: WarehouseConfig) -> Layout:
    """Create the warehouse geometry: slot catalogue, docks and chargers."""
    slots: list[StorageSlot] = []

    def put(x: int, y: int, zone: Zone, item_class: ItemClass) -> None:
        slots.append(StorageSlot(
            len(slots) + 1, (x, y), zone, config.slot_capacity_kg, 0.0, item_class,
        ))

    center_y = config.grid_height // 2
    left_start = 5
    right_end = config.grid_width - 5

    # 1. HIGH FREQUENCY – short blocks beside the input and output docks
    half = config.high_freq_slots // 2
    for i in range(1, half + 1):
        cls = ItemClass.A if i <= half // 2 else ItemClass.B
        put(left_start + i // 3, center_y + (i % 3) - 1, Zone.HIGH, cls)
    for i in range(1, half + 1):
        cls = ItemClass.A if i <= half // 2 else ItemClass.B
        put(right_end - i // 3, center_y + (i % 3) - 1, Zone.HIGH, cls)

    # 2. MEDIUM FREQUENCY – middle sections, five rows deep
    half = config.med_freq_slots // 2
    for i in range(1, half + 1):
        put(left_start + 10 + i // 2, center_y + ((i - 1) % 5) - 2, Zone.MEDIUM, ItemClass.B)
    for i in range(1, half + 1):
        put(right_end - 10 - i // 2, center_y + ((i - 1) % 5) - 2, Zone.MEDIUM, ItemClass.B)

    # 3. LOW FREQUENCY – the V in the centre, above the docks' row
    v_center_x = config.grid_width // 2
    half = config.low_freq_slots // 2
    for i in range(1, config.low_freq_slots + 1):
        if i <= half:
            x = v_center_x - 2 - i // 3
            y = center_y - 2 - ((i - 1) % 3)
        else:
            j = i - half
            x = v_center_x + 2 + j // 3
            y = center_y - 2 - ((j - 1) % 3)
        put(x, y, Zone.LOW, ItemClass.C)

    in_x, in_y = config.input_dock
    out_x, out_y = config.output_dock
    return Layout(
        dimensions=(config.width, config.height),
        grid_size=(config.grid_width, config.grid_height),
        storage_slots=tuple(slots),
        input_dock=config.input_dock,
        output_dock=config.output_dock,
        charging_stations=((in_x + 1, in_y), (out_x - 1, out_y)),
    )


def grid_distance(a: tuple[int, int], b: tuple[int, int]) -> int:
    """Manhattan distance between two grid cells."""
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def euclidean_distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    """Straight-line distance. Used for collision checks only."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def to_metres(cell: tuple[int, int], resolution: float) -> tuple[float, float]:
    return (cell[0] * resolution, cell[1] * resolution)


def to_cell(pos: tuple[float, float], resolution: float) -> tuple[int, int]:
    return (int(round(pos[0] / resolution)), int(round(pos[1] / resolution)))


def nearest_slot(
    layout: Layout,
    item_class: ItemClass,
    capacity_needed: float,
) -> StorageSlot | None:
    """Return the slot for *item_class* with enough free capacity closest to the input dock."""
    suitable = [
        s for s in layout.storage_slots
        if s.item_class == item_class and s.free_capacity >= capacity_needed
    ]
    if not suitable:
        return None
    return min(suitable, key=lambda s: grid_distance(layout.input_dock, s.position))


def verify_layout(layout: Layout) -> None:
    """Log slot counts per zone and dock distances at startup."""
    logger.info("--- Layout verification ---")
    logger.info("Grid: %dx%d cells", *layout.grid_size)
    for zone in Zone:
        count = sum(1 for s in layout.storage_slots if s.zone == zone)
        logger.info("  %s-frequency slots: %d", zone.value, count)
    logger.info(
        "  Input dock %s -> output dock %s: %d cells",
        layout.input_dock, layout.output_dock,
        grid_distance(layout.input_dock, layout.output_dock),
    )
    width, height = layout.grid_size
    outside = [
        s.slot_id for s in layout.storage_slots
        if not (0 <= s.position[0] < width and 0 <= s.position[1] < height)
    ]
    if outside:
        logger.warning("  Slots outside the grid: %s", outside)
    logger.info("--- End verification ---")
