"""
Tests for the warehouse layout, distance helpers and the order source.
"""

import logging

import pytest

from agv_fleet import (
    DemandConfig, ItemClass, OrderGenerator, Priority, ScheduledOrders, WarehouseConfig,
    Zone, build_layout, euclidean_distance, grid_distance, nearest_slot,
    scenario_orders, verify_layout,
)
from agv_fleet.layout import to_cell, to_metres


# -- Helpers ----------------------------------------------------------

LAYOUT = build_layout(WarehouseConfig())


def _signature(orders):
    return [
        (o.order_id, o.items, o.total_weight, o.priority, o.creation_time, o.deadline,
         o.pickup_slot)
        for o in orders
    ]


# -- Layout -----------------------------------------------------------

def test_slot_catalogue():
    slots = LAYOUT.storage_slots
    assert len(slots) == 200
    assert sum(1 for s in slots if s.zone == Zone.HIGH) == 80
    assert sum(1 for s in slots if s.zone == Zone.MEDIUM) == 80
    assert sum(1 for s in slots if s.zone == Zone.LOW) == 40
    assert all(s.item_class == ItemClass.C for s in slots if s.zone == Zone.LOW)
    assert len({s.slot_id for s in slots}) == 200
    width, height = LAYOUT.grid_size
    assert (width, height) == (40, 20)
    assert all(0 <= s.position[0] < width and 0 <= s.position[1] < height for s in slots)


def test_docks_and_chargers():
    assert LAYOUT.input_dock == (2, 10)
    assert LAYOUT.output_dock == (38, 10)
    assert LAYOUT.charging_stations == ((3, 10), (37, 10))
    assert LAYOUT.dimensions == (10.0, 5.0)


def test_distances():
    assert grid_distance((0, 0), (3, 4)) == 7
    assert grid_distance((3, 4), (0, 0)) == 7
    assert euclidean_distance((0.0, 0.0), (3.0, 4.0)) == 5.0


def test_cell_metre_conversion():
    assert to_metres((8, 15), 0.25) == (2.0, 3.75)
    assert to_cell((2.0, 3.75), 0.25) == (8, 15)
    assert to_cell((1.1, 2.4), 0.25) == (4, 10)


def test_nearest_slot_prefers_input_dock_side():
    slot = nearest_slot(LAYOUT, ItemClass.A, 4.0)
    assert slot is not None
    assert slot.item_class == ItemClass.A
    best = min(
        grid_distance(LAYOUT.input_dock, s.position)
        for s in LAYOUT.storage_slots if s.item_class == ItemClass.A
    )
    assert grid_distance(LAYOUT.input_dock, slot.position) == best


def test_nearest_slot_none_when_nothing_fits():
    assert nearest_slot(LAYOUT, ItemClass.B, 6.0) is None


def test_verify_layout_logs_counts(caplog):
    with caplog.at_level(logging.INFO, logger="agv_fleet.layout"):
        verify_layout(LAYOUT)
    assert "high-frequency slots: 80" in caplog.text
    assert "low-frequency slots: 40" in caplog.text


# -- Order source -----------------------------------------------------

def test_same_seed_same_orders():
    a = OrderGenerator(LAYOUT, DemandConfig(), seed=42)
    b = OrderGenerator(LAYOUT, DemandConfig(), seed=42)
    for minute in range(1, 121):
        assert _signature(a.orders_for_window(1.0, float(minute))) == \
            _signature(b.orders_for_window(1.0, float(minute)))
    assert a.next_order_id == b.next_order_id


def test_generated_orders_are_well_formed():
    gen = OrderGenerator(LAYOUT, DemandConfig(), seed=3)
    orders = gen.generate_orders(200, now=10.0)
    slot_positions = {s.position for s in LAYOUT.storage_slots}
    windows = {Priority.URGENT: 15.0, Priority.NORMAL: 30.0, Priority.LOW: 60.0}

    assert [o.order_id for o in orders] == list(range(1, 201))
    for o in orders:
        assert 1 <= o.total_crates <= 5
        assert sum(count for _, count in o.items) == o.total_crates
        assert len({cls for cls, _ in o.items}) == len(o.items)
        assert o.total_weight == 4.0 * o.total_crates
        assert o.deadline - o.creation_time == windows[o.priority]
        assert o.pickup_slot in slot_positions
    assert {o.priority for o in orders} == set(Priority)


def test_single_crate_orders_use_matching_slot():
    gen = OrderGenerator(LAYOUT, DemandConfig(), seed=8)
    by_position = {s.position: s for s in LAYOUT.storage_slots}
    for o in gen.generate_orders(100):
        if o.total_crates == 1:
            assert by_position[o.pickup_slot].item_class == o.primary_class


def test_generator_clock_follows_windows():
    gen = OrderGenerator(LAYOUT, DemandConfig(rate_factor=0.0), seed=1)
    gen.orders_for_window(30.0, 30.0)
    assert gen.current_hour == 1
    gen.orders_for_window(30.0, 60.0)
    assert gen.current_hour == 2
    for _ in range(11):
        gen.orders_for_window(60.0, 0.0)
    assert (gen.current_shift, gen.current_hour) == (2, 1)


def test_zero_rate_produces_no_orders():
    gen = OrderGenerator(LAYOUT, DemandConfig(rate_factor=0.0), seed=1)
    assert gen.orders_for_window(60.0, 60.0) == []


# -- Scenarios --------------------------------------------------------

def test_scenarios():
    config = DemandConfig()
    base = scenario_orders("base", 2, LAYOUT, config, seed=5)
    again = scenario_orders("base", 2, LAYOUT, config, seed=5)
    assert _signature(base) == _signature(again)
    assert all(0.0 <= o.creation_time < 120.0 for o in base)

    scenario_orders("peak_demand", 2, LAYOUT, config, seed=5)
    assert config.rate_factor == 1.0

    with pytest.raises(ValueError):
        scenario_orders("blackout", 2, LAYOUT, config)


def test_scheduled_orders_release_by_creation_time():
    gen = OrderGenerator(LAYOUT, DemandConfig(), seed=2)
    book = gen.generate_orders(1, now=0.0) + gen.generate_orders(2, now=5.0)
    source = ScheduledOrders(book)

    assert [o.order_id for o in source.orders_for_window(1.0, 1.0)] == [1]
    assert source.orders_for_window(1.0, 4.0) == []
    released = source.orders_for_window(1.0, 5.0)
    assert [o.order_id for o in released] == [2, 3]
    assert released[0] is not book[1]

    source.rewind()
    assert len(source.orders_for_window(1.0, 100.0)) == len(source) == 3


def test_generator_wraps_at_configured_shift_length():
    gen = OrderGenerator(LAYOUT, DemandConfig(rate_factor=0.0, hours_per_shift=8), seed=1)
    for _ in range(7):
        gen.orders_for_window(60.0, 0.0)
    assert (gen.current_shift, gen.current_hour) == (1, 8)
    gen.orders_for_window(60.0, 0.0)
    assert (gen.current_shift, gen.current_hour) == (2, 1)


def test_peak_scenario_scales_by_configured_factor():
    flat = DemandConfig(peak_factor=1.0)
    base = scenario_orders("base", 2, LAYOUT, flat, seed=9)
    peak = scenario_orders("peak_demand", 2, LAYOUT, flat, seed=9)
    assert _signature(peak) == _signature(base)
