"""
Tests for the simulation engine: tick ordering, long-run invariants,
shift handoff, pausing, reset and evaluation snapshots.
"""

from collections import deque

import pytest

from agv_fleet import (
    FleetConfig, ItemClass, Order, OrderStatus, Priority, SimConfig, VehicleState,
    add_orders, advance, clone_for_evaluation, create_state, pause, reset,
    resume, run, summary,
)
from agv_fleet.engine import vehicle_utilization


# -- Helpers ----------------------------------------------------------

def _order(order_id, priority=Priority.NORMAL, slot=(20, 4), created=0.0, crates=2):
    deadlines = {Priority.URGENT: 15.0, Priority.NORMAL: 30.0, Priority.LOW: 60.0}
    return Order(
        order_id=order_id,
        items=((ItemClass.B, crates),),
        total_weight=crates * 4.0,
        total_crates=crates,
        priority=priority,
        creation_time=created,
        deadline=created + deadlines[priority],
        pickup_slot=slot,
    )


def _quiet_state(num_vehicles=2, config=None):
    """State without an order source: only orders the test adds."""
    return create_state(config, num_vehicles=num_vehicles, seed=0, generate_orders=False)


def _fingerprint(state):
    return (
        state.current_time,
        state.current_shift,
        sorted(state.orders),
        list(state.pending),
        len(state.kpi_history),
        [
            (v.vehicle_id, v.position, v.state, v.target, v.current_task, v.load_kg,
             v.crate_count, v.work_time_remaining, v.distance_traveled, v.idle_time,
             v.tasks_completed)
            for v in state.vehicles
        ],
        state.occupancy.sum(),
    )


# -- Construction -----------------------------------------------------

def test_create_state_places_fleet_along_left_wall():
    state = create_state(num_vehicles=3, seed=1)
    assert [v.position for v in state.vehicles] == [(1.0, 2.5), (3.0, 2.5), (5.0, 2.5)]
    assert all(v.state == VehicleState.IDLE for v in state.vehicles)
    assert len(state.layout.storage_slots) == 200


def test_create_state_rejects_empty_fleet():
    with pytest.raises(ValueError):
        create_state(num_vehicles=0)


# -- Tick behaviour ---------------------------------------------------

def test_advance_assigns_urgent_order_first():
    state = _quiet_state(num_vehicles=1)
    add_orders(state, [_order(1, Priority.LOW), _order(2, Priority.URGENT)])

    advance(state)

    assert state.vehicles[0].current_task == 2
    assert state.orders[2].status == OrderStatus.ASSIGNED
    assert state.pending == [1]


def test_advance_completes_an_order_end_to_end():
    state = _quiet_state(num_vehicles=1)
    add_orders(state, [_order(1, slot=(8, 15), crates=1)])

    snapshots = run(state, 30)

    order = state.orders[1]
    assert order.status == OrderStatus.COMPLETED
    assert state.vehicles[0].tasks_completed == 1
    assert snapshots[-1].completed_orders == 1
    assert snapshots[-1].on_time_fraction == 1.0
    # to the pickup, then on to the output dock
    assert state.vehicles[0].distance_traveled == 2.25 + 8.75


def test_negative_dt_rejected():
    state = _quiet_state()
    with pytest.raises(ValueError):
        advance(state, -1.0)


def test_time_scale_stretches_each_tick():
    state = _quiet_state(config=SimConfig(time_scale=2.0))
    advance(state, 1.0)
    assert state.current_time == 2.0


def test_paused_state_does_not_advance():
    state = _quiet_state()
    add_orders(state, [_order(1)])
    pause(state)
    before = _fingerprint(state)

    assert advance(state) is None
    assert run(state, 10) == []
    assert _fingerprint(state) == before

    resume(state)
    assert advance(state) is not None
    assert state.current_time == 1.0


def test_per_tick_hook_sees_every_snapshot():
    state = _quiet_state()
    seen = []
    snapshots = run(state, 5, per_tick_hook=lambda s, k: seen.append((s.current_time, k)))
    assert [t for t, _ in seen] == [1.0, 2.0, 3.0, 4.0, 5.0]
    assert [k for _, k in seen] == snapshots


# -- Long-run invariants ----------------------------------------------

def test_capacity_exclusivity_and_kpi_bounds_hold_every_tick():
    state = create_state(num_vehicles=5, seed=11)
    fleet = state.config.fleet

    def check(s, kpis):
        for v in s.vehicles:
            assert v.load_kg <= fleet.capacity_kg
            assert v.crate_count <= fleet.capacity_crates
        for oid, order in s.orders.items():
            holders = [v for v in s.vehicles if v.current_task == oid]
            if order.status.is_terminal:
                assert holders == []
            elif order.status == OrderStatus.PENDING:
                assert holders == []
                assert order.assigned_vehicle is None
            else:
                assert [v.vehicle_id for v in holders] == [order.assigned_vehicle]
        for value in (kpis.idle_fraction, kpis.utilization, kpis.on_time_fraction):
            assert 0.0 <= value <= 1.0

    snapshots = run(state, 600, per_tick_hook=check)

    assert len(snapshots) == 600
    assert snapshots[-1].total_orders > 0
    assert snapshots[-1].completed_orders + snapshots[-1].late_orders > 0


def test_same_seed_same_run():
    a = create_state(num_vehicles=4, seed=5)
    b = create_state(num_vehicles=4, seed=5)
    run(a, 120)
    run(b, 120)
    assert _fingerprint(a) == _fingerprint(b)


# -- Shift handoff ----------------------------------------------------

def test_handoff_sends_low_budget_vehicle_to_charge():
    state = _quiet_state(num_vehicles=2)
    state.vehicles[0].work_time_remaining = 50.0
    add_orders(state, [_order(1)])

    advance(state)

    assert state.vehicles[0].state == VehicleState.CHARGING
    assert state.orders[1].assigned_vehicle == 2


def test_handoff_releases_task_to_another_vehicle():
    state = _quiet_state(num_vehicles=2)
    add_orders(state, [_order(1, slot=(2, 4))])
    advance(state)
    first, second = state.vehicles
    assert first.current_task == 1

    first.work_time_remaining = 50.0
    advance(state)

    assert first.state == VehicleState.CHARGING
    assert first.current_task is None
    assert second.current_task == 1
    assert state.orders[1].assigned_vehicle == 2


def test_no_handoff_outside_window():
    state = _quiet_state(num_vehicles=2)
    state.current_time = 100.0
    state.start_time = 100.0
    add_orders(state, [_order(1, slot=(2, 4), created=100.0)])
    advance(state)
    first = state.vehicles[0]
    first.work_time_remaining = 50.0

    advance(state)

    assert first.state == VehicleState.MOVING
    assert first.current_task == 1


def test_shift_counter_follows_clock():
    state = _quiet_state()
    state.current_time = 719.0
    advance(state)
    assert state.current_shift == 2
    assert state.current_hour == 1


def test_order_source_keeps_step_with_short_shifts():
    state = create_state(SimConfig(shift_hours=8), num_vehicles=2, seed=3)
    run(state, 8 * 60 + 1)
    assert state.current_shift == 2
    assert (state.source.current_shift, state.source.current_hour) == \
        (state.current_shift, state.current_hour)


# -- Abandonment ------------------------------------------------------

def test_pending_orders_wait_forever_by_default():
    state = _quiet_state(num_vehicles=1)
    state.vehicles[0].state = VehicleState.MAINTENANCE
    add_orders(state, [_order(1)])
    run(state, 120)
    assert state.orders[1].status == OrderStatus.PENDING
    assert state.pending == [1]


def test_stale_orders_abandoned_with_max_pending_age():
    state = _quiet_state(num_vehicles=1, config=SimConfig(max_pending_age=5.0))
    state.vehicles[0].state = VehicleState.MAINTENANCE
    add_orders(state, [_order(1)])

    run(state, 5)
    assert state.orders[1].status == OrderStatus.PENDING

    snapshots = run(state, 1)
    assert state.orders[1].status == OrderStatus.LATE
    assert state.pending == []
    assert snapshots[-1].late_orders == 1


# -- Planned dispatch -------------------------------------------------

def test_planned_routes_override_greedy_choice():
    state = _quiet_state(num_vehicles=2)
    add_orders(state, [_order(1), _order(2)])
    state.plans = {1: deque(), 2: deque([1, 2])}

    advance(state)

    assert state.vehicles[1].current_task == 1
    assert state.vehicles[0].current_task is None
    assert list(state.plans[2]) == [2]
    assert state.pending == [2]


def _low_budget_plan_state(route):
    """Vehicle 1 holds *route* but cannot afford the head; vehicle 2 has no plan."""
    config = SimConfig(fleet=FleetConfig(low_budget_minutes=10.0))
    state = _quiet_state(num_vehicles=2, config=config)
    state.current_time = state.start_time = 100.0
    add_orders(state, [_order(1, created=100.0), _order(2, created=100.0)])
    state.vehicles[0].work_time_remaining = 20.0
    state.plans = {1: deque(route), 2: deque()}
    return state


def test_unaffordable_route_head_goes_to_greedy_dispatch():
    state = _low_budget_plan_state([1])
    first, second = state.vehicles
    assert not first.can_accept(state.orders[1])

    advance(state)

    assert first.state == VehicleState.CHARGING
    assert first.current_task is None
    assert second.current_task == 1
    assert state.orders[1].assigned_vehicle == 2


def test_rest_of_route_waits_for_charged_vehicle():
    state = _low_budget_plan_state([1, 2])
    first, second = state.vehicles

    advance(state)

    assert first.state == VehicleState.CHARGING
    assert second.current_task == 1
    assert list(state.plans[1]) == [2]
    assert state.pending == [2]

    run(state, 15)
    assert state.orders[2].assigned_vehicle == 1


def test_requeued_order_goes_back_to_head_of_route():
    state = _quiet_state(num_vehicles=2)
    add_orders(state, [_order(1), _order(2)])
    state.plans = {1: deque([1, 2]), 2: deque()}
    advance(state)
    vehicle = state.vehicles[0]

    order = vehicle.release_task(state.orders)
    state.dispatcher.requeue(state, order, vehicle.vehicle_id)

    assert list(state.plans[1]) == [1, 2]
    assert 1 in state.pending


# -- Reset ------------------------------------------------------------

def test_reset_is_idempotent():
    state = create_state(num_vehicles=3, seed=2)
    run(state, 90)

    reset(state)
    once = _fingerprint(state)
    reset(state)

    assert _fingerprint(state) == once
    assert state.current_time == 0.0
    assert state.orders == {}


def test_reset_replays_the_same_demand():
    fresh = create_state(num_vehicles=3, seed=2)
    first = run(fresh, 60)[-1]

    reused = create_state(num_vehicles=3, seed=2)
    run(reused, 200)
    reset(reused)
    again = run(reused, 60)[-1]

    assert again == first


# -- Evaluation snapshots ---------------------------------------------

def test_clone_is_independent_and_skips_closed_orders():
    state = _quiet_state(num_vehicles=1)
    add_orders(state, [_order(1, slot=(8, 15), crates=1), _order(2, created=50.0)])
    run(state, 12)
    assert state.orders[1].status == OrderStatus.COMPLETED

    clone = clone_for_evaluation(state)

    assert sorted(clone.orders) == [2]
    assert clone.start_time == state.current_time
    assert clone.vehicles[0].distance_traveled == 0.0
    assert clone.source is None

    before = _fingerprint(state)
    run(clone, 20)
    assert _fingerprint(state) == before
    assert state.orders[2].status != clone.orders[2].status


# -- Reporting --------------------------------------------------------

def test_summary_and_utilization():
    state = _quiet_state(num_vehicles=2)
    add_orders(state, [_order(1)])
    snapshots = run(state, 10)

    text = summary(state, snapshots)
    assert "SIMULATION SUMMARY" in text
    assert "Vehicle 2" in text
    assert summary(state, []) == "No simulation data available."
    assert vehicle_utilization(state, 1) == 0.0
    assert vehicle_utilization(state, 2) == 1.0
    with pytest.raises(ValueError):
        vehicle_utilization(state, 9)
