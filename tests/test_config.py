"""
Tests for configuration defaults and validation.
"""

import pytest

from agv_fleet import (
    ConfigError, DemandConfig, FleetConfig, SimConfig, VNSConfig, WarehouseConfig,
)


def test_defaults():
    warehouse = WarehouseConfig()
    assert (warehouse.grid_width, warehouse.grid_height) == (40, 20)
    assert warehouse.safety_radius == 0.5

    fleet = FleetConfig()
    assert fleet.capacity_kg == 20.0
    assert fleet.capacity_crates == 5

    config = SimConfig()
    assert config.shift_minutes == 720.0
    assert config.max_pending_age is None

    vns = VNSConfig()
    assert vns.shaking_intensities == (1, 2, 3, 5, 7, 10)
    assert vns.kpi_weights == {"idle": 0.3, "utilization": 0.4, "on_time": 0.3}
    assert vns.evaluation_horizon == 30.0


def test_config_error_is_a_value_error():
    assert issubclass(ConfigError, ValueError)


def test_sequences_are_stored_as_tuples():
    vns = VNSConfig(shaking_intensities=[1, 4], local_search_k=[1, 2])
    assert vns.shaking_intensities == (1, 4)
    assert vns.local_search_k == (1, 2)


@pytest.mark.parametrize("weights", [
    {"idle": 0.5, "utilization": 0.5, "on_time": 0.5},
    {"idle": 0.5, "utilization": 0.5},
    {"idle": 0.3, "utilization": 0.4, "on_time": 0.3, "distance": 0.0},
    {"idle": -0.2, "utilization": 0.9, "on_time": 0.3},
])
def test_bad_kpi_weights_rejected(weights):
    with pytest.raises(ConfigError):
        VNSConfig(kpi_weights=weights)


@pytest.mark.parametrize("intensities", [(), (3, 2), (1, 1, 2), (0, 1)])
def test_bad_shaking_intensities_rejected(intensities):
    with pytest.raises(ConfigError):
        VNSConfig(shaking_intensities=intensities)


@pytest.mark.parametrize("field", [
    "max_outer_iterations", "max_no_improvement", "local_search_passes",
    "evaluation_horizon", "workers",
])
def test_non_positive_vns_caps_rejected(field):
    with pytest.raises(ConfigError):
        VNSConfig(**{field: 0})


def test_weights_within_tolerance_accepted():
    VNSConfig(kpi_weights={"idle": 0.1, "utilization": 0.2, "on_time": 0.7})


def test_fleet_validation():
    with pytest.raises(ConfigError):
        FleetConfig(capacity_kg=0.0)
    with pytest.raises(ConfigError):
        FleetConfig(speed=-1.0)
    with pytest.raises(ConfigError):
        FleetConfig(low_budget_minutes=300.0)


def test_warehouse_validation():
    with pytest.raises(ConfigError):
        WarehouseConfig(resolution=0.0)
    with pytest.raises(ConfigError):
        WarehouseConfig(input_dock=(40, 10))
    with pytest.raises(ConfigError):
        WarehouseConfig(safety_cells=-1)


def test_demand_and_sim_validation():
    with pytest.raises(ConfigError):
        DemandConfig(small_order_prob=0.7, medium_order_prob=0.5)
    with pytest.raises(ConfigError):
        DemandConfig(deadline_minutes={"urgent": 15})
    with pytest.raises(ConfigError):
        SimConfig(max_pending_age=0.0)
    with pytest.raises(ConfigError):
        SimConfig(time_scale=0.0)


def test_demand_follows_engine_shift_shape():
    config = SimConfig(shift_hours=8, shifts_per_day=2)
    assert config.demand.hours_per_shift == 8
    assert config.demand.shifts_per_day == 2
    assert SimConfig().demand.hours_per_shift == 12


def test_shift_longer_than_demand_table_rejected():
    with pytest.raises(ConfigError):
        SimConfig(shift_hours=13)
    with pytest.raises(ConfigError):
        DemandConfig(shifts_per_day=3)
    with pytest.raises(ConfigError):
        DemandConfig(peak_factor=0.0)
