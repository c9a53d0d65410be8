from __future__ import annotations

import pytest

from coreops.core.config_schema import validate_config
from coreops.core.errors import ConfigurationError
from coreops.core.reference_solver import ReferenceSolver
from coreops.operations import CoastdownOperation, ECPOperation, FlexibleOperation, XenonDynamicsOperation
from coreops.runner import build_catalogue, build_operation, build_solver, run_margin, run_operation

RODS = [
    {"id": "P"},
    {"id": "R3"},
    {"id": "R4", "overlap": "R5"},
    {"id": "R5", "pdil": [[0.0, 0.0], [1.0, 200.0]]},
]
ALL_OUT = {"P": 381.0, "R3": 381.0, "R4": 381.0, "R5": 381.0}


def _config(**extra) -> dict:
    data = {"name": "runner", "rods": RODS, "option": {"rod_positions": ALL_OUT}}
    data.update(extra)
    return data


def test_build_catalogue_registers_groups_and_pdil() -> None:
    cat = build_catalogue(validate_config(_config()))
    assert cat.ids == ["P", "R3", "R4", "R5"]
    assert cat.partner("R4").rod_id == "R5"
    assert cat.pdil("R5", 0.5) == pytest.approx(100.0)


def test_build_solver_applies_burnup_and_limits() -> None:
    solver = build_solver(validate_config(_config(burnup_points=[0.0, 500.0], burnup=500.0, option={
        "rod_positions": ALL_OUT, "max_iterations": 25, "tolerance": 1e-7,
    })))
    assert isinstance(solver, ReferenceSolver)
    assert solver.burnup == 500.0
    assert solver.max_iterations == 25
    assert solver.rod_catalogue.ids == ["P", "R3", "R4", "R5"]


def test_build_operation_dispatches_on_kind() -> None:
    cases = [
        ({"kind": "xenon", "end_time": 7200.0, "time_step": 3600.0}, XenonDynamicsOperation),
        ({"kind": "flexible", "end_time": 7200.0, "time_step": 3600.0,
          "scenario": [{"duration": 7200.0, "power_fraction": 0.5}]}, FlexibleOperation),
        ({"kind": "coastdown", "end_time": 7200.0, "time_step": 3600.0, "target_power": 0.8,
          "insert_sequence": {"rods": ["R5"], "limits": [0.0]}}, CoastdownOperation),
        ({"kind": "ecp", "control": "rod", "end_time": 7200.0, "time_step": 3600.0, "target_cbc": 1200.0,
          "insert_sequence": {"rods": ["R5"], "limits": [381.0]}}, ECPOperation),
    ]
    for op_cfg, expected in cases:
        cfg = validate_config(_config(operation=op_cfg))
        operation = build_operation(cfg, build_solver(cfg))
        assert isinstance(operation, expected)


def test_build_operation_reports_missing_settings() -> None:
    cfg = validate_config(_config(operation={"kind": "coastdown", "end_time": 7200.0, "time_step": 3600.0}))
    with pytest.raises(ConfigurationError, match="target_power"):
        build_operation(cfg, build_solver(cfg))
    cfg = validate_config(_config(operation={"kind": "xenon"}))
    with pytest.raises(ConfigurationError, match="end_time"):
        build_operation(cfg, build_solver(cfg))
    cfg = validate_config(_config(operation={"kind": "general"}))
    with pytest.raises(ConfigurationError, match="depletions"):
        build_operation(cfg, build_solver(cfg))
    cfg = validate_config(_config())
    with pytest.raises(ConfigurationError, match="operation"):
        build_operation(cfg, build_solver(cfg))


def test_run_operation_xenon_returns_every_step() -> None:
    cfg = validate_config(_config(operation={"kind": "xenon", "end_time": 14400.0, "time_step": 3600.0}))
    results = run_operation(cfg)
    assert [r.time for r in results] == [3600.0, 7200.0, 10800.0, 14400.0]
    assert all(r.ok for r in results)


def test_run_operation_general_uses_depletion_list() -> None:
    cfg = validate_config(_config(operation={
        "kind": "general",
        "depletions": [
            {"increment": 1.0, "time_unit": "hours"},
            {"increment": 2.0, "time_unit": "hours"},
            {"increment": 10.0, "time_unit": "mwd_per_ton"},
        ],
    }))
    solver = build_solver(cfg)
    results = run_operation(cfg, facade=solver)
    assert [r.time for r in results] == [0.0, 3600.0, 10800.0]
    assert solver.burnup > 10.0


def test_run_margin_uses_config_scenario() -> None:
    cfg = validate_config(_config(margin={"failed_rod": "P", "stuck_rods": ["R3"], "rod_uncertainty": 0.1}))
    result = run_margin(cfg)
    assert result.stuck_rod == "P"
    assert result.bite_worth == pytest.approx(2400.0, abs=1e-6)
    assert run_margin(cfg, dt=3600.0).xenon_worth > result.xenon_worth
    with pytest.raises(ConfigurationError, match="margin"):
        run_margin(validate_config(_config()))


def test_flexible_config_carries_asi_tables() -> None:
    cfg = validate_config(_config(operation={
        "kind": "flexible", "end_time": 7200.0, "time_step": 3600.0,
        "power_schedule": {"initial_power": 100.0, "target_power": 50.0, "power_down_rate": 1.0,
                           "power_up_rate": 1.0, "duration": 3600.0},
        "asi_band": {"0.0": [-0.1, 0.1], "1.0": [-0.3, 0.3]},
        "asi_allowance": {"1.0": [-1.0, 1.0]},
    }))
    assert cfg.operation.asi_band == {0.0: (-0.1, 0.1), 1.0: (-0.3, 0.3)}
    operation = build_operation(cfg, build_solver(cfg))
    assert isinstance(operation, FlexibleOperation)
    assert operation._asi_band_table(0.5) == pytest.approx((-0.2, 0.2))
    assert operation._asi_allowance_table(0.5) == pytest.approx((-1.0, 1.0))
