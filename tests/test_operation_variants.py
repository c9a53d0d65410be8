from __future__ import annotations

import numpy as np
import pytest

from coreops.control.power_profile import asi_band_table
from coreops.control.rods import RodCatalogue
from coreops.core.errors import ConfigurationError
from coreops.core.options import (
    CalculationOption,
    CriticalSearch,
    DepletionIsotope,
    DepletionOption,
    ECPControl,
    ScenarioStep,
    TimeUnit,
)
from coreops.core.reference_solver import ReferenceSolver
from coreops.operations import (
    CoastdownOperation,
    ECPOperation,
    FlexibleOperation,
    GeneralOperation,
    OperationState,
    StartupOperation,
    XenonDynamicsOperation,
)

RODS = ("P", "R3", "R4", "R5")
HOUR = 3600.0


def _solver() -> ReferenceSolver:
    solver = ReferenceSolver()
    cat = RodCatalogue()
    for rod_id in RODS:
        cat.register(rod_id)
    solver.set_rod_group_catalogue(cat)
    return solver


def _option(**changes) -> CalculationOption:
    return CalculationOption(rod_positions={r: 381.0 for r in RODS}, **changes)


# ── Xenon dynamics ──────────────────────────────────────────────────────


def test_xenon_builds_up_after_shutdown() -> None:
    op = XenonDynamicsOperation(_solver())
    op.set_time(8 * HOUR, HOUR)
    op.reset()
    results = list(op.run(_option(power_fraction=0.0)))
    assert len(results) == 8
    assert all(r.ok for r in results)
    assert [r.time for r in results] == pytest.approx([HOUR * k for k in range(1, 9)])
    # growing xenon leaves less room for boron
    assert results[-1].ppm < results[0].ppm


def test_xenon_run_is_deterministic() -> None:
    runs = []
    for _ in range(2):
        op = XenonDynamicsOperation(_solver())
        op.set_time(6 * HOUR, 2 * HOUR)
        op.reset()
        runs.append([r.ppm for r in op.run(_option(power_fraction=0.3))])
    assert runs[0] == runs[1]


def test_xenon_factor_validation() -> None:
    op = XenonDynamicsOperation(_solver())
    with pytest.raises(ConfigurationError):
        op.set_xenon_factor(-1.0)
    with pytest.raises(ConfigurationError):
        op.set_time(3600.0, 0.0)


# ── Flexible ────────────────────────────────────────────────────────────


def test_power_schedule_follows_load_follow_profile() -> None:
    op = FlexibleOperation(_solver())
    op.set_time_step(HOUR)
    # 50 % drop at 1 %/min: 3000 s ramps around a 1 h hold
    op.set_power_schedule(100.0, 50.0, 1.0, 1.0, HOUR)
    op.reset()
    results = list(op.run(_option()))
    assert op.schedule.total_duration == pytest.approx(7200 + 3000 + 3600 + 3000 + 7200)
    assert len(results) == 7
    powers = [r.power_fraction for r in results]
    assert powers[0] == pytest.approx(1.0)
    assert powers[2] == pytest.approx(0.5)
    assert powers[3] == pytest.approx(0.6)
    assert powers[-1] == pytest.approx(1.0)


def test_power_scenario_ramps_from_previous_power() -> None:
    op = FlexibleOperation(_solver())
    op.set_time_step(HOUR)
    op.set_power_scenario([ScenarioStep(2 * HOUR, 0.5), ScenarioStep(2 * HOUR, 0.5)])
    op.reset()
    results = list(op.run(_option()))
    assert [r.power_fraction for r in results] == pytest.approx([0.75, 0.5, 0.5, 0.5])


def test_scenario_duration_must_be_whole_steps() -> None:
    op = FlexibleOperation(_solver())
    op.set_time_step(HOUR)
    op.set_power_scenario([ScenarioStep(5000.0, 0.5)])
    with pytest.raises(ConfigurationError, match="whole number"):
        op.reset()


def test_end_time_must_cover_scenario() -> None:
    op = FlexibleOperation(_solver())
    op.set_time_step(HOUR)
    op.set_power_scenario([ScenarioStep(2 * HOUR, 0.5), ScenarioStep(2 * HOUR, 0.8)])
    op.set_end_time(HOUR)
    with pytest.raises(ConfigurationError, match="ends at"):
        op.reset()


def test_flexible_needs_power_definition() -> None:
    op = FlexibleOperation(_solver())
    op.set_time_step(HOUR)
    with pytest.raises(ConfigurationError):
        op.reset()


def test_asi_control_inserts_down_to_pdil() -> None:
    solver = _solver()
    solver.rod_catalogue.set_pdil("R5", [(0.0, 0.0), (1.0, 300.0)])
    solver.solve_steady(_option())
    op = FlexibleOperation(solver)
    op.set_time_step(HOUR)
    op.set_rod_in_sequence(["R5"], [200.0])
    op.set_power_scenario([
        ScenarioStep(2 * HOUR, 0.5, asi_allowance=(-0.01, 0.01), target_asi=0.3, control_asi=True),
    ])
    op.reset()
    first = op.run_step(_option())
    # floor at 75 % power is 225 cm, tighter than the 200 cm insertion limit
    assert first.rod_positions["R5"] == pytest.approx(225.0)
    assert solver.rod_catalogue.position("R5") == pytest.approx(225.0)
    assert first.rod_positions["P"] == 381.0


def test_rods_pass_through_without_asi_control() -> None:
    op = FlexibleOperation(_solver())
    op.set_time_step(HOUR)
    op.set_rod_in_sequence(["R5"], [381.0])
    op.set_power_scenario([ScenarioStep(2 * HOUR, 0.6)])
    op.reset()
    results = list(op.run(_option()))
    withdrawn = {rod: 381.0 for rod in RODS}
    assert all(r.rod_positions == withdrawn for r in results)


def _load_follow(solver: ReferenceSolver) -> FlexibleOperation:
    solver.solve_steady(_option())
    op = FlexibleOperation(solver)
    op.set_time_step(HOUR)
    op.set_power_schedule(100.0, 50.0, 1.0, 1.0, HOUR)
    op.set_rod_in_sequence(["R5"], [200.0])
    return op


def test_asi_band_table_drives_rods_toward_band_midpoint() -> None:
    solver = _solver()
    op = _load_follow(solver)
    op.set_asi_band({0.0: (0.5, 0.6), 1.0: (0.5, 0.6)})
    op.reset()
    first = op.run_step(_option())
    assert first.power_fraction == pytest.approx(1.0)
    # ASI far below the band: insertion stops at the 200 cm limit
    assert first.rod_positions["R5"] == pytest.approx(181.0)
    assert first.rod_positions["P"] == 381.0


def test_asi_allowance_table_widens_trigger_range() -> None:
    solver = _solver()
    op = _load_follow(solver)
    op.set_asi_band({0.0: (0.5, 0.6), 1.0: (0.5, 0.6)})
    op.set_asi_allowance({0.0: (-1.0, 1.0)})
    op.reset()
    first = op.run_step(_option())
    assert first.rod_positions["R5"] == 381.0
    op.set_asi_allowance(None)
    op.reset()
    assert op.run_step(_option()).rod_positions["R5"] < 381.0


def test_asi_band_table_interpolates_and_clamps() -> None:
    table = asi_band_table({1.0: (-0.3, 0.3), 0.0: (-0.1, 0.1)})
    assert table(0.5) == pytest.approx((-0.2, 0.2))
    assert table(2.0) == pytest.approx((-0.3, 0.3))
    assert table(-1.0) == pytest.approx((-0.1, 0.1))


@pytest.mark.parametrize("table, message", [
    ({}, "at least one"),
    ({0.5: (0.2, -0.2)}, "low <= high"),
    ({-0.5: (-0.1, 0.1)}, ">= 0"),
    ({0.5: (float("nan"), 0.1)}, "finite"),
])
def test_asi_band_table_rejects_malformed_tables(table, message) -> None:
    with pytest.raises(ConfigurationError, match=message):
        asi_band_table(table)
    op = FlexibleOperation(_solver())
    with pytest.raises(ConfigurationError, match="ASI allowance"):
        op.set_asi_allowance(table)


# ── Coastdown ───────────────────────────────────────────────────────────


def test_coastdown_power_is_monotone_and_excess_inserted() -> None:
    solver = _solver()
    op = CoastdownOperation(solver)
    op.set_time(4 * HOUR, HOUR)
    op.set_target_power(0.8)
    op.set_rod_in_sequence(["R5", "R4"], [381.0, 381.0])
    op.reset()
    results = list(op.run(_option(search=CriticalSearch.NONE, boron_ppm=0.0)))
    powers = [r.power_fraction for r in results]
    assert powers == pytest.approx([0.95, 0.9, 0.85, 0.8])
    assert all(b <= a for a, b in zip(powers, powers[1:]))
    # first step has no prior solve; the large excess is then inserted
    assert results[0].rod_positions["R5"] == 381.0
    assert results[1].rod_positions["R5"] < 381.0
    assert results[-1].burnup > results[0].burnup
    assert results[1].eigenvalue < results[0].eigenvalue


def test_coastdown_requires_target_power() -> None:
    op = CoastdownOperation(_solver())
    op.set_time(HOUR, HOUR)
    with pytest.raises(ConfigurationError, match="set_target_power"):
        op.reset()


# ── Emergency cooldown ──────────────────────────────────────────────────


def test_ecp_boron_mode_drops_power_then_holds() -> None:
    op = ECPOperation(_solver())
    op.set_time(4 * HOUR, 2 * HOUR, HOUR)
    op.set_option(ECPControl.BORON)
    op.reset()
    results = list(op.run(_option()))
    assert [r.power_fraction for r in results] == pytest.approx([0.5, 0.0, 0.0, 0.0])
    assert all(r.ok for r in results)
    assert all(r.rod_positions["R5"] == 381.0 for r in results)


def test_ecp_rod_mode_fully_inserts_by_shutdown() -> None:
    op = ECPOperation(_solver())
    op.set_time(4 * HOUR, 2 * HOUR, HOUR)
    op.set_option(ECPControl.ROD)
    op.set_target_cbc(1000.0)
    op.set_rod_in_sequence(["R5", "R4"], [381.0, 381.0])
    op.reset()
    results = list(op.run(_option()))
    assert results[0].rod_positions["R5"] == pytest.approx(0.0)
    assert results[0].rod_positions["R4"] == pytest.approx(381.0)
    for r in results[1:]:
        assert r.rod_positions["R5"] == pytest.approx(0.0)
        assert r.rod_positions["R4"] == pytest.approx(0.0)
    assert all(r.ppm == pytest.approx(1000.0) for r in results)
    assert results[0].rod_positions["P"] == 381.0


def test_ecp_validation() -> None:
    op = ECPOperation(_solver())
    with pytest.raises(ConfigurationError, match="shutdown_time"):
        op.set_time(HOUR, 2 * HOUR, 600.0)
    op.set_time(2 * HOUR, HOUR, 600.0)
    op.set_option(ECPControl.ROD)
    with pytest.raises(ConfigurationError, match="insertion sequence"):
        op.reset()
    op.set_option(ECPControl.BORON)
    op.set_target_cbc(1000.0)
    with pytest.raises(ConfigurationError, match="target CBC"):
        op.reset()


# ── Startup ─────────────────────────────────────────────────────────────


def _startup(solver: ReferenceSolver) -> StartupOperation:
    op = StartupOperation(solver)
    op.set_time_step(HOUR)
    op.set_power_scenario([ScenarioStep(3 * HOUR, 1.0)])
    op.set_shutdown_time(8 * HOUR)
    op.set_initial_rod_positions({"R5": 200.0})
    return op


def test_startup_reset_is_repeatable() -> None:
    solver = _solver()
    solver.solve_steady(_option())
    op = _startup(solver)
    clock = solver.clock
    op.reset()
    assert solver.clock == pytest.approx(clock + 8 * HOUR)
    first = list(op.run(_option(power_fraction=0.1)))
    assert op.state == OperationState.COMPLETE

    op.reset()
    assert solver.clock == pytest.approx(clock + 8 * HOUR)
    second = list(op.run(_option(power_fraction=0.1)))
    assert [r.ppm for r in second] == pytest.approx([r.ppm for r in first])
    assert first[0].rod_positions["R5"] == pytest.approx(200.0)
    assert [r.power_fraction for r in first] == pytest.approx([0.4, 0.7, 1.0])


def test_startup_validates_before_touching_solver() -> None:
    solver = _solver()
    op = StartupOperation(solver)
    clock = solver.clock
    with pytest.raises(ConfigurationError):
        op.reset()
    assert solver.clock == clock
    with pytest.raises(ConfigurationError):
        op.set_initial_rod_positions({"Q": 1.0})


# ── General ─────────────────────────────────────────────────────────────


def test_general_solves_then_depletes() -> None:
    solver = _solver()
    op = GeneralOperation(solver)
    op.reset()
    r1 = op.run_step(_option(), DepletionOption(increment=2.0, time_unit=TimeUnit.HOURS))
    assert r1.time == 0.0
    assert op.elapsed == pytest.approx(2 * HOUR)
    assert solver.burnup > 0.0
    r2 = op.run_step(_option(), DepletionOption(isotope=DepletionIsotope.XENON, increment=600.0))
    assert r2.time == pytest.approx(2 * HOUR)
    assert op.elapsed == pytest.approx(2 * HOUR + 600.0)
    before = solver.burnup
    op.run_step(_option(), DepletionOption(increment=100.0, time_unit=TimeUnit.MWD_PER_TON))
    assert solver.burnup == pytest.approx(before + 100.0)
    assert op.has_next()
    assert op.state == OperationState.RUNNING


def test_general_rejects_poison_only_burnup_step_before_solving() -> None:
    solver = _solver()
    op = GeneralOperation(solver)
    op.reset()
    with pytest.raises(ConfigurationError, match="MWD/tU"):
        op.run_step(_option(), DepletionOption(
            isotope=DepletionIsotope.XENON, increment=10.0, time_unit=TimeUnit.MWD_PER_TON,
        ))
    assert op.steps_taken == 0
    assert solver.get_result() is None
    with pytest.raises(ConfigurationError, match="MWD/tU"):
        DepletionOption(isotope=DepletionIsotope.FISSION_PRODUCTS, time_unit=TimeUnit.MWD_PER_TON)


def test_general_rejects_conflicting_xenon_factor_before_solving() -> None:
    solver = _solver()
    op = GeneralOperation(solver)
    op.set_xenon_factor(1.5)
    op.reset()
    with pytest.raises(ConfigurationError, match="conflicts"):
        op.run_step(_option(), DepletionOption(increment=60.0, xenon_amplification=2.0))
    assert solver.get_result() is None
    # matching values are not ambiguous
    op.run_step(_option(), DepletionOption(increment=60.0, xenon_amplification=1.5))
    assert solver.get_result() is not None


def test_general_uses_caller_rods_each_step() -> None:
    op = GeneralOperation(_solver())
    op.reset()
    step = DepletionOption(increment=60.0)
    r1 = op.run_step(_option(), step)
    r2 = op.run_step(_option().with_rods({"R5": 100.0}), step)
    assert r1.rod_positions["R5"] == 381.0
    assert r2.rod_positions["R5"] == 100.0
    assert np.isfinite(r2.ppm)
    assert r2.ppm < r1.ppm
