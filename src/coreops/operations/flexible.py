# ──────────────────────────────────────────────────────────────────────
# CoreOps — Flexible (Load-Follow) Operation
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Power maneuvers driven by a ramp schedule or an explicit scenario list.

With ASI control active the last solved ASI is compared with the step's
band and rods are moved through the sequencer before the next solve: below
the band the sequencer inserts (pushing power to the bottom), above it the
sequencer withdraws.

Under a load-follow schedule the band is either the reference ASI plus or
minus a fixed allowance, or a power-dependent table set with
``set_asi_band``. A table set with ``set_asi_allowance`` replaces the range
that triggers rod motion; once triggered, rods drive the ASI towards the
middle of the band. Scenario steps carry their own band.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

from coreops.control.power_profile import (
    AsiBandTable,
    PowerProfile,
    asi_band_table,
    load_follow_profile,
    scenario_index,
    scenario_profile,
)
from coreops.control.rods import RodDirection
from coreops.control.schedule import STEP_TOLERANCE, is_whole_multiple
from coreops.core.errors import ConfigurationError
from coreops.core.options import CalculationOption, SamariumMode, ScenarioStep, XenonMode
from coreops.core.results import ResultSnapshot

from .base import Operation, OperationKind, transient_poisons

logger = logging.getLogger(__name__)

DEFAULT_ASI_ROD_GAIN = 1000.0


@dataclass(frozen=True)
class _PowerSchedule:
    initial_power: float
    target_power: float
    power_down_rate: float
    power_up_rate: float
    duration: float
    before_time: float
    after_time: float
    asi_allowance: float


class FlexibleOperation(Operation):
    kind = OperationKind.FLEXIBLE

    def __init__(self, facade) -> None:
        super().__init__(facade)
        self.time_step: Optional[float] = None
        self.end_time: Optional[float] = None
        self.fuel_depletion = False
        self.asi_rod_gain = DEFAULT_ASI_ROD_GAIN
        self._power_schedule: Optional[_PowerSchedule] = None
        self._scenario: Optional[Tuple[ScenarioStep, ...]] = None
        self._profile: Optional[PowerProfile] = None
        self._reference_asi: Optional[float] = None
        self._asi_band_table: Optional[AsiBandTable] = None
        self._asi_allowance_table: Optional[AsiBandTable] = None

    # ── Configuration ───────────────────────────────────────────────────

    def set_time_step(self, time_step: float) -> None:
        step = float(time_step)
        if not math.isfinite(step) or step <= 0.0:
            raise ConfigurationError("time_step must be finite and > 0.")
        self.time_step = step

    def set_end_time(self, end_time: Optional[float]) -> None:
        if end_time is not None and (not math.isfinite(float(end_time)) or float(end_time) <= 0.0):
            raise ConfigurationError("end_time must be finite and > 0.")
        self.end_time = None if end_time is None else float(end_time)

    def set_power_schedule(
        self,
        initial_power: float,
        target_power: float,
        power_down_ratio: float,
        power_up_ratio: float,
        duration: float,
        before_time: float = 2.0 * 3600,
        after_time: float = 2.0 * 3600,
        asi_allowance: float = 0.01,
    ) -> None:
        """Load-follow ramp; powers in percent of nominal, ratios in %/min."""
        if not math.isfinite(float(asi_allowance)) or float(asi_allowance) < 0.0:
            raise ConfigurationError("asi_allowance must be finite and >= 0.")
        plan = _PowerSchedule(
            float(initial_power), float(target_power), float(power_down_ratio),
            float(power_up_ratio), float(duration), float(before_time),
            float(after_time), float(asi_allowance),
        )
        self._profile_from_schedule(plan)
        self._power_schedule = plan
        self._scenario = None

    def set_power_scenario(self, scenario: Sequence[ScenarioStep]) -> None:
        steps = tuple(scenario)
        if not steps:
            raise ConfigurationError("power scenario must contain at least one step.")
        for step in steps:
            if not isinstance(step, ScenarioStep):
                raise ConfigurationError("power scenario entries must be ScenarioStep instances.")
        self._scenario = steps
        self._power_schedule = None

    def set_fuel_depletion(self, fuel_depletion: bool) -> None:
        self.fuel_depletion = bool(fuel_depletion)

    def set_asi_rod_gain(self, gain: float) -> None:
        """Rod travel (cm) commanded per unit of ASI error."""
        value = float(gain)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("asi rod gain must be finite and >= 0.")
        self.asi_rod_gain = value

    def set_asi_band(self, table: Optional[Mapping[float, Tuple[float, float]]]) -> None:
        """ASI control band ``{power_fraction: (low, high)}``; ``None`` clears it."""
        self._asi_band_table = None if table is None else asi_band_table(table, "ASI band")

    def set_asi_allowance(self, table: Optional[Mapping[float, Tuple[float, float]]]) -> None:
        """ASI limits ``{power_fraction: (low, high)}`` outside which rods are moved."""
        self._asi_allowance_table = None if table is None else asi_band_table(table, "ASI allowance")

    @staticmethod
    def _profile_from_schedule(plan: _PowerSchedule) -> PowerProfile:
        return load_follow_profile(
            plan.initial_power, plan.target_power, plan.power_down_rate,
            plan.power_up_rate, plan.duration, plan.before_time, plan.after_time,
        )

    @property
    def scenario(self) -> Optional[Tuple[ScenarioStep, ...]]:
        return self._scenario

    @property
    def profile(self) -> Optional[PowerProfile]:
        return self._profile

    # ── State machine hooks ─────────────────────────────────────────────

    def validate(self) -> None:
        super().validate()
        if self.time_step is None:
            raise ConfigurationError("FlexibleOperation: call set_time_step() before reset().")
        if self._power_schedule is None and self._scenario is None:
            raise ConfigurationError(
                "FlexibleOperation: configure set_power_schedule() or set_power_scenario()."
            )
        if self._scenario is not None:
            for i, step in enumerate(self._scenario):
                if not is_whole_multiple(step.duration, self.time_step):
                    raise ConfigurationError(
                        f"scenario step {i} lasts {step.duration:g}s, not a whole number "
                        f"of {self.time_step:g}s time steps."
                    )
            total = sum(s.duration for s in self._scenario)
            if self.end_time is not None and self.end_time < total - STEP_TOLERANCE * self.time_step:
                raise ConfigurationError(
                    f"scenario needs {total:g}s but the operation ends at {self.end_time:g}s."
                )

    def _configure_schedule(self) -> None:
        if self._scenario is not None:
            total = sum(s.duration for s in self._scenario)
            self._profile = None
        else:
            self._profile = self._profile_from_schedule(self._power_schedule)
            total = self._profile.duration
        if self.end_time is not None:
            total = self.end_time
        self.schedule.configure(total, self.time_step)

    def _on_reset(self) -> None:
        last = self._last_result()
        self._reference_asi = None if last is None else float(last.asi)

    # ── Step policy ─────────────────────────────────────────────────────

    def _power_at(self, option: CalculationOption, elapsed: float) -> float:
        if self._profile is None:
            self._profile = scenario_profile(self._scenario, option.power_fraction)
        return self._profile(elapsed)

    def _asi_band(self, elapsed: float, power: float) -> Optional[Tuple[float, float, float]]:
        """(low, high, target) for the step ending at ``elapsed``, or None when uncontrolled.

        ``low`` and ``high`` bound the ASI that needs no rod motion.
        """
        if self._scenario is not None:
            step = self._scenario[scenario_index(self._scenario, elapsed)]
            if not step.control_asi:
                return None
            target = step.target_asi if step.target_asi is not None else self._reference_asi
            if target is None:
                return None
            low, high = step.asi_allowance
            return target + low, target + high, target
        if self._asi_band_table is not None:
            low, high = self._asi_band_table(power)
        elif self._reference_asi is not None:
            allowance = self._power_schedule.asi_allowance
            low, high = self._reference_asi - allowance, self._reference_asi + allowance
        else:
            return None
        target = 0.5 * (low + high)
        if self._asi_allowance_table is not None:
            low, high = self._asi_allowance_table(power)
        return low, high, target

    def _control_rods(self, power: float, elapsed: float) -> Dict[str, float]:
        positions = self.catalogue.positions
        band = self._asi_band(elapsed, power)
        last = self._last_result()
        if band is None or last is None:
            return positions
        low, high, target = band
        asi = float(last.asi)
        if low <= asi <= high:
            return positions
        direction = RodDirection.INSERT if asi < low else RodDirection.WITHDRAW
        magnitude = abs(asi - target) * self.asi_rod_gain
        move = self.sequencer.apply(direction, magnitude, positions, floors=self.catalogue.pdil_floors(power))
        logger.debug(
            "ASI %.4f outside [%.4f, %.4f]: %s %.2f cm (undistributed %.2f)",
            asi, low, high, direction.name.lower(), magnitude, move.undistributed,
        )
        self.catalogue.update_positions(move.positions)
        return move.positions

    def _evolve(self, duration: float, power: float) -> None:
        deplete = self.facade.deplete_by_time if self.fuel_depletion else self.facade.deplete_poisons
        deplete(XenonMode.TRANSIENT, SamariumMode.TRANSIENT, duration, self.xenon_factor, power_fraction=power)

    def _step(self, option: CalculationOption, elapsed: float, duration: float) -> ResultSnapshot:
        power = self._power_at(option, elapsed)
        # poisons evolve at the power held when the step began
        self._evolve(duration, self._power_at(option, elapsed - duration))
        positions = self._control_rods(power, elapsed)
        result = self.facade.solve_steady(
            transient_poisons(option, time=float(elapsed), power_fraction=power, rod_positions=positions)
        )
        if self._reference_asi is None and result.ok:
            self._reference_asi = float(result.asi)
        return result
