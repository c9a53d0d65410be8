# ──────────────────────────────────────────────────────────────────────
# CoreOps — Coastdown Operation
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
End-of-cycle coastdown: power ramps down monotonically while fuel burns.

Positive excess reactivity left over from the previous solve is absorbed
by inserting rods along the insertion sequence.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional

from coreops.control.power_profile import PowerProfile, linear_ramp
from coreops.control.rods import RodDirection
from coreops.core.errors import ConfigurationError
from coreops.core.options import CalculationOption, SamariumMode, XenonMode
from coreops.core.results import ResultSnapshot

from .base import Operation, OperationKind, excess_reactivity_pcm, transient_poisons

logger = logging.getLogger(__name__)

DEFAULT_DIFFERENTIAL_WORTH = 10.0  # pcm/cm
DEFAULT_REACTIVITY_DEADBAND = 5.0  # pcm


class CoastdownOperation(Operation):
    kind = OperationKind.COASTDOWN

    def __init__(self, facade) -> None:
        super().__init__(facade)
        self.end_time: Optional[float] = None
        self.time_step: Optional[float] = None
        self.target_power: Optional[float] = None
        self.differential_worth = DEFAULT_DIFFERENTIAL_WORTH
        self.reactivity_deadband = DEFAULT_REACTIVITY_DEADBAND
        self._profile: Optional[PowerProfile] = None

    def set_time(self, end_time: float, time_step: float) -> None:
        self.schedule.configure(end_time, time_step)
        self.end_time = float(end_time)
        self.time_step = float(time_step)

    def set_target_power(self, power_fraction: float) -> None:
        value = float(power_fraction)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("target power must be finite and >= 0.")
        self.target_power = value

    def set_differential_worth(self, pcm_per_cm: float) -> None:
        value = float(pcm_per_cm)
        if not math.isfinite(value) or value <= 0.0:
            raise ConfigurationError("differential worth must be finite and > 0.")
        self.differential_worth = value

    def set_reactivity_deadband(self, pcm: float) -> None:
        value = float(pcm)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("reactivity dead band must be finite and >= 0.")
        self.reactivity_deadband = value

    def validate(self) -> None:
        super().validate()
        if self.end_time is None or self.time_step is None:
            raise ConfigurationError("CoastdownOperation: call set_time() before reset().")
        if self.target_power is None:
            raise ConfigurationError("CoastdownOperation: call set_target_power() before reset().")

    def _configure_schedule(self) -> None:
        self.schedule.configure(self.end_time, self.time_step)

    def _on_reset(self) -> None:
        self._profile = None

    def _power_at(self, option: CalculationOption, elapsed: float) -> float:
        if self._profile is None:
            # the first step's option fixes the starting power
            self._profile = linear_ramp(option.power_fraction, self.target_power, self.end_time)
        return self._profile(elapsed)

    def _absorb_excess(self, option: CalculationOption) -> Dict[str, float]:
        positions = self.catalogue.positions
        last = self._last_result()
        if last is None:
            return positions
        excess = excess_reactivity_pcm(last.eigenvalue, option.target_eigenvalue)
        if excess <= self.reactivity_deadband:
            return positions
        magnitude = excess / self.differential_worth
        move = self.sequencer.apply(RodDirection.INSERT, magnitude, positions)
        if move.undistributed > 0.0:
            logger.warning(
                "coastdown: %.1f pcm excess needs %.2f cm, %.2f cm could not be inserted",
                excess, magnitude, move.undistributed,
            )
        self.catalogue.update_positions(move.positions)
        return move.positions

    def _step(self, option: CalculationOption, elapsed: float, duration: float) -> ResultSnapshot:
        power = self._power_at(option, elapsed)
        self.facade.deplete_by_time(
            XenonMode.TRANSIENT, SamariumMode.TRANSIENT, duration, self.xenon_factor,
            power_fraction=self._power_at(option, elapsed - duration),
        )
        positions = self._absorb_excess(option)
        return self.facade.solve_steady(
            transient_poisons(option, time=float(elapsed), power_fraction=power, rod_positions=positions)
        )
