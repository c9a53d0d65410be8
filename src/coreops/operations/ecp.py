# ──────────────────────────────────────────────────────────────────────
# CoreOps — Emergency Cooldown Operation
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Emergency cooldown (ECP): power falls to the shutdown level and is held.

Reactivity is held either by boron (critical boron search every step) or by
rods (boron frozen at the target CBC, insertion sequence driven in
proportion to the time left before shutdown). The two are exclusive, so a
target CBC is rejected under boron control.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional

import numpy as np

from coreops.control.rods import RodDirection
from coreops.core.errors import ConfigurationError
from coreops.core.options import CalculationOption, CriticalSearch, ECPControl, SamariumMode, XenonMode
from coreops.core.results import ResultSnapshot

from .base import Operation, OperationKind, transient_poisons

logger = logging.getLogger(__name__)


class ECPOperation(Operation):
    kind = OperationKind.ECP

    def __init__(self, facade) -> None:
        super().__init__(facade)
        self.control = ECPControl.BORON
        self.end_time: Optional[float] = None
        self.shutdown_time: Optional[float] = None
        self.time_step: Optional[float] = None
        self.target_cbc: Optional[float] = None
        self.shutdown_power = 0.0
        self._initial_power: Optional[float] = None

    def set_option(self, control: ECPControl) -> None:
        self.control = ECPControl(control)

    def set_time(self, end_time: float, shutdown_time: float, time_step: float) -> None:
        end = float(end_time)
        shutdown = float(shutdown_time)
        if not (math.isfinite(shutdown) and 0.0 < shutdown <= end):
            raise ConfigurationError(
                f"shutdown_time must satisfy 0 < shutdown_time <= end_time, got {shutdown:g} / {end:g}"
            )
        self.schedule.configure(end, time_step)
        self.end_time = end
        self.shutdown_time = shutdown
        self.time_step = float(time_step)

    def set_target_cbc(self, ppm: float) -> None:
        value = float(ppm)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("target CBC must be finite and >= 0.")
        self.target_cbc = value

    def set_shutdown_power(self, power_fraction: float) -> None:
        value = float(power_fraction)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("shutdown power must be finite and >= 0.")
        self.shutdown_power = value

    def validate(self) -> None:
        super().validate()
        if self.end_time is None:
            raise ConfigurationError("ECPOperation: call set_time() before reset().")
        if self.control == ECPControl.ROD and not self.sequencer.insert_sequence:
            raise ConfigurationError("ECPOperation: rod control needs a rod insertion sequence.")
        if self.control == ECPControl.BORON and self.target_cbc is not None:
            raise ConfigurationError(
                "ECPOperation: target CBC only applies to rod control; boron control searches it."
            )

    def _configure_schedule(self) -> None:
        self.schedule.configure(self.end_time, self.time_step)

    def _on_reset(self) -> None:
        self._initial_power = None

    def _power_at(self, elapsed: float) -> float:
        return float(np.interp(
            elapsed, [0.0, self.shutdown_time], [self._initial_power, self.shutdown_power]
        ))

    def _insert_rods(self, elapsed: float, duration: float) -> Dict[str, float]:
        positions = self.catalogue.positions
        if elapsed >= self.shutdown_time - 1e-9 * self.time_step:
            move = self.sequencer.insert_fully(positions)
        else:
            started = elapsed - duration
            remaining = self.sequencer.remaining_travel(RodDirection.INSERT, positions)
            share = duration / (self.shutdown_time - started)
            move = self.sequencer.apply(RodDirection.INSERT, remaining * share, positions)
        self.catalogue.update_positions(move.positions)
        return move.positions

    def _step(self, option: CalculationOption, elapsed: float, duration: float) -> ResultSnapshot:
        if self._initial_power is None:
            self._initial_power = float(option.power_fraction)
        self.facade.deplete_poisons(
            XenonMode.TRANSIENT, SamariumMode.TRANSIENT, duration, self.xenon_factor,
            power_fraction=self._power_at(elapsed - duration),
        )
        power = self._power_at(elapsed)
        if self.control == ECPControl.BORON:
            request = transient_poisons(
                option, search=CriticalSearch.BORON, time=float(elapsed),
                power_fraction=power, rod_positions=self.catalogue.positions,
            )
        else:
            boron = self.target_cbc if self.target_cbc is not None else option.boron_ppm
            request = transient_poisons(
                option, search=CriticalSearch.NONE, boron_ppm=boron, time=float(elapsed),
                power_fraction=power, rod_positions=self._insert_rods(elapsed, duration),
            )
        return self.facade.solve_steady(request)
