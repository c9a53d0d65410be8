# ──────────────────────────────────────────────────────────────────────
# CoreOps — Xenon Dynamics Operation
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Free xenon/samarium relaxation at fixed power and rod configuration."""

from __future__ import annotations

from typing import Optional

from coreops.core.errors import ConfigurationError
from coreops.core.options import CalculationOption, SamariumMode, XenonMode
from coreops.core.results import ResultSnapshot

from .base import Operation, OperationKind, transient_poisons


class XenonDynamicsOperation(Operation):
    kind = OperationKind.XENON_DYNAMICS

    def __init__(self, facade) -> None:
        super().__init__(facade)
        self.end_time: Optional[float] = None
        self.time_step: Optional[float] = None

    def set_time(self, end_time: float, time_step: float) -> None:
        # raises on a malformed schedule
        self.schedule.configure(end_time, time_step)
        self.end_time = float(end_time)
        self.time_step = float(time_step)

    def _configure_schedule(self) -> None:
        if self.end_time is None or self.time_step is None:
            raise ConfigurationError("XenonDynamicsOperation: call set_time() before reset().")
        self.schedule.configure(self.end_time, self.time_step)

    def _step(self, option: CalculationOption, elapsed: float, duration: float) -> ResultSnapshot:
        samarium = SamariumMode.NONE if option.samarium == SamariumMode.NONE else SamariumMode.TRANSIENT
        self.facade.deplete_poisons(XenonMode.TRANSIENT, samarium, duration, self.xenon_factor)
        # rods stay where they are; the caller's option is passed through
        return self.facade.solve_steady(
            transient_poisons(option, time=float(elapsed), rod_positions=self.catalogue.positions)
        )
