# ──────────────────────────────────────────────────────────────────────
# CoreOps — General (Caller-Scripted) Operation
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Caller-scripted operation without a schedule.

Each ``run_step(option, depletion)`` solves once and then depletes once as
requested by ``depletion``. The operation never completes on its own.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Iterator, Tuple

from coreops.core.errors import ConfigurationError
from coreops.core.options import (
    CalculationOption,
    DepletionIsotope,
    DepletionOption,
    SamariumMode,
    TimeUnit,
)
from coreops.core.results import ResultSnapshot

from .base import Operation, OperationKind, OperationState

logger = logging.getLogger(__name__)


class GeneralOperation(Operation):
    kind = OperationKind.GENERAL
    scheduled = False

    def __init__(self, facade) -> None:
        super().__init__(facade)
        self.elapsed = 0.0

    def _on_reset(self) -> None:
        self.elapsed = 0.0

    def has_next(self) -> bool:
        return self.state == OperationState.RUNNING

    def _xenon_factor_for(self, depletion: DepletionOption) -> float:
        amp = depletion.xenon_amplification
        if amp is None:
            return self.xenon_factor
        if self._xenon_factor_set and not math.isclose(float(amp), self.xenon_factor):
            raise ConfigurationError(
                f"xenon amplification {amp:g} conflicts with the operation xenon factor "
                f"{self.xenon_factor:g}; set only one of them."
            )
        return float(amp)

    def _deplete(self, depletion: DepletionOption) -> float:
        """Apply ``depletion`` and return the seconds it covered (0 for burnup steps)."""
        factor = self._xenon_factor_for(depletion)
        if depletion.isotope == DepletionIsotope.ALL:
            if depletion.time_unit == TimeUnit.MWD_PER_TON:
                self.facade.deplete_by_burnup(depletion.xenon, depletion.samarium, depletion.increment)
                return 0.0
            seconds = depletion.seconds
            self.facade.deplete_by_time(depletion.xenon, depletion.samarium, seconds, factor)
            return seconds
        seconds = depletion.seconds
        # xenon-only depletion leaves samarium where it is
        samarium = depletion.samarium if depletion.isotope == DepletionIsotope.FISSION_PRODUCTS else SamariumMode.FIXED
        self.facade.deplete_poisons(depletion.xenon, samarium, seconds, factor)
        return seconds

    def run_step(self, option: CalculationOption, depletion: DepletionOption) -> ResultSnapshot:
        self._require_step()
        self.catalogue.require(option.rod_positions)
        # xenon settings are checked before any solve
        self._xenon_factor_for(depletion)
        # the caller scripts rods directly; the arena takes whatever it commands
        self.catalogue.update_positions(option.rod_positions)
        result = self._solve(option, self.elapsed, rod_positions=self.catalogue.positions)
        self._record(result, self.elapsed)
        self.elapsed += self._deplete(depletion)
        return result

    def run(self, steps: Iterable[Tuple[CalculationOption, DepletionOption]]) -> Iterator[ResultSnapshot]:
        for option, depletion in steps:
            yield self.run_step(option, depletion)
