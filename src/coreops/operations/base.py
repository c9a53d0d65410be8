# ──────────────────────────────────────────────────────────────────────
# CoreOps — Operation State Machine
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Shared machinery of the time-stepping operations.

Every operation is a three-state machine ``UNSTARTED -> RUNNING -> COMPLETE``:
``reset()`` validates the configuration and starts it, each ``run_step``
consumes one schedule step (one solve), and exhausting the schedule completes
it. Rod positions live in the facade's rod catalogue; operations only keep a
per-step history of what they commanded.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from coreops.control.rods import RodCatalogue, RodSequencer
from coreops.control.schedule import TimeStepSchedule
from coreops.core.errors import ConfigurationError, OperationComplete, OperationNotStarted
from coreops.core.facade import SolverFacade
from coreops.core.options import CalculationOption, SamariumMode, XenonMode
from coreops.core.results import ResultSnapshot

logger = logging.getLogger(__name__)


class OperationState(Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    COMPLETE = "complete"


class OperationKind(Enum):
    """Tag selecting an operation variant in :func:`create_operation`."""

    XENON_DYNAMICS = "xenon"
    FLEXIBLE = "flexible"
    COASTDOWN = "coastdown"
    ECP = "ecp"
    STARTUP = "startup"
    GENERAL = "general"


def excess_reactivity_pcm(eigenvalue: float, target_eigenvalue: float) -> float:
    """Reactivity of ``eigenvalue`` relative to ``target_eigenvalue`` (pcm)."""
    k = float(eigenvalue)
    kt = float(target_eigenvalue)
    return (k - kt) / (k * kt) * 1.0e5


def transient_poisons(option: CalculationOption, **changes: Any) -> CalculationOption:
    """Switch enabled poisons to transient treatment so they keep evolving."""
    xenon = XenonMode.NONE if option.xenon == XenonMode.NONE else XenonMode.TRANSIENT
    samarium = SamariumMode.NONE if option.samarium == SamariumMode.NONE else SamariumMode.TRANSIENT
    return option.with_changes(xenon=xenon, samarium=samarium, **changes)


class Operation:
    """Base class for schedule-driven operations."""

    kind: OperationKind
    # False for caller-driven operations that step without a time schedule
    scheduled = True

    def __init__(self, facade: SolverFacade) -> None:
        self.facade = facade
        self.sequencer = RodSequencer(facade.rod_catalogue)
        self.schedule = TimeStepSchedule()
        self.xenon_factor = 1.0
        self._xenon_factor_set = False
        self._state = OperationState.UNSTARTED
        self._needs_seed = True
        self._seed_positions: Optional[Dict[str, float]] = None
        self.rod_history: List[Dict[str, float]] = []
        self.steps_taken = 0

    # ── Configuration ───────────────────────────────────────────────────

    @property
    def catalogue(self) -> RodCatalogue:
        return self.facade.rod_catalogue

    @property
    def state(self) -> OperationState:
        return self._state

    def set_xenon_factor(self, factor: float) -> None:
        value = float(factor)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("xenon factor must be finite and >= 0.")
        self.xenon_factor = value
        self._xenon_factor_set = True

    def set_rod_in_sequence(self, rod_ids: Sequence[str], rod_limits: Sequence[float]) -> None:
        self.sequencer.set_insert_sequence(rod_ids, rod_limits)

    def set_rod_out_sequence(self, rod_ids: Sequence[str], rod_limits: Sequence[float]) -> None:
        self.sequencer.set_withdraw_sequence(rod_ids, rod_limits)

    def seed_positions(self, positions: Optional[Mapping[str, float]]) -> None:
        """Use ``positions`` instead of the first step's option as the starting rods."""
        if positions is None:
            self._seed_positions = None
            return
        self.catalogue.require(positions)
        self._seed_positions = {k: float(v) for k, v in positions.items()}

    # ── State machine ───────────────────────────────────────────────────

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if the operation cannot start."""
        if self.sequencer.catalogue is not self.facade.rod_catalogue:
            raise ConfigurationError(
                "the facade's rod catalogue was replaced after this operation was built."
            )

    def _configure_schedule(self) -> None:
        """Hook: (re)configure ``self.schedule`` from the operation settings."""

    def _on_reset(self) -> None:
        """Hook: clear per-run policy state."""

    def reset(self) -> None:
        self.validate()
        self._configure_schedule()
        if self.scheduled and not self.schedule.configured:
            raise ConfigurationError(f"{type(self).__name__}: time schedule is not configured.")
        self.schedule.reset()
        self._needs_seed = True
        self.rod_history = []
        self.steps_taken = 0
        self._on_reset()
        self._state = OperationState.RUNNING

    def has_next(self) -> bool:
        return self._state == OperationState.RUNNING and self.schedule.has_next()

    def next(self) -> bool:
        return self.has_next()

    def _require_step(self) -> None:
        if self._state == OperationState.UNSTARTED:
            raise OperationNotStarted(f"{type(self).__name__}: call reset() before run_step().")
        if not self.has_next():
            raise OperationComplete(
                f"{type(self).__name__}: schedule complete at t={self.schedule.elapsed:g}s."
            )

    def _seed(self, option: CalculationOption) -> None:
        if not self._needs_seed:
            return
        positions = self._seed_positions if self._seed_positions is not None else option.rod_positions
        self.catalogue.update_positions(positions)
        self._needs_seed = False

    def run_step(self, option: CalculationOption) -> ResultSnapshot:
        self._require_step()
        self.catalogue.require(option.rod_positions)
        self._seed(option)
        elapsed, duration = self.schedule.advance()
        result = self._step(option, elapsed, duration)
        self._record(result, elapsed)
        if not self.schedule.has_next():
            self._state = OperationState.COMPLETE
        return result

    def run(self, option: CalculationOption) -> Iterator[ResultSnapshot]:
        while self.has_next():
            yield self.run_step(option)

    def _step(self, option: CalculationOption, elapsed: float, duration: float) -> ResultSnapshot:
        raise NotImplementedError

    # ── Helpers ─────────────────────────────────────────────────────────

    def _solve(self, option: CalculationOption, elapsed: float, **changes: Any) -> ResultSnapshot:
        request = option.with_changes(time=float(elapsed), **changes)
        return self.facade.solve_steady(request)

    def _record(self, result: ResultSnapshot, elapsed: float) -> None:
        self.steps_taken += 1
        self.rod_history.append(dict(result.rod_positions))
        context = {
            "operation": self.kind.value,
            "step": self.steps_taken,
            "time_s": float(elapsed),
            "error": int(result.error),
        }
        if result.ok:
            logger.info(
                "%s step %d t=%.1fs P=%.4f keff=%.6f ppm=%.1f asi=%.4f",
                self.kind.value,
                self.steps_taken,
                elapsed,
                result.power_fraction,
                result.eigenvalue,
                result.ppm,
                result.asi,
                extra={"operation_context": context},
            )
        else:
            logger.warning(
                "%s step %d t=%.1fs solver returned error code %d",
                self.kind.value,
                self.steps_taken,
                elapsed,
                int(result.error),
                extra={"operation_context": context},
            )

    def _last_result(self) -> Optional[ResultSnapshot]:
        last = self.facade.get_result()
        if last is None or not last.ok:
            return None
        return last
