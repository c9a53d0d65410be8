# ──────────────────────────────────────────────────────────────────────
# CoreOps — Startup Operation
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Return to power after a shutdown.

The startup wraps a :class:`FlexibleOperation` for the power ramp. Its own
job is the initial condition: poisons decay over the prior shutdown at zero
power and the rods start from the configured startup configuration. The
facade state before the first ``reset()`` is kept in a snapshot so every
later ``reset()`` begins from the same point.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterator, Mapping, Optional, Sequence, Tuple

from coreops.core.errors import ConfigurationError
from coreops.core.options import CalculationOption, SamariumMode, ScenarioStep, XenonMode
from coreops.core.results import ResultSnapshot

from .base import OperationKind, OperationState
from .flexible import FlexibleOperation

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_ID = 9001


class StartupOperation:
    kind = OperationKind.STARTUP

    def __init__(self, facade, snapshot_id: int = DEFAULT_SNAPSHOT_ID) -> None:
        self.facade = facade
        self.ramp = FlexibleOperation(facade)
        self.ramp.kind = OperationKind.STARTUP
        self.snapshot_id = int(snapshot_id)
        self.shutdown_time = 0.0
        self.initial_rod_positions: Optional[Dict[str, float]] = None
        self._snapshot_saved = False

    # ── Own configuration ───────────────────────────────────────────────

    def set_shutdown_time(self, seconds: float) -> None:
        value = float(seconds)
        if not math.isfinite(value) or value < 0.0:
            raise ConfigurationError("shutdown time must be finite and >= 0.")
        self.shutdown_time = value

    def set_initial_rod_positions(self, positions: Mapping[str, float]) -> None:
        self.facade.rod_catalogue.require(positions)
        self.initial_rod_positions = {k: float(v) for k, v in positions.items()}

    # ── Forwarded ramp configuration ────────────────────────────────────

    def set_time_step(self, time_step: float) -> None:
        self.ramp.set_time_step(time_step)

    def set_end_time(self, end_time: Optional[float]) -> None:
        self.ramp.set_end_time(end_time)

    def set_power_schedule(self, *args, **kwargs) -> None:
        self.ramp.set_power_schedule(*args, **kwargs)

    def set_power_scenario(self, scenario: Sequence[ScenarioStep]) -> None:
        self.ramp.set_power_scenario(scenario)

    def set_fuel_depletion(self, fuel_depletion: bool) -> None:
        self.ramp.set_fuel_depletion(fuel_depletion)

    def set_asi_rod_gain(self, gain: float) -> None:
        self.ramp.set_asi_rod_gain(gain)

    def set_asi_band(self, table: Optional[Mapping[float, Tuple[float, float]]]) -> None:
        self.ramp.set_asi_band(table)

    def set_asi_allowance(self, table: Optional[Mapping[float, Tuple[float, float]]]) -> None:
        self.ramp.set_asi_allowance(table)

    def set_xenon_factor(self, factor: float) -> None:
        self.ramp.set_xenon_factor(factor)

    def set_rod_in_sequence(self, rod_ids: Sequence[str], rod_limits: Sequence[float]) -> None:
        self.ramp.set_rod_in_sequence(rod_ids, rod_limits)

    def set_rod_out_sequence(self, rod_ids: Sequence[str], rod_limits: Sequence[float]) -> None:
        self.ramp.set_rod_out_sequence(rod_ids, rod_limits)

    # ── State machine ───────────────────────────────────────────────────

    @property
    def state(self) -> OperationState:
        return self.ramp.state

    @property
    def schedule(self):
        return self.ramp.schedule

    @property
    def rod_history(self):
        return self.ramp.rod_history

    def reset(self) -> None:
        self.ramp.validate()
        if self._snapshot_saved:
            self.facade.load_snapshot(self.snapshot_id)
        else:
            self.facade.save_snapshot(self.snapshot_id)
            self._snapshot_saved = True
        if self.shutdown_time > 0.0:
            self.facade.deplete_poisons(
                XenonMode.TRANSIENT, SamariumMode.TRANSIENT, self.shutdown_time,
                self.ramp.xenon_factor, power_fraction=0.0,
            )
            logger.info("startup: poisons decayed over %.0fs of shutdown", self.shutdown_time)
        self.ramp.seed_positions(self.initial_rod_positions)
        self.ramp.reset()

    def has_next(self) -> bool:
        return self.ramp.has_next()

    def next(self) -> bool:
        return self.ramp.has_next()

    def run_step(self, option: CalculationOption) -> ResultSnapshot:
        return self.ramp.run_step(option)

    def run(self, option: CalculationOption) -> Iterator[ResultSnapshot]:
        return self.ramp.run(option)
