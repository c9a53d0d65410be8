# ──────────────────────────────────────────────────────────────────────
# CoreOps — Shutdown Margin Analyzer
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Shutdown margin under a stuck-rod assumption.

Every worth is a difference of static reactivities ``(k - 1) / k * 1e5``
between two solves that share boron, power and rods except for the one
quantity being varied. The nominal solve fixes those shared values; all
later solves run without a criticality search so the differences are pure
worths.

Margin (pcm, positive means subcritical with reserve)::

    margin = bite * (1 - rod_uncertainty)
             - stuck_rod_worth - power_defect
             - xenon_worth - samarium_worth

The void uncertainty is an absolute reactivity (pcm) that shrinks the
reported boron and moderator-temperature worths toward zero; it does not
enter the margin.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Mapping, Optional, Sequence, Tuple

from coreops.core.errors import ConfigurationError
from coreops.core.options import (
    CalculationOption,
    CriticalSearch,
    MarginUncertainty,
    SamariumMode,
    StuckRodScenario,
    XenonMode,
)
from coreops.core.results import MarginResult, ResultSnapshot

logger = logging.getLogger(__name__)

BORON_STEP_PPM = 10.0
INLET_STEP_C = 1.0


def combine_margin(
    bite_worth: float,
    stuck_rod_worth: float,
    power_defect: float,
    xenon_worth: float,
    samarium_worth: float,
    uncertainty: MarginUncertainty,
) -> float:
    """Net shutdown margin (pcm) from its components and uncertainties."""
    derated_bite = float(bite_worth) * (1.0 - uncertainty.rod_worth)
    return (
        derated_bite
        - float(stuck_rod_worth)
        - float(power_defect)
        - float(xenon_worth)
        - float(samarium_worth)
    )


def derate_worth(worth: float, uncertainty: float) -> float:
    """Shrink |worth| by ``uncertainty``, keeping its sign and stopping at zero."""
    worth = float(worth)
    return math.copysign(max(abs(worth) - float(uncertainty), 0.0), worth)


def governing_stuck_rod(worths: Sequence[Tuple[str, float]]) -> Tuple[str, float]:
    """Largest worth wins; on equal worth the earlier candidate is kept."""
    if not worths:
        raise ConfigurationError("no stuck-rod candidates to evaluate.")
    best_id, best = worths[0]
    for rod_id, worth in worths[1:]:
        if worth > best:
            best_id, best = rod_id, worth
    return best_id, best


class ShutdownMarginAnalyzer:
    """Stuck-rod shutdown margin evaluated through a :class:`SolverFacade`."""

    def __init__(self, facade) -> None:
        self.facade = facade
        self.uncertainty = MarginUncertainty()
        self.scenario: Optional[StuckRodScenario] = None
        self.last_result: Optional[MarginResult] = None

    def set_rod_uncertainty(self, fraction: float) -> None:
        self.uncertainty = MarginUncertainty(fraction, self.uncertainty.void_reactivity)

    def set_void_uncertainty(self, pcm: float) -> None:
        self.uncertainty = MarginUncertainty(self.uncertainty.rod_worth, pcm)

    def set_stuck_rods(self, failed_rod: str, stuck_rods: Sequence[str] = ()) -> None:
        scenario = StuckRodScenario(failed_rod, tuple(stuck_rods))
        self.facade.rod_catalogue.require(scenario.candidates)
        self.scenario = scenario

    def reset(self) -> None:
        self.last_result = None

    # ── Solves ──────────────────────────────────────────────────────────

    def _rho(self, option: CalculationOption, label: str) -> float:
        result = self.facade.solve_steady(option)
        rho = result.reactivity_pcm if result.ok else float("nan")
        if not result.ok:
            logger.warning("shutdown margin: %s solve failed with error code %d", label, int(result.error))
        logger.debug("shutdown margin: rho(%s) = %.1f pcm", label, rho)
        return rho

    def _configuration(self, inserted: Mapping[str, float], nominal: Mapping[str, float],
                       keep: Sequence[str]) -> Dict[str, float]:
        rods = dict(inserted)
        for rod_id in keep:
            rods[rod_id] = nominal[rod_id]
        return rods

    def _nominal(self, option: CalculationOption) -> ResultSnapshot:
        catalogue = self.facade.rod_catalogue
        rods = catalogue.positions
        rods.update(option.rod_positions)
        return self.facade.solve_steady(option.with_changes(rod_positions=rods))

    def _failed(self, stuck_rod: str) -> MarginResult:
        nan = float("nan")
        result = MarginResult(nan, nan, stuck_rod, nan, nan, nan, nan, nan, nan)
        self.last_result = result
        return result

    def run(self, dt: float, option: CalculationOption) -> MarginResult:
        if self.scenario is None:
            raise ConfigurationError("ShutdownMarginAnalyzer: call set_stuck_rods() before run().")
        dt = float(dt)
        if not math.isfinite(dt) or dt < 0.0:
            raise ConfigurationError("dt must be finite and >= 0.")
        catalogue = self.facade.rod_catalogue
        catalogue.require(option.rod_positions)
        candidates = self.scenario.candidates
        catalogue.require(candidates)

        nominal = self._nominal(option)
        if not nominal.ok:
            logger.warning("shutdown margin: nominal solve failed with error code %d", int(nominal.error))
            return self._failed(self.scenario.failed_rod)
        nominal_rods = dict(nominal.rod_positions)
        base = option.with_changes(
            search=CriticalSearch.NONE,
            boron_ppm=float(nominal.ppm),
            power_fraction=float(nominal.power_fraction),
            rod_positions=nominal_rods,
        )

        try:
            all_in = catalogue.all_in()
            rho_out = self._rho(base.with_changes(rod_positions=catalogue.all_out()), "all rods out")
            rho_bite = self._rho(
                base.with_changes(rod_positions=self._configuration(all_in, nominal_rods, candidates)),
                "all rods in except stuck candidates",
            )
            bite = rho_out - rho_bite

            rho_all_in = self._rho(base.with_changes(rod_positions=all_in), "all rods in")
            worths = []
            for rod_id in candidates:
                rods = dict(all_in)
                rods[rod_id] = catalogue.group(rod_id).top
                worths.append((rod_id, self._rho(base.with_changes(rod_positions=rods), f"{rod_id} out") - rho_all_in))
            stuck_rod, stuck_worth = governing_stuck_rod(worths)

            poisoned = base
            if dt > 0.0:
                xenon = XenonMode.NONE if option.xenon == XenonMode.NONE else XenonMode.TRANSIENT
                samarium = SamariumMode.NONE if option.samarium == SamariumMode.NONE else SamariumMode.TRANSIENT
                # poisons evolve after the trip, at zero power
                self.facade.deplete_poisons(xenon, samarium, dt, 1.0, power_fraction=0.0)
                poisoned = base.with_changes(xenon=xenon, samarium=samarium)

            rho_poisoned = self._rho(poisoned, "poisoned")
            hfp_no_xe = self._rho(poisoned.with_changes(xenon=XenonMode.NONE), "xenon-free")
            hzp_no_xe = self._rho(
                poisoned.with_changes(xenon=XenonMode.NONE, power_fraction=0.0), "zero power, xenon-free"
            )
            power_defect = hzp_no_xe - hfp_no_xe
            xenon_worth = 0.0 if option.xenon == XenonMode.NONE else hfp_no_xe - rho_poisoned
            if option.samarium == SamariumMode.NONE:
                samarium_worth = 0.0
            else:
                samarium_worth = self._rho(poisoned.with_changes(samarium=SamariumMode.NONE), "samarium-free") - rho_poisoned

            b_hi = poisoned.boron_ppm + BORON_STEP_PPM
            b_lo = max(poisoned.boron_ppm - BORON_STEP_PPM, 0.0)
            boron_worth = (
                self._rho(poisoned.with_changes(boron_ppm=b_hi), "boron +")
                - self._rho(poisoned.with_changes(boron_ppm=b_lo), "boron -")
            ) / (b_hi - b_lo)
            t_in = float(poisoned.inlet_temperature)
            tm_worth = (
                self._rho(poisoned.with_changes(inlet_temperature=t_in + INLET_STEP_C), "inlet +")
                - self._rho(poisoned.with_changes(inlet_temperature=t_in - INLET_STEP_C), "inlet -")
            ) / (2.0 * INLET_STEP_C)
        finally:
            catalogue.update_positions(nominal_rods)

        margin = combine_margin(bite, stuck_worth, power_defect, xenon_worth, samarium_worth, self.uncertainty)
        result = MarginResult(
            bite_worth=bite,
            power_defect=power_defect,
            stuck_rod=stuck_rod,
            stuck_rod_worth=stuck_worth,
            margin=margin,
            xenon_worth=xenon_worth,
            samarium_worth=samarium_worth,
            boron_worth=derate_worth(boron_worth, self.uncertainty.void_reactivity),
            moderator_temperature_worth=derate_worth(tm_worth, self.uncertainty.void_reactivity),
        )
        logger.info(
            "shutdown margin %.1f pcm (bite %.1f, stuck %s %.1f, defect %.1f, Xe %.1f, Sm %.1f)",
            margin, bite, stuck_rod, stuck_worth, power_defect, xenon_worth, samarium_worth,
            extra={"operation_context": {"operation": "shutdown_margin", "dt_s": dt, **result.to_dict()}},
        )
        self.last_result = result
        return result
