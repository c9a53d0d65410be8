# ──────────────────────────────────────────────────────────────────────
# CoreOps — Calculation Options
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Per-call configuration bundles handed to the solver facade.

Enum values match the integer codes of the solver ABI so options can be
forwarded to a compiled backend unchanged.
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Mapping, Optional, Tuple

from .errors import ConfigurationError


class CriticalSearch(IntEnum):
    NONE = 0
    BORON = 1
    POWER = 2
    ROD = 3


class ShapeMatch(IntEnum):
    NONE = 0
    HOLD = 1
    MATCH = 2


class XenonMode(IntEnum):
    NONE = 0
    EQUILIBRIUM = 1
    TRANSIENT = 2
    FIXED = 3


class SamariumMode(IntEnum):
    NONE = 0
    TRANSIENT = 1
    FIXED = 2


class DepletionIsotope(IntEnum):
    ALL = 0
    FISSION_PRODUCTS = 1
    XENON = 2


class TimeUnit(IntEnum):
    SECONDS = 0
    HOURS = 1
    MWD_PER_TON = 2


class ECPControl(IntEnum):
    """Reactivity hold strategy during an emergency cooldown."""

    BORON = 0
    ROD = 1


def _require_finite(name: str, value: Any) -> float:
    out = float(value)
    if not math.isfinite(out):
        raise ConfigurationError(f"{name} must be finite.")
    return out


@dataclass(frozen=True)
class CalculationOption:
    """Immutable steady-state calculation request.

    Parameters
    ----------
    search : criticality search mode.
    shape_match : axial shape handling.
    xenon, samarium : poison treatment.
    fuel_temperature_feedback, moderator_temperature_feedback : feedback toggles.
    target_eigenvalue : eigenvalue the search drives towards.
    inlet_temperature : core inlet temperature (degC).
    power_fraction : power as a fraction of nominal.
    max_iterations, tolerance : convergence controls forwarded to the solver.
    boron_ppm : boron concentration (initial guess under boron search).
    time : time stamp attached to the request (s).
    rod_positions : rod group id -> position (cm above fully inserted).
    """

    search: CriticalSearch = CriticalSearch.BORON
    shape_match: ShapeMatch = ShapeMatch.NONE
    xenon: XenonMode = XenonMode.EQUILIBRIUM
    samarium: SamariumMode = SamariumMode.TRANSIENT
    fuel_temperature_feedback: bool = True
    moderator_temperature_feedback: bool = True
    target_eigenvalue: float = 1.0
    inlet_temperature: float = 290.0
    power_fraction: float = 1.0
    max_iterations: int = 100
    tolerance: float = 1e-5
    boron_ppm: float = 500.0
    time: float = 0.0
    rod_positions: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "search", CriticalSearch(self.search))
        object.__setattr__(self, "shape_match", ShapeMatch(self.shape_match))
        object.__setattr__(self, "xenon", XenonMode(self.xenon))
        object.__setattr__(self, "samarium", SamariumMode(self.samarium))
        if _require_finite("target_eigenvalue", self.target_eigenvalue) <= 0.0:
            raise ConfigurationError("target_eigenvalue must be > 0.")
        _require_finite("inlet_temperature", self.inlet_temperature)
        if _require_finite("power_fraction", self.power_fraction) < 0.0:
            raise ConfigurationError("power_fraction must be >= 0.")
        if isinstance(self.max_iterations, bool) or int(self.max_iterations) < 1:
            raise ConfigurationError("max_iterations must be an integer >= 1.")
        if _require_finite("tolerance", self.tolerance) <= 0.0:
            raise ConfigurationError("tolerance must be > 0.")
        if _require_finite("boron_ppm", self.boron_ppm) < 0.0:
            raise ConfigurationError("boron_ppm must be >= 0.")
        _require_finite("time", self.time)
        positions = {}
        for rod_id, pos in dict(self.rod_positions).items():
            positions[str(rod_id)] = _require_finite(f"rod_positions[{rod_id}]", pos)
        object.__setattr__(self, "rod_positions", positions)

    def with_changes(self, **changes: Any) -> "CalculationOption":
        """Return a copy with ``changes`` applied; the receiver is untouched."""
        if "rod_positions" in changes:
            changes["rod_positions"] = dict(changes["rod_positions"])
        return dataclasses.replace(self, **changes)

    def with_rods(self, positions: Mapping[str, float]) -> "CalculationOption":
        merged = dict(self.rod_positions)
        merged.update(positions)
        return self.with_changes(rod_positions=merged)


@dataclass(frozen=True)
class DepletionOption:
    """Depletion request used by caller-scripted operations."""

    isotope: DepletionIsotope = DepletionIsotope.ALL
    xenon: XenonMode = XenonMode.TRANSIENT
    samarium: SamariumMode = SamariumMode.TRANSIENT
    increment: float = 0.0
    time_unit: TimeUnit = TimeUnit.SECONDS
    xenon_amplification: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "isotope", DepletionIsotope(self.isotope))
        object.__setattr__(self, "xenon", XenonMode(self.xenon))
        object.__setattr__(self, "samarium", SamariumMode(self.samarium))
        object.__setattr__(self, "time_unit", TimeUnit(self.time_unit))
        if _require_finite("increment", self.increment) < 0.0:
            raise ConfigurationError("increment must be >= 0.")
        if self.xenon_amplification is not None:
            if _require_finite("xenon_amplification", self.xenon_amplification) < 0.0:
                raise ConfigurationError("xenon_amplification must be >= 0.")
        if self.isotope != DepletionIsotope.ALL and self.time_unit == TimeUnit.MWD_PER_TON:
            raise ConfigurationError("poison-only depletion needs a time increment, not MWD/tU.")

    @property
    def seconds(self) -> float:
        if self.time_unit == TimeUnit.HOURS:
            return float(self.increment) * 3600.0
        if self.time_unit == TimeUnit.SECONDS:
            return float(self.increment)
        raise ConfigurationError("burnup increments have no duration in seconds.")


@dataclass(frozen=True)
class ScenarioStep:
    """One leg of an explicit power-maneuver scenario.

    ``asi_allowance`` holds (low, high) offsets around ``target_asi``. A
    ``target_asi`` of ``None`` holds the ASI observed when the operation was
    reset.
    """

    duration: float
    power_fraction: float
    asi_allowance: Tuple[float, float] = (-0.05, 0.05)
    target_asi: Optional[float] = None
    control_asi: bool = False

    def __post_init__(self) -> None:
        if _require_finite("duration", self.duration) <= 0.0:
            raise ConfigurationError("scenario step duration must be > 0.")
        if _require_finite("power_fraction", self.power_fraction) < 0.0:
            raise ConfigurationError("scenario step power_fraction must be >= 0.")
        low, high = (float(v) for v in self.asi_allowance)
        if not (math.isfinite(low) and math.isfinite(high)) or low > high:
            raise ConfigurationError("asi_allowance must be a finite (low, high) pair with low <= high.")
        object.__setattr__(self, "asi_allowance", (low, high))
        if self.target_asi is not None:
            _require_finite("target_asi", self.target_asi)


@dataclass(frozen=True)
class MarginUncertainty:
    """Rod-worth fraction derating the bite, and an absolute reactivity (pcm)
    taken off the magnitude of the reported boron and moderator worths."""

    rod_worth: float = 0.0
    void_reactivity: float = 0.0

    def __post_init__(self) -> None:
        rod = _require_finite("rod_worth", self.rod_worth)
        if rod < 0.0 or rod >= 1.0:
            raise ConfigurationError("rod_worth uncertainty must be in [0, 1).")
        if _require_finite("void_reactivity", self.void_reactivity) < 0.0:
            raise ConfigurationError("void_reactivity uncertainty must be >= 0.")


@dataclass(frozen=True)
class StuckRodScenario:
    """Failed rod plus additional stuck candidates, in evaluation order."""

    failed_rod: str
    stuck_rods: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        stuck = tuple(str(r) for r in self.stuck_rods)
        object.__setattr__(self, "stuck_rods", stuck)
        candidates = self.candidates
        if len(set(candidates)) != len(candidates):
            raise ConfigurationError(
                f"stuck-rod candidates must be unique, got {list(candidates)}"
            )

    @property
    def candidates(self) -> Tuple[str, ...]:
        return (str(self.failed_rod),) + self.stuck_rods
