# ──────────────────────────────────────────────────────────────────────
# CoreOps — Power Profiles
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Piecewise-linear power demand curves used by the power-maneuver operations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from coreops.core.errors import ConfigurationError
from coreops.core.options import ScenarioStep


@dataclass(frozen=True)
class PowerProfile:
    """Power fraction as a function of elapsed time (s).

    Outside the breakpoints the end values are held.
    """

    times: NDArray[np.float64]
    powers: NDArray[np.float64]

    def __post_init__(self) -> None:
        t = np.asarray(self.times, dtype=np.float64)
        p = np.asarray(self.powers, dtype=np.float64)
        if t.ndim != 1 or t.shape != p.shape or t.size < 1:
            raise ConfigurationError("power profile needs matching 1D time/power arrays.")
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(p))):
            raise ConfigurationError("power profile must be finite.")
        if np.any(np.diff(t) < 0.0):
            raise ConfigurationError("power profile times must be non-decreasing.")
        if np.any(p < 0.0):
            raise ConfigurationError("power profile values must be >= 0.")
        object.__setattr__(self, "times", t)
        object.__setattr__(self, "powers", p)

    @property
    def duration(self) -> float:
        return float(self.times[-1])

    def __call__(self, t: float) -> float:
        return float(np.interp(float(t), self.times, self.powers))


@dataclass(frozen=True)
class AsiBandTable:
    """(low, high) ASI limits as a function of power fraction.

    Both edges are interpolated linearly between the tabulated powers and
    held at the end values outside them.
    """

    powers: NDArray[np.float64]
    lows: NDArray[np.float64]
    highs: NDArray[np.float64]

    def __call__(self, power_fraction: float) -> Tuple[float, float]:
        p = float(power_fraction)
        return float(np.interp(p, self.powers, self.lows)), float(np.interp(p, self.powers, self.highs))


def asi_band_table(table: Mapping[float, Tuple[float, float]], label: str = "ASI band") -> AsiBandTable:
    """Build an :class:`AsiBandTable` from ``{power_fraction: (low, high)}``."""
    if not table:
        raise ConfigurationError(f"{label} needs at least one power level.")
    rows = sorted((float(p), float(lo), float(hi)) for p, (lo, hi) in table.items())
    arr = np.asarray(rows, dtype=np.float64)
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{label} must be finite.")
    if np.any(arr[:, 0] < 0.0) or np.any(np.diff(arr[:, 0]) <= 0.0):
        raise ConfigurationError(f"{label} power levels must be distinct and >= 0.")
    if np.any(arr[:, 1] > arr[:, 2]):
        raise ConfigurationError(f"{label} entries must be (low, high) with low <= high.")
    return AsiBandTable(arr[:, 0].copy(), arr[:, 1].copy(), arr[:, 2].copy())


def linear_ramp(initial: float, target: float, duration: float) -> PowerProfile:
    if duration <= 0.0:
        raise ConfigurationError("ramp duration must be > 0.")
    return PowerProfile(np.array([0.0, duration]), np.array([initial, target]))


def load_follow_profile(
    initial_power: float,
    target_power: float,
    power_down_rate: float,
    power_up_rate: float,
    duration: float,
    before_time: float = 2.0 * 3600,
    after_time: float = 2.0 * 3600,
) -> PowerProfile:
    """Hold, ramp to target, hold ``duration``, ramp back, hold.

    Powers are percent of nominal and rates percent per minute; the returned
    profile is in power fraction.
    """
    for name, value in (
        ("initial_power", initial_power),
        ("target_power", target_power),
        ("duration", duration),
        ("before_time", before_time),
        ("after_time", after_time),
    ):
        if not math.isfinite(float(value)) or float(value) < 0.0:
            raise ConfigurationError(f"{name} must be finite and >= 0.")
    for name, value in (("power_down_rate", power_down_rate), ("power_up_rate", power_up_rate)):
        if not math.isfinite(float(value)) or float(value) <= 0.0:
            raise ConfigurationError(f"{name} must be finite and > 0 (%/min).")

    p0 = float(initial_power) / 100.0
    p1 = float(target_power) / 100.0
    delta_pct = abs(float(target_power) - float(initial_power))
    going_down = target_power < initial_power
    out_rate = power_down_rate if going_down else power_up_rate
    back_rate = power_up_rate if going_down else power_down_rate
    ramp_out = 60.0 * delta_pct / float(out_rate)
    ramp_back = 60.0 * delta_pct / float(back_rate)

    t = 0.0
    times = [t]
    powers = [p0]
    for dt, p in (
        (float(before_time), p0),
        (ramp_out, p1),
        (float(duration), p1),
        (ramp_back, p0),
        (float(after_time), p0),
    ):
        if dt <= 0.0:
            continue
        t += dt
        times.append(t)
        powers.append(p)
    if t <= 0.0:
        raise ConfigurationError("power schedule has zero total length.")
    return PowerProfile(np.array(times), np.array(powers))


def scenario_profile(steps: Sequence[ScenarioStep], initial_power: float) -> PowerProfile:
    """Each scenario step ramps linearly from the previous power to its own."""
    if not steps:
        raise ConfigurationError("power scenario must contain at least one step.")
    times = [0.0]
    powers = [float(initial_power)]
    t = 0.0
    for step in steps:
        t += float(step.duration)
        times.append(t)
        powers.append(float(step.power_fraction))
    return PowerProfile(np.array(times), np.array(powers))


def scenario_index(steps: Sequence[ScenarioStep], elapsed: float, tolerance: float = 1e-9) -> Optional[int]:
    """Index of the scenario step whose interval contains the step ending at ``elapsed``."""
    edges = np.cumsum([float(s.duration) for s in steps])
    if edges.size == 0:
        return None
    idx = int(np.searchsorted(edges, float(elapsed) - tolerance * max(1.0, float(elapsed)), side="left"))
    return min(idx, edges.size - 1)

