# ──────────────────────────────────────────────────────────────────────
# CoreOps — Result Snapshots
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Result containers produced by the solver facade and the margin analyzer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Mapping, Tuple

import numpy as np
from numpy.typing import NDArray


class SolverStatus(IntEnum):
    OK = 0
    NOT_CONVERGED = 1
    SEARCH_OUT_OF_RANGE = 2


@dataclass(frozen=True)
class CoreGeometry:
    """Core layout as reported by the solver."""

    axial_node_count: int
    assembly_count: int
    active_fuel_bounds: Tuple[int, int]
    assembly_layout: Tuple[Tuple[int, int], ...]
    axial_node_heights: Tuple[float, ...]

    def __post_init__(self) -> None:
        if self.axial_node_count < 1 or self.assembly_count < 1:
            raise ValueError("geometry must have at least one axial node and one assembly.")
        if len(self.axial_node_heights) != self.axial_node_count:
            raise ValueError(
                f"axial_node_heights must have {self.axial_node_count} entries "
                f"(got {len(self.axial_node_heights)})."
            )
        lo, hi = self.active_fuel_bounds
        if not 0 <= lo <= hi < self.axial_node_count:
            raise ValueError("active_fuel_bounds must lie inside the axial mesh.")

    @property
    def height(self) -> float:
        return float(sum(self.axial_node_heights))

    def node_midpoints(self) -> NDArray[np.float64]:
        hz = np.asarray(self.axial_node_heights, dtype=np.float64)
        return np.cumsum(hz) - 0.5 * hz


@dataclass(frozen=True)
class ResultSnapshot:
    """Output of one steady-state solve.

    A non-zero ``error`` invalidates every other field; failures carry NaN
    scalars and NaN-filled arrays of the declared sizes.
    """

    error: int
    eigenvalue: float
    ppm: float
    fq: float
    fxy: float
    fr: float
    fz: float
    asi: float
    fuel_temperature: float
    moderator_temperature: float
    power_fraction: float
    assembly_power: NDArray[np.float64]
    axial_power: NDArray[np.float64]
    time: float
    burnup: float
    rod_positions: Mapping[str, float] = field(default_factory=dict)
    assembly_count: int = -1
    axial_node_count: int = -1

    def __post_init__(self) -> None:
        object.__setattr__(self, "assembly_power", np.asarray(self.assembly_power, dtype=np.float64))
        object.__setattr__(self, "axial_power", np.asarray(self.axial_power, dtype=np.float64))
        object.__setattr__(self, "rod_positions", dict(self.rod_positions))
        if self.assembly_count < 0:
            object.__setattr__(self, "assembly_count", int(self.assembly_power.size))
        if self.axial_node_count < 0:
            object.__setattr__(self, "axial_node_count", int(self.axial_power.size))
        if self.assembly_power.shape != (self.assembly_count,):
            raise ValueError(
                f"assembly_power must have {self.assembly_count} entries "
                f"(got {self.assembly_power.size})."
            )
        if self.axial_power.shape != (self.axial_node_count,):
            raise ValueError(
                f"axial_power must have {self.axial_node_count} entries "
                f"(got {self.axial_power.size})."
            )

    @property
    def ok(self) -> bool:
        return int(self.error) == 0

    @property
    def reactivity_pcm(self) -> float:
        """Static reactivity (k - 1) / k in pcm."""
        return float((self.eigenvalue - 1.0) / self.eigenvalue * 1.0e5)

    @classmethod
    def failure(
        cls,
        error: int,
        geometry: CoreGeometry,
        *,
        time: float,
        burnup: float,
        rod_positions: Mapping[str, float],
    ) -> "ResultSnapshot":
        nan = float("nan")
        return cls(
            error=int(error),
            eigenvalue=nan,
            ppm=nan,
            fq=nan,
            fxy=nan,
            fr=nan,
            fz=nan,
            asi=nan,
            fuel_temperature=nan,
            moderator_temperature=nan,
            power_fraction=nan,
            assembly_power=np.full(geometry.assembly_count, nan),
            axial_power=np.full(geometry.axial_node_count, nan),
            time=float(time),
            burnup=float(burnup),
            rod_positions=rod_positions,
            assembly_count=geometry.assembly_count,
            axial_node_count=geometry.axial_node_count,
        )

    def summary(self) -> Dict[str, Any]:
        """Scalar view used by logging and history export."""
        out: Dict[str, Any] = {
            "time_s": float(self.time),
            "error": int(self.error),
            "eigenvalue": float(self.eigenvalue),
            "ppm": float(self.ppm),
            "power_fraction": float(self.power_fraction),
            "asi": float(self.asi),
            "fq": float(self.fq),
            "fr": float(self.fr),
            "fz": float(self.fz),
            "tf_c": float(self.fuel_temperature),
            "tm_c": float(self.moderator_temperature),
            "burnup": float(self.burnup),
        }
        for rod_id, pos in sorted(self.rod_positions.items()):
            out[f"rod_{rod_id}"] = float(pos)
        return out


@dataclass(frozen=True)
class MarginResult:
    """Shutdown margin breakdown; worths in pcm, sensitivities in pcm per unit."""

    bite_worth: float
    power_defect: float
    stuck_rod: str
    stuck_rod_worth: float
    margin: float
    xenon_worth: float
    samarium_worth: float
    boron_worth: float
    moderator_temperature_worth: float

    @property
    def adequate(self) -> bool:
        return self.margin > 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bite_worth": float(self.bite_worth),
            "power_defect": float(self.power_defect),
            "stuck_rod": self.stuck_rod,
            "stuck_rod_worth": float(self.stuck_rod_worth),
            "margin": float(self.margin),
            "xenon_worth": float(self.xenon_worth),
            "samarium_worth": float(self.samarium_worth),
            "boron_worth": float(self.boron_worth),
            "moderator_temperature_worth": float(self.moderator_temperature_worth),
        }
