# ──────────────────────────────────────────────────────────────────────
# CoreOps — Reference Point-Model Solver
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Deterministic lumped-parameter core model implementing ``SolverFacade``.

Reactivity balance (pcm)::

    rho = excess(burnup) - alpha_B * ppm - sum_g W_g * S(x_g)
          - Doppler(T_fuel) - alpha_M * (T_mod - T_ref)
          - W_Xe * X / X_eq(100%) - W_Sm * S / S_eq

with the rod integral-worth S-curve ``S(x) = x - sin(2 pi x) / (2 pi)`` of the
inserted fraction ``x``. The I-135/Xe-135 and Pm-149/Sm-149 chains are
linear at constant power and are advanced exactly with a matrix exponential.

This is a stand-in for a production nodal code: it honours the facade
contract (searches, error codes, snapshots, geometry-sized arrays) so the
operation layer can be exercised end to end.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from scipy.interpolate import RegularGridInterpolator
from scipy.linalg import expm
from scipy.optimize import brentq

from coreops.control.rods import RodCatalogue
from coreops.core.errors import ConfigurationError, InitializationError
from coreops.core.options import CalculationOption, CriticalSearch, SamariumMode, XenonMode
from coreops.core.results import CoreGeometry, ResultSnapshot, SolverStatus

logger = logging.getLogger(__name__)

# Decay constants (1/s) and cumulative fission yields.
LAMBDA_I = 2.93e-5
LAMBDA_XE = 2.11e-5
LAMBDA_PM = 3.63e-6
GAMMA_I = 0.0639
GAMMA_XE = 0.00237
GAMMA_PM = 0.0113
KELVIN = 273.15


# ── Input documents ─────────────────────────────────────────────────────────


class GeometryModel(BaseModel):
    model_config = ConfigDict(extra='allow')
    axial_node_heights: List[float] = Field(default_factory=lambda: [19.05] * 20)
    active_fuel_bounds: Tuple[int, int] = (0, 19)
    assembly_layout: List[Tuple[int, int]] = Field(
        default_factory=lambda: [(1, 3), (0, 4), (0, 4), (0, 4), (1, 3)]
    )

    @field_validator("axial_node_heights")
    @classmethod
    def positive_heights(cls, v: List[float]):
        if not v or any((not math.isfinite(h)) or h <= 0.0 for h in v):
            raise ValueError("axial_node_heights must be a non-empty list of positive values")
        return v

    @field_validator("assembly_layout")
    @classmethod
    def ordered_rows(cls, v: List[Tuple[int, int]]):
        if not v or any(end < start for start, end in v):
            raise ValueError("assembly_layout rows must satisfy start <= end")
        return v

    def to_geometry(self) -> CoreGeometry:
        count = sum(end - start + 1 for start, end in self.assembly_layout)
        return CoreGeometry(
            axial_node_count=len(self.axial_node_heights),
            assembly_count=count,
            active_fuel_bounds=tuple(self.active_fuel_bounds),
            assembly_layout=tuple(tuple(r) for r in self.assembly_layout),
            axial_node_heights=tuple(float(h) for h in self.axial_node_heights),
        )


class CoefficientModel(BaseModel):
    """Reactivity coefficients; worths in pcm."""

    model_config = ConfigDict(extra='allow')
    excess_bol: float = 12000.0
    burnup_slope: float = Field(default=1.1, ge=0)
    boron_coefficient: float = Field(default=8.0, gt=0)
    doppler_coefficient: float = Field(default=110.0, ge=0)
    moderator_coefficient: float = Field(default=25.0)
    reference_moderator_temperature: float = 290.0
    fuel_temperature_rise: float = Field(default=520.0, ge=0)
    core_temperature_rise: float = Field(default=30.0, ge=0)
    xenon_worth: float = Field(default=2800.0, ge=0)
    samarium_worth: float = Field(default=700.0, ge=0)
    xenon_burnout: float = Field(default=6.5e-5, gt=0)
    samarium_burnout: float = Field(default=1.1e-6, gt=0)
    default_rod_worth: float = Field(default=1200.0, ge=0)
    rod_worths: Dict[str, float] = Field(default_factory=dict)
    regulating_group: Optional[str] = None
    specific_power: float = Field(default=38.0, gt=0)
    asi_bias: float = -0.02
    rod_skew: float = 0.8
    power_skew: float = 0.05


class FormFunctionModel(BaseModel):
    model_config = ConfigDict(extra='allow')
    radial_weights: Optional[List[float]] = None
    pin_peaking: float = Field(default=1.05, ge=1.0)


def _read_model(path: str, model: type, label: str):
    p = Path(path)
    if not p.is_file():
        raise InitializationError(f"{label} file not found: {path}")
    try:
        return model.model_validate_json(p.read_text(encoding="utf-8"))
    except (ValidationError, ValueError) as exc:
        raise InitializationError(f"malformed {label} file {path}: {exc}") from exc


# ── Internal state ──────────────────────────────────────────────────────────


@dataclass
class _CoreState:
    clock: float = 0.0
    burnup: float = 0.0
    iodine: float = 0.0
    xenon: float = 0.0
    promethium: float = 0.0
    samarium: float = 0.0
    power: float = 1.0
    result: Optional[ResultSnapshot] = None
    rod_positions: Dict[str, float] = field(default_factory=dict)


def s_curve(x: float) -> float:
    x = float(np.clip(x, 0.0, 1.0))
    return x - math.sin(2.0 * math.pi * x) / (2.0 * math.pi)


class ReferenceSolver:
    """Point-model solver satisfying :class:`~coreops.core.facade.SolverFacade`."""

    def __init__(
        self,
        geometry: Optional[GeometryModel] = None,
        coefficients: Optional[CoefficientModel] = None,
        form_function: Optional[FormFunctionModel] = None,
    ) -> None:
        self._apply_models(
            geometry or GeometryModel(),
            coefficients or CoefficientModel(),
            form_function or FormFunctionModel(),
        )
        self._catalogue = RodCatalogue()
        self._state = _CoreState()
        self._snapshots: Dict[int, _CoreState] = {}
        self._burnup_points: List[float] = []
        self._tf_table: Optional[RegularGridInterpolator] = None
        self.max_iterations = 100
        self.tolerance = 1e-5
        self.threads = 1
        self._reset_poisons_to_equilibrium(1.0)

    def _apply_models(
        self,
        geometry: GeometryModel,
        coefficients: CoefficientModel,
        form_function: FormFunctionModel,
    ) -> None:
        try:
            self._geometry = geometry.to_geometry()
        except ValueError as exc:
            raise InitializationError(f"invalid geometry: {exc}") from exc
        self.coefficients = coefficients
        self._form = form_function
        self._radial = self._radial_weights(form_function)

    def _radial_weights(self, form: FormFunctionModel) -> NDArray[np.float64]:
        n = self._geometry.assembly_count
        if form.radial_weights is not None:
            w = np.asarray(form.radial_weights, dtype=np.float64)
            if w.shape != (n,) or np.any(w <= 0.0) or not np.all(np.isfinite(w)):
                raise InitializationError(
                    f"form function needs {n} positive radial weights (got {w.size})."
                )
        else:
            rows = self._geometry.assembly_layout
            yc = 0.5 * (len(rows) - 1)
            xs = [i for start, end in rows for i in range(start, end + 1)]
            xc = 0.5 * (min(xs) + max(xs))
            coords = [(i - xc, j - yc) for j, (start, end) in enumerate(rows) for i in range(start, end + 1)]
            r2 = np.array([x * x + y * y for x, y in coords], dtype=np.float64)
            w = 1.0 + 0.3 * (1.0 - r2 / max(float(r2.max()), 1.0))
        return w / w.mean()

    # ── Static configuration ────────────────────────────────────────────

    def configure(self, geometry_file: str, cross_section_file: str, form_function_file: str) -> None:
        geometry = _read_model(geometry_file, GeometryModel, "geometry")
        coefficients = _read_model(cross_section_file, CoefficientModel, "cross-section")
        form = _read_model(form_function_file, FormFunctionModel, "form-function")
        self._apply_models(geometry, coefficients, form)
        self._state = _CoreState(rod_positions=self._catalogue.positions)
        self._snapshots.clear()
        self._reset_poisons_to_equilibrium(1.0)
        logger.info(
            "Reference solver configured: %d assemblies, %d axial nodes",
            self._geometry.assembly_count,
            self._geometry.axial_node_count,
        )

    @property
    def rod_catalogue(self) -> RodCatalogue:
        return self._catalogue

    def set_rod_group_catalogue(self, catalogue: RodCatalogue) -> None:
        catalogue.validate()
        self._catalogue = catalogue

    def set_burnup_points(self, burnups: Sequence[float]) -> None:
        points = sorted({float(b) for b in burnups})
        if not points or any((not math.isfinite(b)) or b < 0.0 for b in points):
            raise ConfigurationError("burnup points must be finite and >= 0.")
        self._burnup_points = points

    @property
    def burnup_points(self) -> List[float]:
        return list(self._burnup_points)

    def set_burnup(self, burnup: float) -> None:
        """Restart at one of the registered burnup points with equilibrium poisons."""
        value = float(burnup)
        if not any(math.isclose(value, b, abs_tol=1e-9) for b in self._burnup_points):
            raise ConfigurationError(
                f"burnup {value:g} is not a registered burnup point {self._burnup_points}"
            )
        self._state.burnup = value
        self._reset_poisons_to_equilibrium(1.0)

    def set_fuel_temperature_table(
        self,
        burnups: Sequence[float],
        powers: Sequence[float],
        table: Sequence[Sequence[float]],
    ) -> None:
        """Fuel temperature rise above inlet (degC) on a (burnup, power) grid."""
        bu = np.asarray(burnups, dtype=np.float64)
        pw = np.asarray(powers, dtype=np.float64)
        tab = np.asarray(table, dtype=np.float64)
        if tab.shape != (bu.size, pw.size):
            raise ConfigurationError(
                f"fuel temperature table must be {bu.size}x{pw.size}, got {tab.shape}"
            )
        if bu.size < 2 or pw.size < 2 or np.any(np.diff(bu) <= 0) or np.any(np.diff(pw) <= 0):
            raise ConfigurationError("fuel temperature axes need >= 2 strictly increasing points.")
        self._tf_table = RegularGridInterpolator((bu, pw), tab, bounds_error=False, fill_value=None)

    def set_iteration_limit(self, max_iterations: int, tolerance: float) -> None:
        if int(max_iterations) < 1 or not float(tolerance) > 0.0:
            raise ConfigurationError("iteration limit must be >= 1 and tolerance > 0.")
        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)

    def set_thread_count(self, threads: int) -> None:
        # the point model is serial; the value is recorded for parity only
        self.threads = max(int(threads), 1)

    def get_geometry(self) -> CoreGeometry:
        return self._geometry

    def get_result(self) -> Optional[ResultSnapshot]:
        return self._state.result

    @property
    def clock(self) -> float:
        return self._state.clock

    @property
    def burnup(self) -> float:
        return self._state.burnup

    # ── Snapshots ───────────────────────────────────────────────────────

    def save_snapshot(self, snapshot_id: int) -> int:
        state = copy.deepcopy(self._state)
        state.rod_positions = self._catalogue.positions
        self._snapshots[int(snapshot_id)] = state
        return 0

    def load_snapshot(self, snapshot_id: int) -> None:
        try:
            state = self._snapshots[int(snapshot_id)]
        except KeyError:
            raise ConfigurationError(f"no snapshot saved under id {snapshot_id}") from None
        self._state = copy.deepcopy(state)
        self._catalogue.update_positions(
            {k: v for k, v in state.rod_positions.items() if k in self._catalogue}
        )

    # ── Poison chains ───────────────────────────────────────────────────

    def _xenon_equilibrium(self, power: float, factor: float = 1.0) -> Tuple[float, float]:
        c = self.coefficients
        iodine = GAMMA_I * factor * power / LAMBDA_I
        xenon = (GAMMA_I + GAMMA_XE) * factor * power / (LAMBDA_XE + c.xenon_burnout * power)
        return iodine, xenon

    def _samarium_equilibrium(self, power: float) -> Tuple[float, float]:
        c = self.coefficients
        pm = GAMMA_PM * power / LAMBDA_PM
        # equilibrium samarium is independent of power once there is flux
        sm = GAMMA_PM / c.samarium_burnout if power > 0.0 else self._state.samarium
        return pm, sm

    def _reset_poisons_to_equilibrium(self, power: float) -> None:
        self._state.iodine, self._state.xenon = self._xenon_equilibrium(power)
        self._state.promethium, self._state.samarium = self._samarium_equilibrium(power)
        self._state.power = power

    def _poison_norms(self) -> Tuple[float, float]:
        c = self.coefficients
        xe_ref = (GAMMA_I + GAMMA_XE) / (LAMBDA_XE + c.xenon_burnout)
        sm_ref = GAMMA_PM / c.samarium_burnout
        return xe_ref, sm_ref

    def _advance_poisons(
        self,
        xenon: XenonMode,
        samarium: SamariumMode,
        duration_s: float,
        factor: float,
        power: float,
    ) -> None:
        c = self.coefficients
        s = self._state
        # y = [I, Xe, Pm, Sm, 1]; the trailing 1 carries the constant sources
        a = np.zeros((5, 5), dtype=np.float64)
        a[0, 0] = -LAMBDA_I
        a[0, 4] = GAMMA_I * factor * power
        a[1, 0] = LAMBDA_I
        a[1, 1] = -(LAMBDA_XE + c.xenon_burnout * power)
        a[1, 4] = GAMMA_XE * factor * power
        a[2, 2] = -LAMBDA_PM
        a[2, 4] = GAMMA_PM * power
        a[3, 2] = LAMBDA_PM
        a[3, 3] = -c.samarium_burnout * power
        y0 = np.array([s.iodine, s.xenon, s.promethium, s.samarium, 1.0])
        y = expm(a * float(duration_s)) @ y0

        if xenon == XenonMode.TRANSIENT:
            s.iodine, s.xenon = float(y[0]), float(y[1])
        elif xenon == XenonMode.EQUILIBRIUM:
            s.iodine, s.xenon = self._xenon_equilibrium(power, factor)
        elif xenon == XenonMode.NONE:
            s.iodine, s.xenon = 0.0, 0.0
        if samarium == SamariumMode.TRANSIENT:
            s.promethium, s.samarium = float(y[2]), float(y[3])
        elif samarium == SamariumMode.NONE:
            s.promethium, s.samarium = 0.0, 0.0

    def _depletion_power(self, power_fraction: Optional[float]) -> float:
        if power_fraction is None:
            return float(self._state.power)
        p = float(power_fraction)
        if not math.isfinite(p) or p < 0.0:
            raise ConfigurationError("power_fraction must be finite and >= 0.")
        return p

    @staticmethod
    def _check_duration(duration_s: float, factor: float) -> None:
        if not math.isfinite(float(duration_s)) or float(duration_s) < 0.0:
            raise ConfigurationError("depletion duration must be finite and >= 0.")
        if not math.isfinite(float(factor)) or float(factor) < 0.0:
            raise ConfigurationError("xenon yield factor must be finite and >= 0.")

    def deplete_poisons(
        self,
        xenon: XenonMode,
        samarium: SamariumMode,
        duration_s: float,
        xenon_yield_factor: float = 1.0,
        power_fraction: Optional[float] = None,
    ) -> None:
        self._check_duration(duration_s, xenon_yield_factor)
        power = self._depletion_power(power_fraction)
        self._advance_poisons(XenonMode(xenon), SamariumMode(samarium), duration_s, xenon_yield_factor, power)
        self._state.clock += float(duration_s)

    def deplete_by_time(
        self,
        xenon: XenonMode,
        samarium: SamariumMode,
        duration_s: float,
        xenon_yield_factor: float = 1.0,
        power_fraction: Optional[float] = None,
    ) -> None:
        self._check_duration(duration_s, xenon_yield_factor)
        power = self._depletion_power(power_fraction)
        self._advance_poisons(XenonMode(xenon), SamariumMode(samarium), duration_s, xenon_yield_factor, power)
        self._state.burnup += power * self.coefficients.specific_power * float(duration_s) / 86400.0
        self._state.clock += float(duration_s)

    def deplete_by_burnup(self, xenon: XenonMode, samarium: SamariumMode, burnup_increment: float) -> None:
        inc = float(burnup_increment)
        if not math.isfinite(inc) or inc < 0.0:
            raise ConfigurationError("burnup increment must be finite and >= 0.")
        power = float(self._state.power)
        if power > 0.0:
            duration = inc / (power * self.coefficients.specific_power) * 86400.0
            self._advance_poisons(XenonMode(xenon), SamariumMode(samarium), duration, 1.0, power)
            self._state.clock += duration
        self._state.burnup += inc

    # ── Reactivity model ────────────────────────────────────────────────

    def _fuel_rise(self, power: float) -> float:
        if self._tf_table is not None:
            return float(self._tf_table([[self._state.burnup, power]])[0])
        return self.coefficients.fuel_temperature_rise * power

    def _temperatures(self, option: CalculationOption, power: float) -> Tuple[float, float]:
        tin = float(option.inlet_temperature)
        tf = tin + (self._fuel_rise(power) if option.fuel_temperature_feedback else 0.0)
        tm = tin + (0.5 * self.coefficients.core_temperature_rise * power
                    if option.moderator_temperature_feedback else 0.0)
        return tf, tm

    def _rod_worth(self, rods: Mapping[str, float]) -> float:
        c = self.coefficients
        total = 0.0
        for rod_id, pos in rods.items():
            worth = c.rod_worths.get(rod_id, c.default_rod_worth)
            total += worth * s_curve(self._catalogue.inserted_fraction(rod_id, pos))
        return total

    def _poison_terms(self, option: CalculationOption, power: float) -> Tuple[float, float]:
        c = self.coefficients
        xe_ref, sm_ref = self._poison_norms()
        if option.xenon == XenonMode.NONE:
            xe = 0.0
        elif option.xenon == XenonMode.EQUILIBRIUM:
            xe = self._xenon_equilibrium(power)[1]
        else:
            xe = self._state.xenon
        sm = 0.0 if option.samarium == SamariumMode.NONE else self._state.samarium
        return c.xenon_worth * xe / xe_ref, c.samarium_worth * sm / sm_ref

    def _reactivity(self, option: CalculationOption, power: float, boron: float,
                    rods: Mapping[str, float]) -> float:
        c = self.coefficients
        tin = float(option.inlet_temperature)
        tf, tm = self._temperatures(option, power)
        doppler = c.doppler_coefficient * (math.sqrt(tf + KELVIN) - math.sqrt(tin + KELVIN))
        moderator = c.moderator_coefficient * (tm - c.reference_moderator_temperature)
        xe, sm = self._poison_terms(option, power)
        excess = c.excess_bol - c.burnup_slope * self._state.burnup
        return excess - c.boron_coefficient * boron - self._rod_worth(rods) - doppler - moderator - xe - sm

    # ── Shapes ──────────────────────────────────────────────────────────

    def _axial_shape(self, rods: Mapping[str, float], power: float) -> NDArray[np.float64]:
        c = self.coefficients
        geo = self._geometry
        z = geo.node_midpoints() / geo.height
        lo, hi = geo.active_fuel_bounds
        weights = []
        inserted = []
        for rod_id, pos in rods.items():
            weights.append(c.rod_worths.get(rod_id, c.default_rod_worth))
            inserted.append(self._catalogue.inserted_fraction(rod_id, pos))
        wsum = float(sum(weights))
        mean_ins = float(np.dot(weights, inserted) / wsum) if wsum > 0.0 else 0.0
        skew = float(np.clip(c.asi_bias + c.rod_skew * mean_ins + c.power_skew * power, -0.95, 0.95))
        shape = np.sin(np.pi * np.clip(z, 1e-6, 1.0 - 1e-6)) * (1.0 + skew * (1.0 - 2.0 * z))
        active = np.zeros_like(shape)
        active[lo:hi + 1] = shape[lo:hi + 1]
        return active / active[lo:hi + 1].mean()

    def _asi(self, axial: NDArray[np.float64]) -> float:
        geo = self._geometry
        hz = np.asarray(geo.axial_node_heights)
        weighted = axial * hz
        bottom = weighted[geo.node_midpoints() < 0.5 * geo.height].sum()
        top = weighted.sum() - bottom
        return float((bottom - top) / (bottom + top))

    # ── Solve ───────────────────────────────────────────────────────────

    def _regulating_group(self, rods: Mapping[str, float]) -> Optional[str]:
        name = self.coefficients.regulating_group
        if name is not None:
            return name if name in self._catalogue else None
        ids = [r for r in self._catalogue.ids if r in rods]
        return ids[-1] if ids else None

    def solve_steady(self, option: CalculationOption) -> ResultSnapshot:
        self._catalogue.require(option.rod_positions)
        rods = self._catalogue.positions
        rods.update({k: self._catalogue.group(k).clamp(v) for k, v in option.rod_positions.items()})
        target = (1.0 - 1.0 / float(option.target_eigenvalue)) * 1.0e5
        power = float(option.power_fraction)
        boron = float(option.boron_ppm)
        maxiter = int(option.max_iterations)
        xtol = max(float(option.tolerance), 1e-12)
        status = SolverStatus.OK

        try:
            if option.search == CriticalSearch.BORON:
                boron = (self._reactivity(option, power, 0.0, rods) - target) / self.coefficients.boron_coefficient
                if boron < 0.0:
                    status = SolverStatus.SEARCH_OUT_OF_RANGE
            elif option.search == CriticalSearch.POWER:
                f = lambda p: self._reactivity(option, p, boron, rods) - target  # noqa: E731
                lo, hi = 0.0, 1.5
                if f(lo) * f(hi) > 0.0:
                    status = SolverStatus.SEARCH_OUT_OF_RANGE
                else:
                    power = float(brentq(f, lo, hi, xtol=xtol, maxiter=maxiter))
            elif option.search == CriticalSearch.ROD:
                rod_id = self._regulating_group(rods)
                if rod_id is None:
                    status = SolverStatus.SEARCH_OUT_OF_RANGE
                else:
                    group = self._catalogue.group(rod_id)

                    def f(z: float) -> float:
                        trial = dict(rods)
                        trial[rod_id] = z
                        return self._reactivity(option, power, boron, trial) - target

                    if f(group.bottom) * f(group.top) > 0.0:
                        status = SolverStatus.SEARCH_OUT_OF_RANGE
                    else:
                        rods[rod_id] = float(brentq(f, group.bottom, group.top, xtol=xtol, maxiter=maxiter))
        except RuntimeError as exc:
            logger.warning("criticality search did not converge: %s", exc)
            status = SolverStatus.NOT_CONVERGED

        if status != SolverStatus.OK:
            result = ResultSnapshot.failure(
                status, self._geometry, time=option.time, burnup=self._state.burnup, rod_positions=rods
            )
            self._state.result = result
            return result

        rho = self._reactivity(option, power, boron, rods)
        eigenvalue = 1.0 / (1.0 - rho * 1.0e-5)
        tf, tm = self._temperatures(option, power)
        axial = self._axial_shape(rods, power)
        radial = self._radial.copy()
        lo, hi = self._geometry.active_fuel_bounds
        fz = float(axial[lo:hi + 1].max())
        fr = float(radial.max())
        fxy = fr * self._form.pin_peaking

        if option.xenon == XenonMode.EQUILIBRIUM:
            self._state.iodine, self._state.xenon = self._xenon_equilibrium(power)
        self._state.power = power
        self._catalogue.update_positions(rods)
        result = ResultSnapshot(
            error=int(SolverStatus.OK),
            eigenvalue=float(eigenvalue),
            ppm=float(boron),
            fq=float(fxy * fz),
            fxy=float(fxy),
            fr=fr,
            fz=fz,
            asi=self._asi(axial),
            fuel_temperature=float(tf),
            moderator_temperature=float(tm),
            power_fraction=float(power),
            assembly_power=radial * power,
            axial_power=axial * power,
            time=float(option.time),
            burnup=float(self._state.burnup),
            rod_positions=rods,
        )
        self._state.result = result
        return result
