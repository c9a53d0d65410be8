# ─────────────────────────────────────────────────────────────────────
# CoreOps — Configuration Schema
# © 1998–2026 Miroslav Šotek. All rights reserved.
# ─────────────────────────────────────────────────────────────────────
"""
Strict schema validation for operation run files using Pydantic.
Catches unknown rod groups and malformed schedules before any solve.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigurationError
from .options import (
    CalculationOption,
    CriticalSearch,
    DepletionIsotope,
    DepletionOption,
    ECPControl,
    SamariumMode,
    ScenarioStep,
    ShapeMatch,
    TimeUnit,
    XenonMode,
)

# Sub-models use extra='allow' so solver-specific keys survive validation;
# the schema checks what the orchestration layer itself consumes.


def _enum_by_name(enum_cls, value: Any):
    if isinstance(value, str):
        try:
            return enum_cls[value.strip().upper()]
        except KeyError:
            valid = ", ".join(m.name for m in enum_cls)
            raise ValueError(f"unknown {enum_cls.__name__} {value!r}; expected one of: {valid}") from None
    return value


class SolverFiles(BaseModel):
    model_config = ConfigDict(extra='allow')
    geometry_file: str
    cross_section_file: str
    form_function_file: str


class RodGroupConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    id: str = Field(..., min_length=1)
    overlap: Optional[str] = None
    travel: Tuple[float, float] = (0.0, 381.0)
    pdil: List[Tuple[float, float]] = []

    @field_validator("travel")
    @classmethod
    def travel_ordered(cls, v: Tuple[float, float]):
        if v[1] <= v[0]:
            raise ValueError("travel must be (bottom, top) with bottom < top")
        return v


class RodSequenceConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    rods: List[str] = []
    limits: List[float] = []

    @model_validator(mode="after")
    def lengths_match(self):
        if len(self.rods) != len(self.limits):
            raise ValueError(f"{len(self.rods)} rods but {len(self.limits)} limits")
        if any(limit < 0.0 for limit in self.limits):
            raise ValueError("rod limits must be >= 0")
        if len(set(self.rods)) != len(self.rods):
            raise ValueError("a rod group is listed twice")
        return self


class OptionConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    search: CriticalSearch = CriticalSearch.BORON
    shape_match: ShapeMatch = ShapeMatch.NONE
    xenon: XenonMode = XenonMode.EQUILIBRIUM
    samarium: SamariumMode = SamariumMode.TRANSIENT
    fuel_temperature_feedback: bool = True
    moderator_temperature_feedback: bool = True
    target_eigenvalue: float = Field(default=1.0, gt=0)
    inlet_temperature: float = 290.0
    power_fraction: float = Field(default=1.0, ge=0)
    max_iterations: int = Field(default=100, gt=0)
    tolerance: float = Field(default=1e-5, gt=0)
    boron_ppm: float = Field(default=500.0, ge=0)
    rod_positions: Dict[str, float] = {}

    @field_validator("search", mode="before")
    @classmethod
    def search_by_name(cls, v: Any):
        return _enum_by_name(CriticalSearch, v)

    @field_validator("shape_match", mode="before")
    @classmethod
    def shape_match_by_name(cls, v: Any):
        return _enum_by_name(ShapeMatch, v)

    @field_validator("xenon", mode="before")
    @classmethod
    def xenon_by_name(cls, v: Any):
        return _enum_by_name(XenonMode, v)

    @field_validator("samarium", mode="before")
    @classmethod
    def samarium_by_name(cls, v: Any):
        return _enum_by_name(SamariumMode, v)

    def to_option(self) -> CalculationOption:
        return CalculationOption(
            search=self.search,
            shape_match=self.shape_match,
            xenon=self.xenon,
            samarium=self.samarium,
            fuel_temperature_feedback=self.fuel_temperature_feedback,
            moderator_temperature_feedback=self.moderator_temperature_feedback,
            target_eigenvalue=self.target_eigenvalue,
            inlet_temperature=self.inlet_temperature,
            power_fraction=self.power_fraction,
            max_iterations=self.max_iterations,
            tolerance=self.tolerance,
            boron_ppm=self.boron_ppm,
            rod_positions=self.rod_positions,
        )


class ScenarioStepConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    duration: float = Field(..., gt=0)
    power_fraction: float = Field(..., ge=0)
    asi_allowance: Tuple[float, float] = (-0.05, 0.05)
    target_asi: Optional[float] = None
    control_asi: bool = False

    def to_step(self) -> ScenarioStep:
        return ScenarioStep(
            duration=self.duration,
            power_fraction=self.power_fraction,
            asi_allowance=self.asi_allowance,
            target_asi=self.target_asi,
            control_asi=self.control_asi,
        )


class PowerScheduleConfig(BaseModel):
    """Load-follow ramp; powers in percent, rates in percent per minute."""

    model_config = ConfigDict(extra='allow')
    initial_power: float = Field(..., ge=0)
    target_power: float = Field(..., ge=0)
    power_down_rate: float = Field(..., gt=0)
    power_up_rate: float = Field(..., gt=0)
    duration: float = Field(..., ge=0)
    before_time: float = Field(default=7200.0, ge=0)
    after_time: float = Field(default=7200.0, ge=0)
    asi_allowance: float = Field(default=0.01, ge=0)


class DepletionConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    isotope: DepletionIsotope = DepletionIsotope.ALL
    xenon: XenonMode = XenonMode.TRANSIENT
    samarium: SamariumMode = SamariumMode.TRANSIENT
    increment: float = Field(..., ge=0)
    time_unit: TimeUnit = TimeUnit.SECONDS
    xenon_amplification: Optional[float] = Field(default=None, ge=0)

    @field_validator("isotope", mode="before")
    @classmethod
    def isotope_by_name(cls, v: Any):
        return _enum_by_name(DepletionIsotope, v)

    @field_validator("xenon", mode="before")
    @classmethod
    def xenon_by_name(cls, v: Any):
        return _enum_by_name(XenonMode, v)

    @field_validator("samarium", mode="before")
    @classmethod
    def samarium_by_name(cls, v: Any):
        return _enum_by_name(SamariumMode, v)

    @field_validator("time_unit", mode="before")
    @classmethod
    def time_unit_by_name(cls, v: Any):
        return _enum_by_name(TimeUnit, v)

    @model_validator(mode="after")
    def poisons_need_time(self):
        if self.isotope != DepletionIsotope.ALL and self.time_unit == TimeUnit.MWD_PER_TON:
            raise ValueError("poison-only depletion needs a time increment, not MWD/tU")
        return self

    def to_option(self) -> DepletionOption:
        return DepletionOption(
            isotope=self.isotope,
            xenon=self.xenon,
            samarium=self.samarium,
            increment=self.increment,
            time_unit=self.time_unit,
            xenon_amplification=self.xenon_amplification,
        )


class OperationConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    kind: str
    time_step: Optional[float] = Field(default=None, gt=0)
    end_time: Optional[float] = Field(default=None, gt=0)
    xenon_factor: Optional[float] = Field(default=None, ge=0)
    insert_sequence: Optional[RodSequenceConfig] = None
    withdraw_sequence: Optional[RodSequenceConfig] = None
    # flexible / startup
    power_schedule: Optional[PowerScheduleConfig] = None
    scenario: Optional[List[ScenarioStepConfig]] = None
    fuel_depletion: bool = False
    asi_rod_gain: Optional[float] = Field(default=None, ge=0)
    asi_band: Optional[Dict[float, Tuple[float, float]]] = None
    asi_allowance: Optional[Dict[float, Tuple[float, float]]] = None
    shutdown_duration: float = Field(default=0.0, ge=0)
    initial_rod_positions: Optional[Dict[str, float]] = None
    # coastdown
    target_power: Optional[float] = Field(default=None, ge=0)
    differential_worth: Optional[float] = Field(default=None, gt=0)
    reactivity_deadband: Optional[float] = Field(default=None, ge=0)
    # ecp
    control: ECPControl = ECPControl.BORON
    shutdown_time: Optional[float] = Field(default=None, gt=0)
    target_cbc: Optional[float] = Field(default=None, ge=0)
    shutdown_power: float = Field(default=0.0, ge=0)
    # general
    depletions: List[DepletionConfig] = []

    @field_validator("kind")
    @classmethod
    def known_kind(cls, v: str):
        from coreops.operations.base import OperationKind

        try:
            return OperationKind(v.strip().lower()).value
        except ValueError:
            valid = ", ".join(k.value for k in OperationKind)
            raise ValueError(f"unknown operation kind {v!r}; expected one of: {valid}") from None

    @field_validator("control", mode="before")
    @classmethod
    def control_by_name(cls, v: Any):
        return _enum_by_name(ECPControl, v)

    def rod_references(self) -> List[str]:
        refs: List[str] = []
        for seq in (self.insert_sequence, self.withdraw_sequence):
            if seq is not None:
                refs.extend(seq.rods)
        refs.extend((self.initial_rod_positions or {}).keys())
        return refs


class MarginConfig(BaseModel):
    model_config = ConfigDict(extra='allow')
    rod_uncertainty: float = Field(default=0.0, ge=0, lt=1.0)
    void_uncertainty: float = Field(default=0.0, ge=0)
    failed_rod: str
    stuck_rods: List[str] = []
    dt: float = Field(default=0.0, ge=0)


class CoreOpsConfig(BaseModel):
    model_config = ConfigDict(extra='allow')

    name: str = "Unnamed-Scenario"
    solver: Optional[SolverFiles] = None
    burnup_points: List[float] = []
    burnup: Optional[float] = None
    rods: List[RodGroupConfig] = Field(..., min_length=1)
    option: OptionConfig = Field(default_factory=OptionConfig)
    operation: Optional[OperationConfig] = None
    margin: Optional[MarginConfig] = None

    @field_validator("rods")
    @classmethod
    def unique_rod_ids(cls, v: List[RodGroupConfig]):
        ids = [r.id for r in v]
        if len(set(ids)) != len(ids):
            raise ValueError("rod group ids must be unique")
        return v

    @model_validator(mode="after")
    def rod_references_known(self):
        known = {r.id for r in self.rods}
        refs: List[str] = list(self.option.rod_positions)
        refs.extend(r.overlap for r in self.rods if r.overlap is not None)
        if self.operation is not None:
            refs.extend(self.operation.rod_references())
        if self.margin is not None:
            refs.append(self.margin.failed_rod)
            refs.extend(self.margin.stuck_rods)
        unknown = sorted({r for r in refs if r not in known})
        if unknown:
            raise ValueError(f"unknown rod group(s) {unknown}; declared: {sorted(known)}")
        if self.burnup is not None and self.burnup_points and self.burnup not in self.burnup_points:
            raise ValueError(f"burnup {self.burnup:g} is not one of burnup_points")
        return self


def validate_config(config_dict: dict) -> CoreOpsConfig:
    """Validate a raw configuration dictionary and return a validated CoreOpsConfig."""
    return CoreOpsConfig.model_validate(config_dict)


def load_config(path: Union[str, Path]) -> CoreOpsConfig:
    """Read and validate a JSON run file; every failure surfaces as ConfigurationError."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"cannot read config {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"config {path} is not valid JSON: {exc}") from exc
    try:
        return validate_config(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid config {path}:\n{exc}") from exc
