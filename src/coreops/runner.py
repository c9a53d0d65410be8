# ──────────────────────────────────────────────────────────────────────
# CoreOps — Config-Driven Runner
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Wire a validated :class:`CoreOpsConfig` into a solver, an operation and an analyzer."""

from __future__ import annotations

import logging
from typing import List

from coreops.control.rods import RodCatalogue
from coreops.core.config_schema import CoreOpsConfig, OperationConfig
from coreops.core.errors import ConfigurationError
from coreops.core.reference_solver import ReferenceSolver
from coreops.core.results import MarginResult, ResultSnapshot
from coreops.operations.base import OperationKind
from coreops.operations.factory import AnyOperation, create_operation
from coreops.safety.shutdown_margin import ShutdownMarginAnalyzer

logger = logging.getLogger(__name__)


def build_catalogue(config: CoreOpsConfig) -> RodCatalogue:
    catalogue = RodCatalogue()
    for rod in config.rods:
        catalogue.register(rod.id, overlap=rod.overlap, travel=rod.travel)
    catalogue.validate()
    for rod in config.rods:
        if rod.pdil:
            catalogue.set_pdil(rod.id, rod.pdil)
    return catalogue


def build_solver(config: CoreOpsConfig) -> ReferenceSolver:
    solver = ReferenceSolver()
    if config.solver is not None:
        solver.configure(
            config.solver.geometry_file,
            config.solver.cross_section_file,
            config.solver.form_function_file,
        )
    solver.set_rod_group_catalogue(build_catalogue(config))
    if config.burnup_points:
        solver.set_burnup_points(config.burnup_points)
        solver.set_burnup(config.burnup if config.burnup is not None else config.burnup_points[0])
    option = config.option
    solver.set_iteration_limit(option.max_iterations, option.tolerance)
    return solver


def _configure_ramp(operation, cfg: OperationConfig) -> None:
    if cfg.time_step is None:
        raise ConfigurationError(f"{cfg.kind} operation needs time_step.")
    operation.set_time_step(cfg.time_step)
    operation.set_end_time(cfg.end_time)
    if cfg.scenario:
        operation.set_power_scenario([s.to_step() for s in cfg.scenario])
    elif cfg.power_schedule is not None:
        ps = cfg.power_schedule
        operation.set_power_schedule(
            ps.initial_power, ps.target_power, ps.power_down_rate, ps.power_up_rate,
            ps.duration, ps.before_time, ps.after_time, ps.asi_allowance,
        )
    operation.set_fuel_depletion(cfg.fuel_depletion)
    if cfg.asi_rod_gain is not None:
        operation.set_asi_rod_gain(cfg.asi_rod_gain)
    if cfg.asi_band is not None:
        operation.set_asi_band(cfg.asi_band)
    if cfg.asi_allowance is not None:
        operation.set_asi_allowance(cfg.asi_allowance)


def _require_timing(cfg: OperationConfig) -> None:
    if cfg.end_time is None or cfg.time_step is None:
        raise ConfigurationError(f"{cfg.kind} operation needs end_time and time_step.")


def build_operation(config: CoreOpsConfig, facade) -> AnyOperation:
    cfg = config.operation
    if cfg is None:
        raise ConfigurationError("config has no 'operation' section.")
    kind = OperationKind(cfg.kind)
    operation = create_operation(kind, facade)
    if cfg.xenon_factor is not None:
        operation.set_xenon_factor(cfg.xenon_factor)
    if cfg.insert_sequence is not None:
        operation.set_rod_in_sequence(cfg.insert_sequence.rods, cfg.insert_sequence.limits)
    if cfg.withdraw_sequence is not None:
        operation.set_rod_out_sequence(cfg.withdraw_sequence.rods, cfg.withdraw_sequence.limits)

    if kind == OperationKind.XENON_DYNAMICS:
        _require_timing(cfg)
        operation.set_time(cfg.end_time, cfg.time_step)
    elif kind == OperationKind.FLEXIBLE:
        _configure_ramp(operation, cfg)
    elif kind == OperationKind.STARTUP:
        _configure_ramp(operation, cfg)
        operation.set_shutdown_time(cfg.shutdown_duration)
        if cfg.initial_rod_positions is not None:
            operation.set_initial_rod_positions(cfg.initial_rod_positions)
    elif kind == OperationKind.COASTDOWN:
        _require_timing(cfg)
        operation.set_time(cfg.end_time, cfg.time_step)
        if cfg.target_power is None:
            raise ConfigurationError("coastdown operation needs target_power.")
        operation.set_target_power(cfg.target_power)
        if cfg.differential_worth is not None:
            operation.set_differential_worth(cfg.differential_worth)
        if cfg.reactivity_deadband is not None:
            operation.set_reactivity_deadband(cfg.reactivity_deadband)
    elif kind == OperationKind.ECP:
        _require_timing(cfg)
        shutdown = cfg.shutdown_time if cfg.shutdown_time is not None else cfg.end_time
        operation.set_time(cfg.end_time, shutdown, cfg.time_step)
        operation.set_option(cfg.control)
        if cfg.target_cbc is not None:
            operation.set_target_cbc(cfg.target_cbc)
        operation.set_shutdown_power(cfg.shutdown_power)
    elif kind == OperationKind.GENERAL and not cfg.depletions:
        raise ConfigurationError("general operation needs at least one entry in 'depletions'.")
    return operation


def run_operation(config: CoreOpsConfig, facade=None) -> List[ResultSnapshot]:
    """Run the configured operation to completion and return every step's snapshot."""
    facade = facade if facade is not None else build_solver(config)
    operation = build_operation(config, facade)
    option = config.option.to_option()
    operation.reset()
    if operation.kind == OperationKind.GENERAL:
        steps = [(option, d.to_option()) for d in config.operation.depletions]
        results = list(operation.run(steps))
    else:
        results = list(operation.run(option))
    logger.info("%s operation finished after %d step(s)", operation.kind.value, len(results))
    return results


def run_margin(config: CoreOpsConfig, facade=None, dt=None) -> MarginResult:
    cfg = config.margin
    if cfg is None:
        raise ConfigurationError("config has no 'margin' section.")
    facade = facade if facade is not None else build_solver(config)
    analyzer = ShutdownMarginAnalyzer(facade)
    analyzer.set_rod_uncertainty(cfg.rod_uncertainty)
    analyzer.set_void_uncertainty(cfg.void_uncertainty)
    analyzer.set_stuck_rods(cfg.failed_rod, cfg.stuck_rods)
    analyzer.reset()
    return analyzer.run(cfg.dt if dt is None else float(dt), config.option.to_option())
