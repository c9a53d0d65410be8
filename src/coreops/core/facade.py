# ──────────────────────────────────────────────────────────────────────
# CoreOps — Solver Facade Contract
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Capability set the orchestration layer needs from a steady-state solver.

Operations hold a reference to an object satisfying :class:`SolverFacade`
and never reach into solver internals, so a compiled backend and the
in-process :class:`~coreops.core.reference_solver.ReferenceSolver` are
interchangeable.

A facade carries mutable reactor state (burnup, poisons, rod history).
Exactly one operation or margin analysis may drive a facade at a time;
use ``save_snapshot``/``load_snapshot`` to multiplex scenarios.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from coreops.control.rods import RodCatalogue
from coreops.core.options import CalculationOption, SamariumMode, XenonMode
from coreops.core.results import CoreGeometry, ResultSnapshot


@runtime_checkable
class SolverFacade(Protocol):
    @property
    def rod_catalogue(self) -> RodCatalogue: ...

    def configure(self, geometry_file: str, cross_section_file: str, form_function_file: str) -> None: ...

    def solve_steady(self, option: CalculationOption) -> ResultSnapshot: ...

    def deplete_by_time(
        self,
        xenon: XenonMode,
        samarium: SamariumMode,
        duration_s: float,
        xenon_yield_factor: float = 1.0,
        power_fraction: Optional[float] = None,
    ) -> None: ...

    def deplete_by_burnup(
        self,
        xenon: XenonMode,
        samarium: SamariumMode,
        burnup_increment: float,
    ) -> None: ...

    def deplete_poisons(
        self,
        xenon: XenonMode,
        samarium: SamariumMode,
        duration_s: float,
        xenon_yield_factor: float = 1.0,
        power_fraction: Optional[float] = None,
    ) -> None: ...

    def get_result(self) -> Optional[ResultSnapshot]: ...

    def get_geometry(self) -> CoreGeometry: ...

    def save_snapshot(self, snapshot_id: int) -> int: ...

    def load_snapshot(self, snapshot_id: int) -> None: ...

    def set_rod_group_catalogue(self, catalogue: RodCatalogue) -> None: ...

    def set_burnup_points(self, burnups: Sequence[float]) -> None: ...

    def set_fuel_temperature_table(
        self,
        burnups: Sequence[float],
        powers: Sequence[float],
        table: Sequence[Sequence[float]],
    ) -> None: ...

    def set_iteration_limit(self, max_iterations: int, tolerance: float) -> None: ...

    def set_thread_count(self, threads: int) -> None: ...
