# ──────────────────────────────────────────────────────────────────────
# CoreOps — Core Package Init
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .errors import (
    ConfigurationError,
    CoreOpsError,
    InitializationError,
    OperationComplete,
    OperationNotStarted,
    SequenceExhausted,
)
from .options import (
    CalculationOption,
    CriticalSearch,
    DepletionIsotope,
    DepletionOption,
    ECPControl,
    MarginUncertainty,
    SamariumMode,
    ScenarioStep,
    ShapeMatch,
    StuckRodScenario,
    TimeUnit,
    XenonMode,
)
from .results import CoreGeometry, MarginResult, ResultSnapshot, SolverStatus

# Facade and reference solver import the rod catalogue from ``coreops.control``;
# load them lazily so ``coreops.control`` can import this package first.
_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "SolverFacade": (".facade", "SolverFacade"),
    "ReferenceSolver": (".reference_solver", "ReferenceSolver"),
    "GeometryModel": (".reference_solver", "GeometryModel"),
    "CoefficientModel": (".reference_solver", "CoefficientModel"),
    "FormFunctionModel": (".reference_solver", "FormFunctionModel"),
    "CoreOpsConfig": (".config_schema", "CoreOpsConfig"),
    "validate_config": (".config_schema", "validate_config"),
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        module_path, attr = _LAZY_IMPORTS[name]
        import importlib
        mod = importlib.import_module(module_path, __name__)
        val = getattr(mod, attr)
        globals()[name] = val
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
