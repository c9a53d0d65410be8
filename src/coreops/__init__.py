# ──────────────────────────────────────────────────────────────────────
# CoreOps — Package Init
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Reactor-operation orchestration: time-stepping operations and shutdown
margin analysis driven through a steady-state solver facade.
"""

__version__ = "0.1.0"

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "ReferenceSolver": (".core.reference_solver", "ReferenceSolver"),
    "SolverFacade": (".core.facade", "SolverFacade"),
    "create_operation": (".operations.factory", "create_operation"),
    "ShutdownMarginAnalyzer": (".safety.shutdown_margin", "ShutdownMarginAnalyzer"),
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
