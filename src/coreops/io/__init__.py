# ──────────────────────────────────────────────────────────────────────
# CoreOps — I/O Package Init
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .logging_config import CoreOpsJSONFormatter, setup_coreops_logging

# pandas is only needed for history export.
_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "history_frame": (".history", "history_frame"),
    "write_history_csv": (".history", "write_history_csv"),
    "plot_history": (".history", "plot_history"),
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
