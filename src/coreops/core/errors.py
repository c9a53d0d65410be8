# ──────────────────────────────────────────────────────────────────────
# CoreOps — Error Taxonomy
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""
Exceptions raised by the orchestration layer.

Solver non-convergence is *not* an exception: it travels inside
``ResultSnapshot.error`` so callers can inspect the step and continue.
"""

from __future__ import annotations


class CoreOpsError(Exception):
    """Base class for every error raised by CoreOps."""


class ConfigurationError(CoreOpsError, ValueError):
    """Malformed schedule, unknown rod identifier or inconsistent scenario."""


class InitializationError(CoreOpsError):
    """Solver input files are missing or cannot be parsed."""


class SequenceExhausted(CoreOpsError, RuntimeError):
    """A time-step schedule was advanced past its last step."""


class OperationComplete(CoreOpsError, RuntimeError):
    """An operation was stepped while no further step is legal."""


class OperationNotStarted(OperationComplete):
    """An operation was stepped before ``reset()`` was called."""
