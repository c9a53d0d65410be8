# ──────────────────────────────────────────────────────────────────────
# CoreOps — Operations Package Init
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from .base import Operation, OperationKind, OperationState, excess_reactivity_pcm
from .coastdown import CoastdownOperation
from .ecp import ECPOperation
from .factory import create_operation, operation_class
from .flexible import FlexibleOperation
from .general import GeneralOperation
from .startup import StartupOperation
from .xenon import XenonDynamicsOperation

__all__ = [
    "CoastdownOperation",
    "create_operation",
    "ECPOperation",
    "excess_reactivity_pcm",
    "FlexibleOperation",
    "GeneralOperation",
    "Operation",
    "operation_class",
    "OperationKind",
    "OperationState",
    "StartupOperation",
    "XenonDynamicsOperation",
]
