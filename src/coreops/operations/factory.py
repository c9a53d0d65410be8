# ──────────────────────────────────────────────────────────────────────
# CoreOps — Operation Factory
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Build an operation variant from its :class:`OperationKind` tag."""

from __future__ import annotations

from typing import Dict, Type, Union

from coreops.core.errors import ConfigurationError

from .base import Operation, OperationKind
from .coastdown import CoastdownOperation
from .ecp import ECPOperation
from .flexible import FlexibleOperation
from .general import GeneralOperation
from .startup import StartupOperation
from .xenon import XenonDynamicsOperation

_REGISTRY: Dict[OperationKind, type] = {
    OperationKind.XENON_DYNAMICS: XenonDynamicsOperation,
    OperationKind.FLEXIBLE: FlexibleOperation,
    OperationKind.COASTDOWN: CoastdownOperation,
    OperationKind.ECP: ECPOperation,
    OperationKind.STARTUP: StartupOperation,
    OperationKind.GENERAL: GeneralOperation,
}

AnyOperation = Union[Operation, StartupOperation]


def operation_class(kind: Union[OperationKind, str]) -> Type:
    try:
        return _REGISTRY[OperationKind(kind)]
    except ValueError:
        valid = ", ".join(k.value for k in OperationKind)
        raise ConfigurationError(f"unknown operation kind {kind!r}; expected one of: {valid}") from None


def create_operation(kind: Union[OperationKind, str], facade) -> AnyOperation:
    """Instantiate the operation variant tagged ``kind`` on ``facade``."""
    return operation_class(kind)(facade)
