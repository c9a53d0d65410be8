# ──────────────────────────────────────────────────────────────────────
# CoreOps — Structured Logging Configuration
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

# every JSON record carries these keys under "operation_context"
OPERATION_CONTEXT_KEYS = ("operation", "step", "time_s")
_OPERATION_PACKAGES = ("operations", "safety")


def operation_context(record: logging.LogRecord) -> Dict[str, Any]:
    """
    Default context shape overlaid with the record's own ``operation_context``.
    Records from ``coreops.operations.<module>`` and ``coreops.safety.<module>``
    name their operation after the module unless the context says otherwise.
    """
    context: Dict[str, Any] = dict.fromkeys(OPERATION_CONTEXT_KEYS)
    parts = record.name.split(".")
    if len(parts) > 2 and parts[0] == "coreops" and parts[1] in _OPERATION_PACKAGES:
        context["operation"] = parts[2]
    extra = getattr(record, "operation_context", None)
    if isinstance(extra, Mapping):
        context.update(extra)
    elif extra is not None:
        context["detail"] = extra
    return context


class CoreOpsJSONFormatter(logging.Formatter):
    """
    JSON Formatter for CoreOps.
    Encodes log records as structured machine-readable JSON. Every record
    carries ``operation_context`` with at least the operation, step and
    time keys; per-step records fill them in.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        log_data["operation_context"] = operation_context(record)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_coreops_logging(
    level: int = logging.INFO,
    json_output: bool = True,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Initializes structured logging for every ``coreops.*`` logger.
    """
    root_logger = logging.getLogger("coreops")
    root_logger.setLevel(level)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    if json_output:
        console_handler.setFormatter(CoreOpsJSONFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
        ))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(CoreOpsJSONFormatter() if json_output else logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(file_handler)

    root_logger.debug("Structured logging initialized (json=%s)", json_output)
    return root_logger
