"""Audit exceptions and the failure-reporting channel.

Nothing raised inside the pipeline reaches the audited operation.  Each
suppressed failure is turned into an :class:`AuditFailure` and handed to an
``on_error`` callback so that gaps in audit history stay observable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import Any

logger = logging.getLogger(__name__)


class AuditError(Exception):
    """Base class for audit pipeline errors."""


class StorageError(AuditError):
    """A backend could not read or write audit events."""


class EncryptionError(AuditError):
    """Details could not be encrypted."""


class DecryptionError(AuditError):
    """An encrypted envelope could not be authenticated or decoded."""


@dataclass(frozen=True)
class AuditFailure:
    """One suppressed failure inside the audit pipeline."""

    operation: str
    error: BaseException
    context: dict[str, Any] = field(default_factory=dict)


FailureHandler = Callable[[AuditFailure], None]


def log_failure(failure: AuditFailure) -> None:
    """Default handler: write the failure to the error log."""
    logger.error(
        "Audit %s: %s context=%s",
        failure.operation,
        failure.error,
        failure.context,
        exc_info=(type(failure.error), failure.error, failure.error.__traceback__),
    )


def report(
    handler: FailureHandler,
    operation: str,
    error: BaseException,
    **context: Any,
) -> None:
    """Deliver a failure to *handler*, falling back to the log if it raises."""
    failure = AuditFailure(operation=operation, error=error, context=context)
    try:
        handler(failure)
    except Exception:
        logger.exception("Audit failure handler raised for %s", operation)
        if handler is not log_failure:
            log_failure(failure)
