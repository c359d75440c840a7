"""Audit logger: builds, classifies, protects and persists audit events."""

from __future__ import annotations

import copy
import logging
from typing import Any

from auditmcp.audit.context import RequestContext
from auditmcp.audit.context import extract_client_ip
from auditmcp.audit.context import extract_user_agent
from auditmcp.audit.crypto import FieldEncryptor
from auditmcp.audit.errors import DecryptionError
from auditmcp.audit.errors import FailureHandler
from auditmcp.audit.errors import log_failure
from auditmcp.audit.errors import report
from auditmcp.audit.policy import is_sensitive
from auditmcp.audit.policy import sanitize_details
from auditmcp.audit.risk import classify_risk
from auditmcp.audit.schemas import AuditAction
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditOutcome
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.schemas import AuditStatistics
from auditmcp.audit.schemas import Geolocation
from auditmcp.audit.schemas import RiskLevel
from auditmcp.audit.schemas import Timeframe
from auditmcp.audit.statistics import compute_statistics
from auditmcp.audit.statistics import timeframe_window
from auditmcp.audit.storage import AuditStorage
from auditmcp.audit.storage import create_storage
from auditmcp.config import AuditConfig
from auditmcp.observability import CounterSink
from auditmcp.observability import security_counters

logger = logging.getLogger(__name__)

_MIRRORED_LEVELS = frozenset({RiskLevel.high, RiskLevel.critical})


class AuditLogger:
    """Orchestrates the audit pipeline over an injected storage backend.

    Per event: build -> sanitize -> classify risk (if absent) -> encrypt
    (if sensitive and a key is configured) -> persist -> counters ->
    mirror high/critical events to the application log.

    ``log_event`` and ``query_events`` never raise.  Failures are handed to
    ``on_error`` (see :mod:`auditmcp.audit.errors`).
    """

    def __init__(
        self,
        storage: AuditStorage,
        *,
        encryption_key: str | bytes | None = None,
        counters: CounterSink = security_counters,
        on_error: FailureHandler = log_failure,
        statistics_sample_limit: int = 10_000,
    ) -> None:
        self.storage = storage
        self._encryptor = FieldEncryptor(encryption_key) if encryption_key else None
        self._counters = counters
        self._on_error = on_error
        self._statistics_sample_limit = statistics_sample_limit

    @classmethod
    def from_config(
        cls,
        config: AuditConfig,
        *,
        counters: CounterSink = security_counters,
        on_error: FailureHandler = log_failure,
    ) -> AuditLogger:
        """Build the configured backend and a logger that owns it."""
        return cls(
            create_storage(config, on_error=on_error),
            encryption_key=config.encryption_key,
            counters=counters,
            on_error=on_error,
            statistics_sample_limit=config.statistics_sample_limit,
        )

    @property
    def encryption_enabled(self) -> bool:
        return self._encryptor is not None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def log_event(
        self,
        action: AuditAction | str,
        resource: str,
        outcome: AuditOutcome | str,
        *,
        request: RequestContext | None = None,
        user_id: str | None = None,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
        risk_level: RiskLevel | str | None = None,
        geolocation: Geolocation | None = None,
    ) -> AuditEvent | None:
        """Record one audit event.

        Returns the stored event, or ``None`` when the event could not be
        built.  Storage failures are reported by the backend and the event
        is still returned.
        """
        try:
            action = AuditAction(action)
            outcome = AuditOutcome(outcome)
            explicit_risk = RiskLevel(risk_level) if risk_level is not None else None
        except ValueError as exc:
            report(
                self._on_error,
                "invalid-input",
                exc,
                action=str(action),
                resource=resource,
                outcome=str(outcome),
            )
            return None

        try:
            # Deep copy: the caller keeps no handle on nested stored values.
            sanitized = copy.deepcopy(sanitize_details(details))
            event = AuditEvent(
                user_id=user_id or (request.user_id if request else None),
                session_id=request.session_id if request else None,
                ip_address=extract_client_ip(request),
                user_agent=extract_user_agent(request),
                action=action,
                resource=resource,
                resource_id=resource_id,
                outcome=outcome,
                details=self._protect(action, sanitized),
                risk_level=explicit_risk or classify_risk(action, outcome),
                correlation_id=request.correlation_id if request else None,
                geolocation=geolocation,
            )

            await self.storage.store(event)
            self._emit_counters(event)

            if event.risk_level in _MIRRORED_LEVELS:
                logger.warning(
                    "High-risk audit event: %s audit_id=%s risk_level=%s outcome=%s",
                    action.value,
                    event.id,
                    event.risk_level.value,
                    outcome.value,
                )
            return event
        except Exception as exc:
            report(
                self._on_error,
                "logging-failure",
                exc,
                action=action.value,
                resource=resource,
                outcome=outcome.value,
            )
            return None

    def _protect(
        self,
        action: AuditAction,
        details: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        """Encrypt *details* of sensitive events when a key is configured."""
        if self._encryptor is None or details is None or not is_sensitive(action):
            return details
        try:
            return self._encryptor.encrypt(details).as_details()
        except Exception as exc:
            report(self._on_error, "encryption-failure", exc, action=action.value)
            return details

    def _emit_counters(self, event: AuditEvent) -> None:
        self._counters.increment(f"audit_{event.action.value.replace('.', '_', 1)}")
        self._counters.increment(f"audit_outcome_{event.outcome.value}")
        self._counters.increment(f"audit_risk_{event.risk_level.value}")

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def query_events(
        self,
        filters: AuditQueryFilters | None = None,
    ) -> list[AuditEvent]:
        """Return matching events, decrypted where possible; ``[]`` on failure."""
        filters = filters or AuditQueryFilters()
        try:
            events = await self.storage.query(filters)
        except Exception as exc:
            report(
                self._on_error,
                "query-failure",
                exc,
                filters=filters.model_dump(mode="json", exclude_none=True),
            )
            return []

        if self._encryptor is None:
            return events
        return [self._reveal(event) for event in events]

    def _reveal(self, event: AuditEvent) -> AuditEvent:
        encryptor = self._encryptor
        if encryptor is None or not (event.is_encrypted and is_sensitive(event.action)):
            return event
        try:
            plain = encryptor.decrypt(event.details or {})
        except DecryptionError as exc:
            report(self._on_error, "decryption-failure", exc, audit_id=event.id)
            return event
        return event.model_copy(update={"details": plain})

    async def get_statistics(
        self,
        timeframe: Timeframe | str = Timeframe.day,
    ) -> AuditStatistics:
        """Aggregate events logged within *timeframe* of now.

        Raises ``ValueError`` for an unknown timeframe.
        """
        start, end = timeframe_window(timeframe)
        filters = AuditQueryFilters(
            start_date=start,
            end_date=end,
            limit=self._statistics_sample_limit,
        )
        try:
            events = await self.storage.query(filters)
        except Exception as exc:
            report(
                self._on_error,
                "statistics-failure",
                exc,
                timeframe=Timeframe(timeframe).value,
            )
            return AuditStatistics()
        return compute_statistics(events)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def cleanup(self, retention_days: int) -> int:
        """Remove events older than *retention_days*. Errors propagate."""
        return await self.storage.cleanup(retention_days)

    async def close(self) -> None:
        await self.storage.close()
