"""Unit tests for the audit logger orchestrator."""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from auditmcp.audit import AuditAction
from auditmcp.audit import AuditEvent
from auditmcp.audit import AuditLogger
from auditmcp.audit import AuditOutcome
from auditmcp.audit import AuditQueryFilters
from auditmcp.audit import RequestContext
from auditmcp.audit import RiskLevel
from auditmcp.audit.errors import StorageError
from auditmcp.audit.policy import REDACTED
from auditmcp.audit.schemas import Geolocation
from auditmcp.audit.schemas import utcnow
from auditmcp.audit.storage import MemoryAuditStorage
from auditmcp.config import AuditConfig
from auditmcp.observability import CounterRegistry


class _BrokenStorage:
    """Backend whose reads and cleanups always fail."""

    def __init__(self) -> None:
        self.stored: list[AuditEvent] = []

    async def store(self, event: AuditEvent) -> None:
        self.stored.append(event)

    async def query(self, filters: AuditQueryFilters) -> list[AuditEvent]:
        raise StorageError("disk on fire")

    async def cleanup(self, retention_days: int) -> int:
        raise StorageError("disk on fire")

    async def close(self) -> None:
        return None


class _ExplodingStorage(_BrokenStorage):
    async def store(self, event: AuditEvent) -> None:
        raise RuntimeError("unexpected backend bug")


def _request(**overrides) -> RequestContext:
    values = {
        "ip": "203.0.113.7",
        "user_agent": "pytest/8",
        "session_id": "sess-1",
        "user_id": "req-user",
        "correlation_id": "corr-1",
    }
    values.update(overrides)
    return RequestContext(**values)


# ---------------------------------------------------------------------------
# log_event
# ---------------------------------------------------------------------------


class TestLogEvent:
    async def test_builds_event_from_request(self, audit_logger: AuditLogger):
        event = await audit_logger.log_event(
            AuditAction.DATA_READ, "run", AuditOutcome.success, request=_request()
        )

        assert event is not None
        assert event.user_id == "req-user"
        assert event.session_id == "sess-1"
        assert event.ip_address == "203.0.113.7"
        assert event.user_agent == "pytest/8"
        assert event.correlation_id == "corr-1"
        assert event.timestamp.tzinfo is not None

    async def test_explicit_user_id_wins(self, audit_logger: AuditLogger):
        event = await audit_logger.log_event(
            "data.read", "run", "success", request=_request(), user_id="explicit"
        )
        assert event.user_id == "explicit"

    async def test_without_request_context_fields_are_absent(self, audit_logger):
        event = await audit_logger.log_event("system.startup", "system", "success")
        assert event.ip_address is None
        assert event.session_id is None
        assert event.user_agent is None

    async def test_ids_are_unique(self, audit_logger: AuditLogger):
        ids = {
            (await audit_logger.log_event("data.read", "run", "success")).id
            for _ in range(50)
        }
        assert len(ids) == 50

    async def test_classifies_risk_when_absent(self, audit_logger: AuditLogger):
        failed = await audit_logger.log_event("admin.user_delete", "user", "failure")
        succeeded = await audit_logger.log_event("admin.user_delete", "user", "success")
        assert failed.risk_level == RiskLevel.critical
        assert succeeded.risk_level == RiskLevel.high

    async def test_explicit_risk_level_is_kept(self, audit_logger: AuditLogger):
        event = await audit_logger.log_event(
            "data.read", "run", "success", risk_level="critical"
        )
        assert event.risk_level == RiskLevel.critical

    async def test_sanitizes_details(self, audit_logger: AuditLogger):
        event = await audit_logger.log_event(
            "data.update",
            "user",
            "success",
            details={"password": "hunter2", "field": "email"},
        )
        assert event.details == {"password": REDACTED, "field": "email"}

    async def test_callers_cannot_rewrite_stored_history(self, audit_logger: AuditLogger):
        nested = {"field": "email"}
        logged = await audit_logger.log_event(
            "data.update", "user", "success", details={"change": nested}
        )

        nested["field"] = "rewritten"
        logged.details["added"] = True
        (await audit_logger.query_events())[0].details["injected"] = True

        [stored] = await audit_logger.query_events()
        assert stored.details == {"change": {"field": "email"}}

    async def test_geolocation_passthrough(self, audit_logger: AuditLogger):
        geo = Geolocation(country="NZ", city="Wellington")
        event = await audit_logger.log_event("auth.logout", "user", "success", geolocation=geo)
        assert event.geolocation == geo

    async def test_emits_counters(self, audit_logger: AuditLogger, counters: CounterRegistry):
        await audit_logger.log_event("auth.login", "user", "failure")
        assert counters.snapshot() == {
            "audit_auth_login": 1,
            "audit_outcome_failure": 1,
            "audit_risk_medium": 1,
        }

    async def test_mirrors_high_risk_events(self, audit_logger: AuditLogger, caplog):
        with caplog.at_level(logging.WARNING, logger="auditmcp.audit.logger"):
            await audit_logger.log_event("data.read", "run", "success")
            event = await audit_logger.log_event("admin.user_delete", "user", "failure")

        mirrored = [r for r in caplog.records if "High-risk audit event" in r.getMessage()]
        assert len(mirrored) == 1
        assert event.id in mirrored[0].getMessage()
        assert "critical" in mirrored[0].getMessage()

    async def test_invalid_action_is_reported(self, audit_logger: AuditLogger, failures):
        result = await audit_logger.log_event("auth.teleport", "user", "success")

        assert result is None
        assert [f.operation for f in failures] == ["invalid-input"]

    async def test_invalid_outcome_is_reported(self, audit_logger: AuditLogger, failures):
        assert await audit_logger.log_event("auth.login", "user", "maybe") is None
        assert failures[0].operation == "invalid-input"

    async def test_fake_envelope_from_caller_is_reported(self, audit_logger, failures):
        result = await audit_logger.log_event(
            "data.read", "run", "success", details={"encrypted": True}
        )
        assert result is None
        assert failures[0].operation == "logging-failure"

    async def test_unexpected_storage_error_never_escapes(self, counters, failures):
        audit_logger = AuditLogger(
            _ExplodingStorage(), counters=counters, on_error=failures.append
        )

        result = await audit_logger.log_event("auth.login", "user", "success")

        assert result is None
        assert failures[0].operation == "logging-failure"
        assert isinstance(failures[0].error, RuntimeError)
        assert counters.snapshot() == {}

    async def test_failing_error_handler_does_not_escape(self, caplog):
        def bad_handler(failure):
            raise RuntimeError("handler broke")

        audit_logger = AuditLogger(MemoryAuditStorage(), on_error=bad_handler)
        with caplog.at_level(logging.ERROR):
            assert await audit_logger.log_event("nope", "user", "success") is None
        assert "handler raised" in caplog.text


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------


class TestEncryption:
    async def test_sensitive_details_are_encrypted_at_rest(
        self, encrypted_logger: AuditLogger, memory_storage: MemoryAuditStorage
    ):
        await encrypted_logger.log_event(
            "auth.login", "user", "success", details={"method": "password"}
        )

        stored = await memory_storage.query(AuditQueryFilters())
        assert stored[0].is_encrypted
        assert "method" not in stored[0].details

    async def test_query_decrypts(self, encrypted_logger: AuditLogger):
        await encrypted_logger.log_event(
            "auth.login", "user", "success", details={"method": "password", "token": "t"}
        )

        events = await encrypted_logger.query_events()

        assert events[0].details == {"method": "password", "token": REDACTED}

    async def test_non_sensitive_details_stay_plaintext(
        self, encrypted_logger: AuditLogger, memory_storage: MemoryAuditStorage
    ):
        await encrypted_logger.log_event("data.read", "run", "success", details={"a": 1})
        stored = await memory_storage.query(AuditQueryFilters())
        assert stored[0].details == {"a": 1}

    async def test_no_key_means_plaintext(
        self, audit_logger: AuditLogger, memory_storage: MemoryAuditStorage
    ):
        await audit_logger.log_event("auth.login", "user", "success", details={"a": 1})
        stored = await memory_storage.query(AuditQueryFilters())
        assert stored[0].details == {"a": 1}
        assert audit_logger.encryption_enabled is False

    async def test_tampered_envelope_is_returned_unchanged(
        self,
        encrypted_logger: AuditLogger,
        memory_storage: MemoryAuditStorage,
        failures,
    ):
        stored = await encrypted_logger.log_event(
            "auth.register", "user", "success", details={"plan": "pro"}
        )
        envelope = dict(stored.details)
        envelope["tag"] = ("1" if envelope["tag"][0] != "1" else "2") + envelope["tag"][1:]
        tampered = stored.model_copy(update={"details": envelope})
        await memory_storage.clear()
        await memory_storage.store(tampered)

        events = await encrypted_logger.query_events()

        assert events[0].details == envelope
        assert [f.operation for f in failures] == ["decryption-failure"]

    async def test_stored_event_is_not_mutated_by_query(
        self, encrypted_logger: AuditLogger, memory_storage: MemoryAuditStorage
    ):
        await encrypted_logger.log_event("data.export", "report", "success", details={"rows": 3})
        await encrypted_logger.query_events()
        stored = await memory_storage.query(AuditQueryFilters())
        assert stored[0].is_encrypted

    async def test_logger_without_key_returns_envelope_as_stored(
        self,
        encrypted_logger: AuditLogger,
        memory_storage: MemoryAuditStorage,
        failures,
    ):
        await encrypted_logger.log_event("auth.login", "user", "success", details={"a": 1})
        reader = AuditLogger(memory_storage, on_error=failures.append)

        [event] = await reader.query_events()

        assert event.is_encrypted
        assert failures == []

    def test_invalid_key_fails_fast(self, memory_storage):
        with pytest.raises(ValueError):
            AuditLogger(memory_storage, encryption_key="short")


# ---------------------------------------------------------------------------
# query_events
# ---------------------------------------------------------------------------


class TestQueryEvents:
    async def test_login_failure_scenario(self, audit_logger: AuditLogger):
        await audit_logger.log_event("auth.login", "user", "success", user_id="u1")
        await audit_logger.log_event("auth.login", "user", "failure", user_id="u2")
        logged = await audit_logger.log_event("auth.login", "user", "failure", user_id="u1")

        events = await audit_logger.query_events(
            AuditQueryFilters(
                user_id="u1",
                action=AuditAction.AUTH_LOGIN,
                outcome=AuditOutcome.failure,
                start_date=utcnow() - timedelta(hours=1),
            )
        )

        assert [e.id for e in events] == [logged.id]
        assert events[0].risk_level == RiskLevel.medium

    async def test_storage_failure_returns_empty(self, failures):
        audit_logger = AuditLogger(_BrokenStorage(), on_error=failures.append)

        assert await audit_logger.query_events(AuditQueryFilters(user_id="x")) == []
        assert failures[0].operation == "query-failure"
        assert failures[0].context["filters"]["user_id"] == "x"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestFromConfig:
    def test_memory_backend(self):
        audit_logger = AuditLogger.from_config(AuditConfig(max_memory_events=7))
        assert isinstance(audit_logger.storage, MemoryAuditStorage)
        assert audit_logger.storage.max_events == 7

    def test_encryption_from_config(self):
        audit_logger = AuditLogger.from_config(AuditConfig(encryption_key="k" * 32))
        assert audit_logger.encryption_enabled is True
