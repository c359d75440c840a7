"""AuditMCP — FastMCP v2 server exposing the audit query tools.

Tools delegate to an ``AuditLogger`` built by ``configure()``.  Every tool
call is recorded as ``admin.system_access`` on entry and, once served, as
``security.suspicious_activity``, so access to the audit trail leaves a
trace.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from time import perf_counter

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import ValidationError

from auditmcp.audit import AuditAction
from auditmcp.audit import AuditHelpers
from auditmcp.audit import AuditLogger
from auditmcp.audit import AuditOutcome
from auditmcp.audit import AuditQueryFilters
from auditmcp.audit import RetentionSweeper
from auditmcp.audit import RiskLevel
from auditmcp.audit.schemas import utcnow
from auditmcp.auth import create_mcp_auth
from auditmcp.config import AuditConfig
from auditmcp.models.schemas import QueryEventsInput
from auditmcp.models.schemas import QueryEventsResult
from auditmcp.models.schemas import SecurityEventsInput
from auditmcp.models.schemas import SecurityEventsResult
from auditmcp.models.schemas import SecuritySummary
from auditmcp.models.schemas import StatisticsInput
from auditmcp.models.schemas import StatisticsResult
from auditmcp.models.schemas import UserEventsInput
from auditmcp.models.schemas import UserEventsResult
from auditmcp.observability import record_latency

logger = logging.getLogger(__name__)

mcp = FastMCP("AuditMCP")

_SECURITY_QUERY_LIMIT = 500
_SECURITY_RETURN_LIMIT = 50
_USER_QUERY_LIMIT = 1000

# ---------------------------------------------------------------------------
# Audit instances (set via configure())
# ---------------------------------------------------------------------------

_audit_logger: AuditLogger | None = None
_helpers: AuditHelpers | None = None
_sweeper: RetentionSweeper | None = None


async def configure(
    config: AuditConfig | None = None,
    *,
    audit_logger: AuditLogger | None = None,
    start_sweeper: bool = True,
) -> None:
    """Initialize the audit pipeline behind the MCP tools.

    Must be called before the MCP tools can function.  An explicit
    ``audit_logger`` takes precedence over the one built from ``config``;
    the retention sweeper always takes its schedule from ``config`` (the
    defaults when omitted), since a logger does not carry retention settings.
    """
    global _audit_logger, _helpers, _sweeper
    await shutdown()

    cfg = config or AuditConfig()
    _audit_logger = audit_logger or AuditLogger.from_config(cfg)
    _helpers = AuditHelpers(_audit_logger)
    _sweeper = RetentionSweeper(
        _audit_logger,
        retention_days=cfg.retention_days,
        interval_hours=cfg.cleanup_interval_hours,
    )
    if start_sweeper:
        _sweeper.start()

    await _helpers.system.startup(
        {
            "storage_type": cfg.storage_type,
            "encryption": _audit_logger.encryption_enabled,
        }
    )


async def shutdown() -> None:
    """Stop the retention sweep and release the storage backend."""
    global _audit_logger, _helpers, _sweeper
    if _sweeper is not None:
        await _sweeper.stop()
        _sweeper = None
    if _helpers is not None:
        await _helpers.system.shutdown()
    if _audit_logger is not None:
        try:
            await _audit_logger.close()
        except RuntimeError:
            # Tests may reconfigure across event loops.
            pass
    _audit_logger = None
    _helpers = None


def _get_helpers() -> AuditHelpers:
    """Return the configured helpers or raise."""
    if _helpers is None:
        raise RuntimeError("Audit logger not configured. Call configure() first.")
    return _helpers


async def _record_admin_access(helpers: AuditHelpers, endpoint: str) -> None:
    await helpers.logger.log_event(
        AuditAction.ADMIN_SYSTEM_ACCESS,
        "audit_logs",
        AuditOutcome.success,
        details={"endpoint": endpoint},
    )


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = str(err.get("msg", "Invalid input"))
    return f"{loc}: {msg}" if loc else msg


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool
async def query_audit_events(
    user_id: str | None = None,
    action: str | None = None,
    resource: str | None = None,
    outcome: str | None = None,
    risk_level: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> QueryEventsResult:
    """Query audit events, newest first.

    Args:
        user_id: Only events by this user.
        action: Taxonomy action, e.g. "auth.login".
        resource: Resource name, e.g. "user".
        outcome: One of success, failure, blocked.
        risk_level: One of low, medium, high, critical.
        start_date: ISO-8601 lower bound.
        end_date: ISO-8601 upper bound.
        limit: Page size (1-1000).
        offset: Number of matching events to skip.
    """
    start = perf_counter()
    ok = False
    try:
        helpers = _get_helpers()
        await _record_admin_access(helpers, "query_audit_events")
        try:
            validated = QueryEventsInput.model_validate(
                {
                    "user_id": user_id,
                    "action": action,
                    "resource": resource,
                    "outcome": outcome,
                    "risk_level": risk_level,
                    "start_date": start_date,
                    "end_date": end_date,
                    "limit": limit,
                    "offset": offset,
                }
            )
        except ValidationError as exc:
            return QueryEventsResult(
                status="error",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        filters = validated.to_filters()
        events = await helpers.logger.query_events(filters)
        applied = filters.model_dump(mode="json", exclude_none=True)

        await helpers.security.suspicious_activity(
            None,
            "audit_log_access",
            {"queried_filters": applied, "result_count": len(events)},
        )
        ok = True
        return QueryEventsResult(
            events=events,
            filters=applied,
            total_results=len(events),
        )
    finally:
        record_latency(
            operation="mcp.query_audit_events",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def get_audit_statistics(timeframe: str = "day") -> StatisticsResult:
    """Aggregate audit statistics for a monitoring dashboard.

    Args:
        timeframe: One of hour, day, week, month.
    """
    start = perf_counter()
    ok = False
    try:
        helpers = _get_helpers()
        await _record_admin_access(helpers, "get_audit_statistics")
        try:
            validated = StatisticsInput.model_validate({"timeframe": timeframe})
        except ValidationError:
            return StatisticsResult(
                status="error",
                error_code="invalid_timeframe",
                message="Invalid timeframe. Must be one of: hour, day, week, month",
                timeframe=timeframe,
            )

        statistics = await helpers.logger.get_statistics(validated.timeframe)
        await helpers.security.suspicious_activity(
            None,
            "audit_statistics_access",
            {"timeframe": validated.timeframe.value},
        )
        ok = True
        return StatisticsResult(
            timeframe=validated.timeframe.value,
            statistics=statistics,
        )
    finally:
        record_latency(
            operation="mcp.get_audit_statistics",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def get_security_events(hours: int = 24) -> SecurityEventsResult:
    """Return recent high and critical risk events.

    Args:
        hours: How far back to look.
    """
    start = perf_counter()
    ok = False
    try:
        helpers = _get_helpers()
        await _record_admin_access(helpers, "get_security_events")
        try:
            validated = SecurityEventsInput.model_validate({"hours": hours})
        except ValidationError as exc:
            return SecurityEventsResult(
                status="error",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        since = utcnow() - timedelta(hours=validated.hours)
        high, critical = await asyncio.gather(
            helpers.logger.query_events(
                AuditQueryFilters(
                    risk_level=RiskLevel.high,
                    start_date=since,
                    limit=_SECURITY_QUERY_LIMIT,
                )
            ),
            helpers.logger.query_events(
                AuditQueryFilters(
                    risk_level=RiskLevel.critical,
                    start_date=since,
                    limit=_SECURITY_QUERY_LIMIT,
                )
            ),
        )

        await helpers.security.suspicious_activity(
            None,
            "security_events_access",
            {
                "hours_back": validated.hours,
                "high_risk_count": len(high),
                "critical_count": len(critical),
            },
        )
        ok = True
        return SecurityEventsResult(
            summary=SecuritySummary(
                timeframe=f"{validated.hours} hours",
                high_risk_events=len(high),
                critical_events=len(critical),
                total_security_events=len(high) + len(critical),
            ),
            high=high[:_SECURITY_RETURN_LIMIT],
            critical=critical[:_SECURITY_RETURN_LIMIT],
        )
    finally:
        record_latency(
            operation="mcp.get_security_events",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def get_user_audit_events(user_id: str, days: int = 7) -> UserEventsResult:
    """Return a user's audit trail for the last ``days`` days.

    Args:
        user_id: User whose events to return.
        days: How far back to look.
    """
    start = perf_counter()
    ok = False
    try:
        helpers = _get_helpers()
        await _record_admin_access(helpers, "get_user_audit_events")
        try:
            validated = UserEventsInput.model_validate(
                {"user_id": user_id, "days": days}
            )
        except ValidationError as exc:
            return UserEventsResult(
                status="error",
                error_code="validation_error",
                message=_validation_message(exc),
                user_id=user_id,
            )

        events = await helpers.logger.query_events(
            AuditQueryFilters(
                user_id=validated.user_id,
                start_date=utcnow() - timedelta(days=validated.days),
                limit=_USER_QUERY_LIMIT,
            )
        )
        await helpers.security.suspicious_activity(
            None,
            "user_audit_access",
            {
                "target_user_id": validated.user_id,
                "days_back": validated.days,
                "event_count": len(events),
            },
        )
        ok = True
        return UserEventsResult(
            user_id=validated.user_id,
            timeframe=f"{validated.days} days",
            event_count=len(events),
            events=events,
        )
    finally:
        record_latency(
            operation="mcp.get_user_audit_events",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _serve(config: AuditConfig) -> None:
    await configure(config)
    try:
        await mcp.run_async()
    finally:
        await shutdown()


def main() -> None:
    """Run the MCP server configured from ``AUDIT_*`` environment variables."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mcp.auth = create_mcp_auth()
    asyncio.run(_serve(AuditConfig.from_env()))


if __name__ == "__main__":
    main()
