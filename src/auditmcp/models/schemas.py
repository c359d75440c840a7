"""Pydantic models for the MCP audit query tools.

Input models validate tool arguments; output models shape responses.
FastMCP v2 serializes Pydantic models automatically.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel
from pydantic import Field

from auditmcp.audit.schemas import AuditAction
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditOutcome
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.schemas import AuditStatistics
from auditmcp.audit.schemas import RiskLevel
from auditmcp.audit.schemas import Timeframe
from auditmcp.audit.schemas import utcnow

Status = Literal["ok", "error"]

MAX_QUERY_LIMIT = 1000

# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class QueryEventsInput(BaseModel):
    """Input for query_audit_events."""

    user_id: str | None = None
    action: AuditAction | None = None
    resource: str | None = None
    outcome: AuditOutcome | None = None
    risk_level: RiskLevel | None = None
    start_date: datetime | None = Field(
        default=None,
        description="ISO-8601 lower bound (inclusive). Naive values are UTC.",
    )
    end_date: datetime | None = Field(
        default=None,
        description="ISO-8601 upper bound (inclusive). Naive values are UTC.",
    )
    limit: int = Field(default=100, ge=1, le=MAX_QUERY_LIMIT)
    offset: int = Field(default=0, ge=0)

    def to_filters(self) -> AuditQueryFilters:
        return AuditQueryFilters.model_validate(self.model_dump())


class StatisticsInput(BaseModel):
    """Input for get_audit_statistics."""

    timeframe: Timeframe = Timeframe.day


class SecurityEventsInput(BaseModel):
    """Input for get_security_events."""

    hours: int = Field(default=24, ge=1, le=24 * 366)


class UserEventsInput(BaseModel):
    """Input for get_user_audit_events."""

    user_id: str = Field(min_length=1)
    days: int = Field(default=7, ge=1, le=3660)


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class _ToolResult(BaseModel):
    status: Status = "ok"
    error_code: str | None = None
    message: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class QueryEventsResult(_ToolResult):
    """Output of query_audit_events."""

    events: list[AuditEvent] = Field(default_factory=list)
    filters: dict = Field(default_factory=dict)
    total_results: int = 0


class StatisticsResult(_ToolResult):
    """Output of get_audit_statistics."""

    timeframe: str = Timeframe.day.value
    statistics: AuditStatistics | None = None


class SecuritySummary(BaseModel):
    timeframe: str
    high_risk_events: int
    critical_events: int
    total_security_events: int


class SecurityEventsResult(_ToolResult):
    """Output of get_security_events."""

    summary: SecuritySummary | None = None
    high: list[AuditEvent] = Field(default_factory=list)
    critical: list[AuditEvent] = Field(default_factory=list)


class UserEventsResult(_ToolResult):
    """Output of get_user_audit_events."""

    user_id: str = ""
    timeframe: str = ""
    event_count: int = 0
    events: list[AuditEvent] = Field(default_factory=list)
