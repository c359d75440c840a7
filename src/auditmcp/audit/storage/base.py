"""Persistence contract shared by all audit backends."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from datetime import timedelta
from typing import Protocol
from typing import runtime_checkable

from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.schemas import utcnow


@runtime_checkable
class AuditStorage(Protocol):
    """Backend contract.

    ``store`` never raises for a valid event: persistence errors are
    reported through the backend's failure handler instead.
    """

    async def store(self, event: AuditEvent) -> None: ...

    async def query(self, filters: AuditQueryFilters) -> list[AuditEvent]: ...

    async def cleanup(self, retention_days: int) -> int: ...

    async def close(self) -> None: ...


def matches(event: AuditEvent, filters: AuditQueryFilters) -> bool:
    """Return whether *event* satisfies every supplied filter."""
    if filters.user_id is not None and event.user_id != filters.user_id:
        return False
    if filters.action is not None and event.action != filters.action:
        return False
    if filters.resource is not None and event.resource != filters.resource:
        return False
    if filters.outcome is not None and event.outcome != filters.outcome:
        return False
    if filters.risk_level is not None and event.risk_level != filters.risk_level:
        return False
    if filters.start_date is not None and event.timestamp < filters.start_date:
        return False
    if filters.end_date is not None and event.timestamp > filters.end_date:
        return False
    return True


def apply_filters(
    events: Iterable[AuditEvent],
    filters: AuditQueryFilters,
) -> list[AuditEvent]:
    """Filter (logical AND), sort newest-first, then slice by offset/limit."""
    results = [event for event in events if matches(event, filters)]
    results.sort(key=lambda e: e.timestamp, reverse=True)
    return results[filters.offset : filters.offset + filters.limit]


def retention_cutoff(retention_days: int, *, now: datetime | None = None) -> datetime:
    """Events strictly older than the returned instant are expired."""
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")
    return (now or utcnow()) - timedelta(days=retention_days)
