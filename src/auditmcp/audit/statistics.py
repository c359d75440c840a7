"""Aggregate statistics over audit events."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import datetime
from datetime import timedelta

from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditStatistics
from auditmcp.audit.schemas import ResourceCount
from auditmcp.audit.schemas import Timeframe
from auditmcp.audit.schemas import UserCount
from auditmcp.audit.schemas import utcnow

TOP_N = 10

_WINDOWS: dict[Timeframe, timedelta] = {
    Timeframe.hour: timedelta(hours=1),
    Timeframe.day: timedelta(days=1),
    Timeframe.week: timedelta(days=7),
    Timeframe.month: timedelta(days=30),
}


def timeframe_window(
    timeframe: Timeframe | str,
    *,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` for *timeframe*, ending now.

    Raises ``ValueError`` for unknown timeframes.
    """
    try:
        span = _WINDOWS[Timeframe(timeframe)]
    except ValueError:
        valid = ", ".join(t.value for t in Timeframe)
        raise ValueError(f"Invalid timeframe {timeframe!r}. Must be one of: {valid}") from None
    end = now or utcnow()
    return end - span, end


def _top(counter: Counter[str]) -> list[tuple[str, int]]:
    # Counter preserves insertion order and sorted() is stable, so ties keep
    # first-seen order.
    return sorted(counter.items(), key=lambda item: item[1], reverse=True)[:TOP_N]


def compute_statistics(events: Iterable[AuditEvent]) -> AuditStatistics:
    """Count events by action, outcome, risk level, user and resource."""
    by_action: Counter[str] = Counter()
    by_outcome: Counter[str] = Counter()
    by_risk: Counter[str] = Counter()
    users: Counter[str] = Counter()
    resources: Counter[str] = Counter()
    total = 0

    for event in events:
        total += 1
        by_action[event.action.value] += 1
        by_outcome[event.outcome.value] += 1
        by_risk[event.risk_level.value] += 1
        if event.user_id:
            users[event.user_id] += 1
        resources[event.resource] += 1

    return AuditStatistics(
        total_events=total,
        by_action=dict(by_action),
        by_outcome=dict(by_outcome),
        by_risk_level=dict(by_risk),
        top_users=[UserCount(user_id=u, count=c) for u, c in _top(users)],
        top_resources=[ResourceCount(resource=r, count=c) for r, c in _top(resources)],
    )
