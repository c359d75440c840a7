"""In-memory ring buffer of audit events."""

from __future__ import annotations

import asyncio
import logging
from collections import deque

from auditmcp.audit.errors import FailureHandler
from auditmcp.audit.errors import log_failure
from auditmcp.audit.errors import report
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.storage.base import apply_filters
from auditmcp.audit.storage.base import retention_cutoff

logger = logging.getLogger(__name__)


class MemoryAuditStorage:
    """Append-ordered buffer bounded by ``max_events``.

    When the bound is exceeded the oldest events are evicted first,
    independently of the retention sweep.  Events are copied on the way in
    and out so callers never share the stored instances.  Contents are
    lost on restart.
    """

    def __init__(
        self,
        *,
        max_events: int = 10_000,
        on_error: FailureHandler = log_failure,
    ) -> None:
        if max_events < 1:
            raise ValueError("max_events must be >= 1")
        self._max_events = max_events
        self._events: deque[AuditEvent] = deque()
        self._lock = asyncio.Lock()
        self._on_error = on_error

    @property
    def max_events(self) -> int:
        return self._max_events

    async def store(self, event: AuditEvent) -> None:
        try:
            async with self._lock:
                self._events.append(event.model_copy(deep=True))
                evicted = 0
                while len(self._events) > self._max_events:
                    self._events.popleft()
                    evicted += 1
        except Exception as exc:
            report(self._on_error, "storage-write", exc, event_id=event.id)
            return
        if evicted:
            logger.debug("Evicted %d audit events over capacity", evicted)

    async def query(self, filters: AuditQueryFilters) -> list[AuditEvent]:
        async with self._lock:
            snapshot = list(self._events)
        return [e.model_copy(deep=True) for e in apply_filters(snapshot, filters)]

    async def cleanup(self, retention_days: int) -> int:
        cutoff = retention_cutoff(retention_days)
        async with self._lock:
            before = len(self._events)
            self._events = deque(e for e in self._events if e.timestamp >= cutoff)
            return before - len(self._events)

    async def count(self) -> int:
        async with self._lock:
            return len(self._events)

    async def clear(self) -> None:
        async with self._lock:
            self._events.clear()

    async def close(self) -> None:
        return None
