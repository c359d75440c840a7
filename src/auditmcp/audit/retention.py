"""Periodic retention sweep for stored audit events."""

from __future__ import annotations

import asyncio
import logging

from auditmcp.audit.errors import FailureHandler
from auditmcp.audit.errors import log_failure
from auditmcp.audit.errors import report
from auditmcp.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Runs ``AuditLogger.cleanup`` every ``interval_hours``.

    The sweeper is owned by whoever starts it: call :meth:`start` once the
    event loop is running and :meth:`stop` during shutdown.  Tests can call
    :meth:`sweep_once` directly instead of waiting on the interval.
    """

    def __init__(
        self,
        audit_logger: AuditLogger,
        *,
        retention_days: int = 365,
        interval_hours: float = 24,
        on_error: FailureHandler = log_failure,
    ) -> None:
        if interval_hours <= 0:
            raise ValueError("interval_hours must be > 0")
        self._audit_logger = audit_logger
        self.retention_days = retention_days
        self.interval_seconds = interval_hours * 3600
        self._on_error = on_error
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Run one cleanup pass. Returns the number of events removed."""
        try:
            removed = await self._audit_logger.cleanup(self.retention_days)
        except Exception as exc:
            report(
                self._on_error,
                "cleanup-failure",
                exc,
                retention_days=self.retention_days,
            )
            return 0
        if removed > 0:
            logger.info("Cleaned up %d old audit events", removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep_once()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="audit-retention-sweep")

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
