"""Append-only NDJSON audit log on the local filesystem.

Each event is one JSON line.  Queries parse the whole file on every call
and do not use any index, so their cost grows linearly with the log size.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from datetime import datetime
from functools import partial
from pathlib import Path

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from auditmcp.audit.errors import FailureHandler
from auditmcp.audit.errors import StorageError
from auditmcp.audit.errors import log_failure
from auditmcp.audit.errors import report
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.storage.base import apply_filters
from auditmcp.audit.storage.base import retention_cutoff

logger = logging.getLogger(__name__)


def _decode_line(line: bytes) -> AuditEvent | None:
    """Parse one log line, or return ``None`` if it is not a valid event."""
    try:
        return AuditEvent.model_validate_json(line.decode("utf-8"))
    except (UnicodeDecodeError, ValidationError):
        return None


class FileAuditStorage:
    """NDJSON audit log with async I/O.

    Uses ``asyncio.to_thread`` for file operations to avoid blocking the
    event loop.  Appends, reads and cleanup rewrites share one
    ``asyncio.Lock``, so a rewrite never interleaves with a write.
    """

    def __init__(
        self,
        path: str | Path = "./logs/audit.log",
        *,
        on_error: FailureHandler = log_failure,
    ) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._on_error = on_error

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def store(self, event: AuditEvent) -> None:
        """Append *event* as a single JSON line."""
        try:
            line = event.model_dump_json() + "\n"
            async with self._lock:
                await asyncio.to_thread(partial(self._append, self.path, line))
        except (OSError, PydanticSerializationError) as exc:
            report(
                self._on_error,
                "storage-write",
                exc,
                event_id=event.id,
                path=str(self.path),
            )

    @staticmethod
    def _append(path: Path, line: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(line)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def query(self, filters: AuditQueryFilters) -> list[AuditEvent]:
        async with self._lock:
            raw = await self._read()
        if raw is None:
            return []
        return apply_filters(self._parse(raw), filters)

    async def _read(self) -> bytes | None:
        # Raw bytes: lines are decoded one at a time so a corrupt line
        # cannot fail the whole read.
        if not self.path.exists():
            return None
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as exc:
            raise StorageError(f"cannot read audit log {self.path}: {exc}") from exc

    def _parse(self, raw: bytes) -> list[AuditEvent]:
        events: list[AuditEvent] = []
        for line_no, line in enumerate(raw.splitlines(), start=1):
            if not line.strip():
                continue
            event = _decode_line(line)
            if event is None:
                logger.warning(
                    "Skipping malformed audit event line %d in %s",
                    line_no,
                    self.path,
                )
                continue
            events.append(event)
        return events

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    async def cleanup(self, retention_days: int) -> int:
        """Rewrite the log keeping only events at or after the cutoff.

        Lines that cannot be parsed carry no usable timestamp and are kept
        byte for byte.
        """
        cutoff = retention_cutoff(retention_days)
        async with self._lock:
            raw = await self._read()
            if raw is None:
                return 0
            kept, removed = self._partition(raw, cutoff)
            if removed == 0:
                return 0
            try:
                await asyncio.to_thread(partial(self._replace, self.path, kept))
            except OSError as exc:
                raise StorageError(
                    f"cannot rewrite audit log {self.path}: {exc}"
                ) from exc
        return removed

    @staticmethod
    def _partition(raw: bytes, cutoff: datetime) -> tuple[list[bytes], int]:
        kept: list[bytes] = []
        removed = 0
        for line in raw.splitlines():
            if not line.strip():
                continue
            event = _decode_line(line)
            if event is not None and event.timestamp < cutoff:
                removed += 1
            else:
                kept.append(line)
        return kept, removed

    @staticmethod
    def _replace(path: Path, lines: list[bytes]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.writelines(line + b"\n" for line in lines)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def close(self) -> None:
        return None
