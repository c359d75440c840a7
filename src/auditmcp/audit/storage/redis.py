"""Redis-backed audit storage.

Events are stored as JSON members of the sorted set ``auditmcp:events``,
scored by their epoch timestamp.  Date bounds are resolved server-side by
score range; the remaining filters run in-process.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from auditmcp.audit.errors import FailureHandler
from auditmcp.audit.errors import StorageError
from auditmcp.audit.errors import log_failure
from auditmcp.audit.errors import report
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.storage.base import apply_filters
from auditmcp.audit.storage.base import retention_cutoff

logger = logging.getLogger(__name__)

_PREFIX = "auditmcp"
_EVENTS_KEY = f"{_PREFIX}:events"


class RedisAuditStorage:
    """Sorted-set audit log shared by every process using the same Redis."""

    def __init__(
        self,
        redis: Redis,
        *,
        key: str = _EVENTS_KEY,
        on_error: FailureHandler = log_failure,
    ) -> None:
        self._redis = redis
        self._key = key
        self._on_error = on_error

    @classmethod
    def from_url(cls, url: str, **kwargs) -> RedisAuditStorage:
        return cls(Redis.from_url(url), **kwargs)

    # -- write --

    async def store(self, event: AuditEvent) -> None:
        try:
            await self._redis.zadd(
                self._key, {event.model_dump_json(): event.timestamp.timestamp()}
            )
        except (RedisError, PydanticSerializationError) as exc:
            report(self._on_error, "storage-write", exc, event_id=event.id)

    # -- read --

    async def query(self, filters: AuditQueryFilters) -> list[AuditEvent]:
        high = filters.end_date.timestamp() if filters.end_date else "+inf"
        low = filters.start_date.timestamp() if filters.start_date else "-inf"
        try:
            members = await self._redis.zrevrangebyscore(self._key, high, low)
        except RedisError as exc:
            raise StorageError(f"cannot read audit events: {exc}") from exc

        events: list[AuditEvent] = []
        for raw in members:
            try:
                events.append(AuditEvent.model_validate_json(raw))
            except ValidationError:
                logger.warning("Skipping malformed audit event in %s", self._key)
        return apply_filters(events, filters)

    async def count(self) -> int:
        return await self._redis.zcard(self._key)

    # -- retention --

    async def cleanup(self, retention_days: int) -> int:
        cutoff = retention_cutoff(retention_days).timestamp()
        try:
            # "(" makes the upper bound exclusive: events at the cutoff stay.
            return int(
                await self._redis.zremrangebyscore(self._key, "-inf", f"({cutoff}")
            )
        except RedisError as exc:
            raise StorageError(f"cannot clean up audit events: {exc}") from exc

    async def clear(self) -> None:
        await self._redis.delete(self._key)

    async def close(self) -> None:
        await self._redis.aclose()
