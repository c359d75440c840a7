"""Audit storage backends and the factory that selects one."""

from __future__ import annotations

from auditmcp.audit.errors import FailureHandler
from auditmcp.audit.errors import log_failure
from auditmcp.audit.storage.base import AuditStorage
from auditmcp.audit.storage.base import apply_filters
from auditmcp.audit.storage.file import FileAuditStorage
from auditmcp.audit.storage.memory import MemoryAuditStorage
from auditmcp.audit.storage.redis import RedisAuditStorage
from auditmcp.config import AuditConfig

__all__ = [
    "AuditStorage",
    "FileAuditStorage",
    "MemoryAuditStorage",
    "RedisAuditStorage",
    "apply_filters",
    "create_storage",
]


def create_storage(
    config: AuditConfig,
    *,
    on_error: FailureHandler = log_failure,
) -> AuditStorage:
    """Build the backend named by ``config.storage_type``."""
    if config.storage_type == "memory":
        return MemoryAuditStorage(max_events=config.max_memory_events, on_error=on_error)
    if config.storage_type == "file":
        return FileAuditStorage(config.file_path, on_error=on_error)
    if config.storage_type == "redis":
        return RedisAuditStorage.from_url(config.redis_url, on_error=on_error)
    raise ValueError(
        f"Unknown audit storage type {config.storage_type!r}; "
        "expected one of: memory, file, redis"
    )
