"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults.  ``AuditConfig.from_env`` reads
the ``AUDIT_*`` environment variables; everything else is overridden at
construction time.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

STORAGE_TYPES = ("memory", "file", "redis")


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default


def _env_str(env: Mapping[str, str], name: str) -> str | None:
    raw = env.get(name)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the audit pipeline.

    ``encryption_key`` left unset means sensitive details are stored as
    sanitized plaintext.
    """

    storage_type: str = "memory"
    file_path: str = "./logs/audit.log"
    max_memory_events: int = 10_000
    redis_url: str = "redis://localhost:6379"
    encryption_key: str | None = None
    retention_days: int = 365
    cleanup_interval_hours: float = 24
    statistics_sample_limit: int = 10_000

    def __post_init__(self) -> None:
        if self.storage_type not in STORAGE_TYPES:
            raise ValueError(
                f"storage_type must be one of {', '.join(STORAGE_TYPES)}, "
                f"got {self.storage_type!r}"
            )
        if self.max_memory_events < 1:
            raise ValueError("max_memory_events must be >= 1")
        if self.retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        if self.cleanup_interval_hours <= 0:
            raise ValueError("cleanup_interval_hours must be > 0")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> AuditConfig:
        """Build a config from ``AUDIT_*`` variables, falling back to defaults."""
        env = os.environ if env is None else env
        defaults = cls()
        storage_type = (_env_str(env, "AUDIT_STORAGE_TYPE") or "memory").lower()
        return cls(
            storage_type=storage_type,
            file_path=_env_str(env, "AUDIT_LOG_PATH") or defaults.file_path,
            max_memory_events=_env_int(
                env, "AUDIT_MAX_MEMORY_EVENTS", defaults.max_memory_events
            ),
            redis_url=_env_str(env, "AUDIT_REDIS_URL") or defaults.redis_url,
            encryption_key=_env_str(env, "AUDIT_ENCRYPTION_KEY"),
            retention_days=_env_int(env, "AUDIT_RETENTION_DAYS", defaults.retention_days),
            cleanup_interval_hours=_env_int(
                env,
                "AUDIT_CLEANUP_INTERVAL_HOURS",
                int(defaults.cleanup_interval_hours),
            ),
        )
