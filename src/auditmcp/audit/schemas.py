"""Audit event taxonomy and data models."""

from __future__ import annotations

import re
import uuid
from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")


def utcnow() -> datetime:
    """Return the current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AuditAction(str, Enum):
    """Closed taxonomy of auditable actions, grouped by prefix."""

    # Authentication
    AUTH_LOGIN = "auth.login"
    AUTH_LOGOUT = "auth.logout"
    AUTH_REGISTER = "auth.register"
    AUTH_PASSWORD_CHANGE = "auth.password_change"
    AUTH_PASSWORD_RESET = "auth.password_reset"
    AUTH_TOKEN_REFRESH = "auth.token_refresh"
    AUTH_MFA_ENABLE = "auth.mfa_enable"
    AUTH_MFA_DISABLE = "auth.mfa_disable"
    AUTH_SESSION_TIMEOUT = "auth.session_timeout"
    # Authorization
    AUTHZ_ACCESS_GRANTED = "authz.access_granted"
    AUTHZ_ACCESS_DENIED = "authz.access_denied"
    AUTHZ_PRIVILEGE_ESCALATION = "authz.privilege_escalation"
    AUTHZ_ROLE_CHANGE = "authz.role_change"
    # Data operations
    DATA_CREATE = "data.create"
    DATA_READ = "data.read"
    DATA_UPDATE = "data.update"
    DATA_DELETE = "data.delete"
    DATA_EXPORT = "data.export"
    DATA_IMPORT = "data.import"
    DATA_BACKUP = "data.backup"
    DATA_RESTORE = "data.restore"
    # Security
    SECURITY_ATTACK_DETECTED = "security.attack_detected"
    SECURITY_RATE_LIMIT_EXCEEDED = "security.rate_limit_exceeded"
    SECURITY_SUSPICIOUS_ACTIVITY = "security.suspicious_activity"
    SECURITY_POLICY_VIOLATION = "security.policy_violation"
    SECURITY_ENCRYPTION_FAILURE = "security.encryption_failure"
    SECURITY_CERTIFICATE_ERROR = "security.certificate_error"
    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_CONFIG_CHANGE = "system.config_change"
    SYSTEM_BACKUP = "system.backup"
    SYSTEM_MAINTENANCE = "system.maintenance"
    # Admin
    ADMIN_USER_CREATE = "admin.user_create"
    ADMIN_USER_DELETE = "admin.user_delete"
    ADMIN_USER_SUSPEND = "admin.user_suspend"
    ADMIN_SETTINGS_CHANGE = "admin.settings_change"
    ADMIN_SYSTEM_ACCESS = "admin.system_access"

    @property
    def category(self) -> str:
        """Prefix of the action, e.g. ``auth`` for ``auth.login``."""
        return self.value.split(".", 1)[0]


class AuditOutcome(str, Enum):
    success = "success"
    failure = "failure"
    blocked = "blocked"


class RiskLevel(str, Enum):
    """Ordered severity: low < medium < high < critical."""

    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class Timeframe(str, Enum):
    """Statistics windows ending now."""

    hour = "hour"
    day = "day"
    week = "week"
    month = "month"


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


class Geolocation(BaseModel):
    """Coarse location supplied by an upstream collaborator."""

    model_config = {"frozen": True}

    country: str | None = None
    region: str | None = None
    city: str | None = None


class EncryptedPayload(BaseModel):
    """AES-GCM envelope that replaces ``details`` of sensitive events."""

    model_config = {"frozen": True}

    encrypted: bool = True
    data: str = Field(description="Hex-encoded ciphertext.")
    iv: str = Field(description="Hex-encoded initialization vector.")
    tag: str = Field(description="Hex-encoded authentication tag.")

    @field_validator("data", "iv", "tag")
    @classmethod
    def _must_be_hex(cls, value: str) -> str:
        if not _HEX_RE.match(value):
            raise ValueError("must be a non-empty hex string")
        return value

    @classmethod
    def is_envelope(cls, details: dict[str, Any] | None) -> bool:
        """Return whether *details* claims to be an encrypted envelope."""
        return isinstance(details, dict) and details.get("encrypted") is True

    def as_details(self) -> dict[str, Any]:
        return self.model_dump()


class AuditEvent(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Globally unique event identifier.",
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="UTC instant when the event was created.",
    )
    user_id: str | None = None
    session_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    action: AuditAction
    resource: str = Field(description="Domain or object acted upon.")
    resource_id: str | None = None
    outcome: AuditOutcome
    details: dict[str, Any] | None = Field(
        default=None,
        description="Plaintext payload or an encrypted envelope.",
    )
    risk_level: RiskLevel
    correlation_id: str | None = None
    geolocation: Geolocation | None = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_envelope(self) -> AuditEvent:
        if EncryptedPayload.is_envelope(self.details):
            EncryptedPayload.model_validate(self.details)
        return self

    @property
    def is_encrypted(self) -> bool:
        return EncryptedPayload.is_envelope(self.details)


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class AuditQueryFilters(BaseModel):
    """Read-only criteria applied at query time. Never persisted."""

    model_config = {"frozen": True}

    user_id: str | None = None
    action: AuditAction | None = None
    resource: str | None = None
    outcome: AuditOutcome | None = None
    risk_level: RiskLevel | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int = Field(default=100, ge=1)
    offset: int = Field(default=0, ge=0)

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_dates(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class UserCount(BaseModel):
    user_id: str
    count: int


class ResourceCount(BaseModel):
    resource: str
    count: int


class AuditStatistics(BaseModel):
    """Aggregate counts over a statistics window."""

    total_events: int = 0
    by_action: dict[str, int] = Field(default_factory=dict)
    by_outcome: dict[str, int] = Field(default_factory=dict)
    by_risk_level: dict[str, int] = Field(default_factory=dict)
    top_users: list[UserCount] = Field(default_factory=list)
    top_resources: list[ResourceCount] = Field(default_factory=list)
