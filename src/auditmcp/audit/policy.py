"""Sensitivity policy and redaction of audit payloads."""

from __future__ import annotations

from typing import Any

from auditmcp.audit.schemas import AuditAction

REDACTED = "[REDACTED]"

_SENSITIVE_ACTIONS: frozenset[AuditAction] = frozenset(
    {
        AuditAction.AUTH_LOGIN,
        AuditAction.AUTH_REGISTER,
        AuditAction.AUTH_PASSWORD_CHANGE,
        AuditAction.AUTH_PASSWORD_RESET,
        AuditAction.DATA_EXPORT,
        AuditAction.ADMIN_USER_CREATE,
        AuditAction.ADMIN_SETTINGS_CHANGE,
    }
)

_REDACTED_KEYS: frozenset[str] = frozenset(
    {"password", "token", "secret", "key", "credential"}
)


def is_sensitive(action: AuditAction) -> bool:
    """Return whether events for *action* carry details eligible for encryption."""
    return AuditAction(action) in _SENSITIVE_ACTIONS


def sanitize_details(details: dict[str, Any] | None) -> dict[str, Any] | None:
    """Return a shallow copy of *details* with denylisted keys redacted.

    Keys are matched case-insensitively against the denylist and replaced
    whatever their value.  Nested mappings are not inspected.
    """
    if details is None:
        return None

    sanitized = dict(details)
    for field_name in sanitized:
        if isinstance(field_name, str) and field_name.lower() in _REDACTED_KEYS:
            sanitized[field_name] = REDACTED
    return sanitized
