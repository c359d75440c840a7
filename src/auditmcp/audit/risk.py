"""Risk classification for audit events.

Rules are evaluated in priority order and the first match wins.  A
``failure`` outcome escalates the level by one step within each rule;
``blocked`` is treated like ``success``.
"""

from __future__ import annotations

from auditmcp.audit.schemas import AuditAction
from auditmcp.audit.schemas import AuditOutcome
from auditmcp.audit.schemas import RiskLevel

_RISK_ORDER: dict[RiskLevel, int] = {
    RiskLevel.low: 0,
    RiskLevel.medium: 1,
    RiskLevel.high: 2,
    RiskLevel.critical: 3,
}


def risk_rank(level: RiskLevel) -> int:
    """Return the ordinal of *level* (``low`` is 0, ``critical`` is 3)."""
    return _RISK_ORDER[RiskLevel(level)]


def classify_risk(action: AuditAction, outcome: AuditOutcome) -> RiskLevel:
    """Map an (action, outcome) pair to a risk level."""
    name = AuditAction(action).value
    failed = AuditOutcome(outcome) is AuditOutcome.failure

    if (
        name.startswith("admin.")
        or "delete" in name
        or name == AuditAction.AUTHZ_PRIVILEGE_ESCALATION.value
    ):
        return RiskLevel.critical if failed else RiskLevel.high

    if (
        name.startswith("security.")
        or "password" in name
        or name == AuditAction.DATA_EXPORT.value
    ):
        return RiskLevel.high if failed else RiskLevel.medium

    if name.startswith("auth.") or name.startswith("data."):
        return RiskLevel.medium if failed else RiskLevel.low

    return RiskLevel.low
