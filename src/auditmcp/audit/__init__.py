"""Audit subsystem — event model, risk policy, encryption, storage and queries."""

from auditmcp.audit.context import RequestContext
from auditmcp.audit.errors import AuditFailure
from auditmcp.audit.facade import AuditHelpers
from auditmcp.audit.logger import AuditLogger
from auditmcp.audit.retention import RetentionSweeper
from auditmcp.audit.schemas import AuditAction
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditOutcome
from auditmcp.audit.schemas import AuditQueryFilters
from auditmcp.audit.schemas import AuditStatistics
from auditmcp.audit.schemas import RiskLevel
from auditmcp.audit.schemas import Timeframe

__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditFailure",
    "AuditHelpers",
    "AuditLogger",
    "AuditOutcome",
    "AuditQueryFilters",
    "AuditStatistics",
    "RequestContext",
    "RetentionSweeper",
    "RiskLevel",
    "Timeframe",
]
