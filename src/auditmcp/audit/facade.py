"""Per-domain helpers that pre-fill action, resource and risk defaults."""

from __future__ import annotations

from typing import Any

from auditmcp.audit.context import RequestContext
from auditmcp.audit.logger import AuditLogger
from auditmcp.audit.schemas import AuditAction
from auditmcp.audit.schemas import AuditEvent
from auditmcp.audit.schemas import AuditOutcome
from auditmcp.audit.schemas import RiskLevel

Outcome = AuditOutcome | str
Request = RequestContext | None


class _Helpers:
    def __init__(self, audit_logger: AuditLogger) -> None:
        self._log = audit_logger


class AuditAuth(_Helpers):
    """Authentication events against the ``user`` resource."""

    async def login(
        self,
        req: Request,
        user_id: str,
        outcome: Outcome,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTH_LOGIN,
            "user",
            outcome,
            request=req,
            user_id=user_id,
            details=details,
        )

    async def logout(self, req: Request, user_id: str) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTH_LOGOUT,
            "user",
            AuditOutcome.success,
            request=req,
            user_id=user_id,
        )

    async def register(
        self, req: Request, user_id: str, outcome: Outcome
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTH_REGISTER,
            "user",
            outcome,
            request=req,
            user_id=user_id,
        )

    async def refresh(
        self, req: Request, user_id: str, outcome: Outcome
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTH_TOKEN_REFRESH,
            "user",
            outcome,
            request=req,
            user_id=user_id,
        )

    async def password_change(
        self, req: Request, user_id: str, outcome: Outcome
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTH_PASSWORD_CHANGE,
            "user",
            outcome,
            request=req,
            user_id=user_id,
            risk_level=RiskLevel.high,
        )


class AuditAuthz(_Helpers):
    """Authorization decisions made elsewhere; recorded here."""

    async def access_granted(
        self,
        req: Request,
        resource: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTHZ_ACCESS_GRANTED,
            resource,
            AuditOutcome.success,
            request=req,
            details=details,
        )

    async def access_denied(
        self,
        req: Request,
        resource: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.AUTHZ_ACCESS_DENIED,
            resource,
            AuditOutcome.blocked,
            request=req,
            details=details,
        )


class AuditData(_Helpers):
    """CRUD operations on domain resources."""

    async def create(
        self, req: Request, resource: str, resource_id: str, outcome: Outcome
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.DATA_CREATE,
            resource,
            outcome,
            request=req,
            resource_id=resource_id,
        )

    async def read(
        self, req: Request, resource: str, resource_id: str | None = None
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.DATA_READ,
            resource,
            AuditOutcome.success,
            request=req,
            resource_id=resource_id,
        )

    async def update(
        self, req: Request, resource: str, resource_id: str, outcome: Outcome
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.DATA_UPDATE,
            resource,
            outcome,
            request=req,
            resource_id=resource_id,
        )

    async def delete(
        self, req: Request, resource: str, resource_id: str, outcome: Outcome
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.DATA_DELETE,
            resource,
            outcome,
            request=req,
            resource_id=resource_id,
            risk_level=RiskLevel.high,
        )


class AuditSecurity(_Helpers):
    """Detected attacks and abuse, always recorded as ``blocked``."""

    async def attack_detected(
        self,
        req: Request,
        attack_type: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.SECURITY_ATTACK_DETECTED,
            "system",
            AuditOutcome.blocked,
            request=req,
            details={"attack_type": attack_type, **(details or {})},
            risk_level=RiskLevel.critical,
        )

    async def rate_limit_exceeded(self, req: Request, endpoint: str) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.SECURITY_RATE_LIMIT_EXCEEDED,
            endpoint,
            AuditOutcome.blocked,
            request=req,
            risk_level=RiskLevel.medium,
        )

    async def suspicious_activity(
        self,
        req: Request,
        activity: str,
        details: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.SECURITY_SUSPICIOUS_ACTIVITY,
            "system",
            AuditOutcome.blocked,
            request=req,
            details={"activity": activity, **(details or {})},
            risk_level=RiskLevel.high,
        )


class AuditSystem(_Helpers):
    """Process lifecycle and configuration events."""

    async def startup(self, details: dict[str, Any] | None = None) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.SYSTEM_STARTUP,
            "system",
            AuditOutcome.success,
            details=details,
        )

    async def shutdown(self, details: dict[str, Any] | None = None) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.SYSTEM_SHUTDOWN,
            "system",
            AuditOutcome.success,
            details=details,
        )

    async def config_change(
        self,
        setting: str,
        outcome: Outcome = AuditOutcome.success,
        *,
        user_id: str | None = None,
    ) -> AuditEvent | None:
        return await self._log.log_event(
            AuditAction.SYSTEM_CONFIG_CHANGE,
            "config",
            outcome,
            user_id=user_id,
            details={"setting": setting},
        )


class AuditHelpers:
    """All helper groups bound to one logger."""

    def __init__(self, audit_logger: AuditLogger) -> None:
        self.logger = audit_logger
        self.auth = AuditAuth(audit_logger)
        self.authz = AuditAuthz(audit_logger)
        self.data = AuditData(audit_logger)
        self.security = AuditSecurity(audit_logger)
        self.system = AuditSystem(audit_logger)
