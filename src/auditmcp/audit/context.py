"""Request context supplied by the host framework at audit call sites."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field

UNKNOWN_IP = "unknown"


@dataclass(frozen=True)
class RequestContext:
    """Actor and transport attributes of the request being audited.

    Every attribute is optional; the host fills in what it knows.
    """

    ip: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    remote_address: str | None = None
    user_agent: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    correlation_id: str | None = None

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


def extract_client_ip(request: RequestContext | None) -> str | None:
    """Resolve the client address.

    Fallback chain: ``ip`` -> ``X-Forwarded-For`` (first hop) ->
    ``X-Real-IP`` -> socket address -> ``"unknown"``.  Returns ``None``
    when there is no request at all.
    """
    if request is None:
        return None

    if request.ip:
        return request.ip

    forwarded = request.header("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",", 1)[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.header("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.remote_address:
        return request.remote_address

    return UNKNOWN_IP


def extract_user_agent(request: RequestContext | None) -> str | None:
    if request is None:
        return None
    return request.user_agent or request.header("User-Agent")
