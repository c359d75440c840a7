"""MCP authentication helpers for the audit query surface."""

from __future__ import annotations

import hashlib
import hmac
import logging
import os

from fastmcp.server.auth import AccessToken
from fastmcp.server.auth import TokenVerifier

logger = logging.getLogger(__name__)

_DEFAULT_SCOPES = ["auditmcp:audit:read"]


class APIKeyVerifier(TokenVerifier):
    """Static bearer-token verifier for MCP requests."""

    def __init__(self, api_key: str, *, scopes: list[str] | None = None) -> None:
        normalized = api_key.strip()
        if not normalized:
            raise ValueError("api_key must be a non-empty, non-whitespace string")
        super().__init__()
        self._api_key = normalized
        self._scopes = scopes[:] if scopes else list(_DEFAULT_SCOPES)

    async def verify_token(self, token: str) -> AccessToken | None:
        """Return an access token when the provided bearer token is valid."""
        if hmac.compare_digest(token.encode("utf-8"), self._api_key.encode("utf-8")):
            return AccessToken(
                token=token,
                client_id="auditmcp-client",
                scopes=self._scopes,
                expires_at=None,
            )

        token_fingerprint = hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]
        logger.debug(
            "Invalid MCP auth token provided (token_len=%d, token_fp=%s)",
            len(token),
            token_fingerprint,
        )
        return None


def get_mcp_auth_key() -> str | None:
    """Get the MCP static auth key from ``AUDIT_MCP_AUTH_KEY``."""
    token = os.getenv("AUDIT_MCP_AUTH_KEY")
    if token is None:
        return None
    stripped = token.strip()
    return stripped if stripped else None


def create_mcp_auth() -> APIKeyVerifier | None:
    """Create an auth verifier when ``AUDIT_MCP_AUTH_KEY`` is configured."""
    api_key = get_mcp_auth_key()
    if api_key:
        return APIKeyVerifier(api_key)
    return None
