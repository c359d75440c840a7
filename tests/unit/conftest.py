"""Unit test fixtures — FastMCP client wired to an in-memory audit logger."""

from __future__ import annotations

import pytest
from fastmcp import Client


@pytest.fixture()
async def mcp_client(audit_logger):
    """Yield a FastMCP Client wired to the AuditMCP server."""
    from auditmcp.server import configure
    from auditmcp.server import mcp
    from auditmcp.server import shutdown

    await configure(audit_logger=audit_logger, start_sweeper=False)

    async with Client(mcp) as client:
        yield client

    await shutdown()
