"""AuditMCP — audit event pipeline with an MCP query surface."""

__version__ = "0.1.0"
