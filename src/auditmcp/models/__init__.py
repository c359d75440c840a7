"""MCP input/output models."""
