"""Middleware module for Outlook MCP server."""

from outlook_mcp.middleware.audit_logger import (
    AuditEntry,
    AuditLogger,
    audit_logger,
    redact_sensitive,
)

__all__ = [
    "AuditLogger",
    "AuditEntry",
    "audit_logger",
    "redact_sensitive",
]
