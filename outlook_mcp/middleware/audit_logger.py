"""Audit trail for credential events and tool calls.

Entries are JSON lines on stderr, since stdout carries MCP's STDIO
JSON-RPC stream. Secrets never reach the trail: values under token,
verifier or key names are replaced before an entry is built.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Matched case-insensitively against parameter names
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "token",
        "code",
        "code_verifier",
        "verifier",
        "key",
        "encryption_key",
        "secret",
        "client_secret",
        "authorization",
    }
)


def redact_sensitive(params: dict[str, Any]) -> dict[str, Any]:
    """Copy params with sensitive values replaced, recursing into dicts."""
    redacted: dict[str, Any] = {}
    for name, value in params.items():
        if name.lower() in SENSITIVE_KEYS:
            redacted[name] = REDACTED
        elif isinstance(value, dict):
            redacted[name] = redact_sensitive(value)
        else:
            redacted[name] = value
    return redacted


class AuditEntry(BaseModel):
    """One line of the audit trail."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    source: str = Field(..., description="Tool name, or 'auth' for credential events")
    action: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    result_status: str
    error_message: str | None = None
    duration_ms: float | None = None


class AuditLogger:
    """Writes AuditEntry records to stderr when enabled."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def log(self, entry: AuditEntry) -> None:
        if not self.enabled:
            return
        try:
            print(json.dumps({"audit": entry.model_dump()}), file=sys.stderr, flush=True)
        except (TypeError, ValueError, OSError) as e:
            # Unserializable parameters or a closed stderr; never fail the caller
            logger.error("Failed to write audit entry for %s: %s", entry.source, e)

    def log_tool_call(
        self,
        tool_name: str,
        parameters: dict[str, Any],
        result_status: str = "success",
        error_message: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Record one tool invocation and its outcome."""
        self.log(
            AuditEntry(
                source=tool_name,
                action="invoke",
                parameters=redact_sensitive(parameters),
                result_status=result_status,
                error_message=error_message,
                duration_ms=duration_ms,
            )
        )

    def log_auth_event(
        self,
        event: str,
        success: bool = True,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record a credential event such as store_tokens or clear_tokens.

        Args:
            event: Event name, used as the entry's action.
            success: Whether the event succeeded.
            details: Non-secret context; sensitive names are still redacted.
        """
        self.log(
            AuditEntry(
                source="auth",
                action=event,
                parameters=redact_sensitive(details or {}),
                result_status="success" if success else "error",
            )
        )


# Shared instance used by tools and token stores
audit_logger = AuditLogger()
