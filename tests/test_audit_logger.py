"""Tests for audit logging."""

from __future__ import annotations

import json

import pytest

from outlook_mcp.middleware.audit_logger import AuditLogger, redact_sensitive


def _audit_lines(err: str) -> list[dict]:
    return [json.loads(line)["audit"] for line in err.splitlines() if line.startswith("{")]


class TestRedaction:
    """Tests for sensitive value redaction."""

    def test_redacts_tokens_and_verifier(self) -> None:
        """Secrets are replaced, other values kept."""
        redacted = redact_sensitive(
            {"access_token": "eyJ", "Verifier": "abc", "state": "xyz"}
        )

        assert redacted == {
            "access_token": "[REDACTED]",
            "Verifier": "[REDACTED]",
            "state": "xyz",
        }

    def test_redacts_nested_values(self) -> None:
        """Nested dictionaries are redacted too."""
        redacted = redact_sensitive({"outer": {"refresh_token": "M.C5"}})

        assert redacted["outer"]["refresh_token"] == "[REDACTED]"

    def test_input_is_not_modified(self) -> None:
        """The caller's dictionary keeps its values."""
        params = {"code": "auth-code"}

        redact_sensitive(params)

        assert params == {"code": "auth-code"}


class TestOutput:
    """Tests for the JSON lines written to stderr."""

    def test_auth_event_written(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Auth events are written as one JSON line."""
        audit = AuditLogger(enabled=True)

        audit.log_auth_event("store_tokens", details={"storage": "keystore"})

        (entry,) = _audit_lines(capsys.readouterr().err)
        assert entry["source"] == "auth"
        assert entry["action"] == "store_tokens"
        assert entry["result_status"] == "success"
        assert entry["parameters"] == {"storage": "keystore"}

    def test_failed_event(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Failed events record an error status."""
        audit = AuditLogger(enabled=True)

        audit.log_auth_event("pkce_verifier_consumed", success=False)

        (entry,) = _audit_lines(capsys.readouterr().err)
        assert entry["result_status"] == "error"

    def test_tool_call_written_redacted(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Tool calls carry timing and never the secret values."""
        audit = AuditLogger(enabled=True)

        audit.log_tool_call(
            "outlook_begin_login",
            {"code_verifier": "secret-verifier"},
            duration_ms=1.5,
        )

        err = capsys.readouterr().err
        (entry,) = _audit_lines(err)
        assert entry["action"] == "invoke"
        assert entry["duration_ms"] == 1.5
        assert "secret-verifier" not in err

    def test_disabled_logger_is_silent(self, capsys: pytest.CaptureFixture[str]) -> None:
        """A disabled logger writes nothing."""
        audit = AuditLogger(enabled=False)

        audit.log_tool_call("outlook_logout", {})

        assert _audit_lines(capsys.readouterr().err) == []
