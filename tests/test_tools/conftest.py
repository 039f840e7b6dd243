"""Fixtures for tool tests."""

from __future__ import annotations

from unittest.mock import patch

import pytest


@pytest.fixture
def mock_audit_logger():
    """Mock audit_logger.log_tool_call()."""
    with patch("outlook_mcp.tools.base.audit_logger") as mock:
        yield mock
