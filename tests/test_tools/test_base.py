"""Tests for tools/base.py utilities."""

from __future__ import annotations

import pytest

from outlook_mcp.tools.base import (
    ResponseKeys,
    build_error_response,
    build_success_response,
    execute_tool,
    run_tool,
)
from outlook_mcp.utils.errors import NoMetadataError


class TestBuildSuccessResponse:
    """Tests for build_success_response."""

    def test_basic_response(self):
        """Test basic success response with data."""
        result = build_success_response(data={"key": "value"})
        assert result[ResponseKeys.STATUS] == "success"
        assert result[ResponseKeys.DATA] == {"key": "value"}
        assert ResponseKeys.MESSAGE not in result

    def test_response_with_message(self):
        """Test success response with optional message."""
        result = build_success_response(data=[], message="Done")
        assert result[ResponseKeys.MESSAGE] == "Done"


class TestBuildErrorResponse:
    """Tests for build_error_response."""

    def test_basic_error(self):
        """Test basic error response."""
        result = build_error_response(error="Something went wrong")
        assert result[ResponseKeys.STATUS] == "error"
        assert result[ResponseKeys.ERROR] == "Something went wrong"

    def test_error_with_code(self):
        """Test error response with error code."""
        result = build_error_response(
            error="Not found",
            error_code="NotFoundError",
        )
        assert result[ResponseKeys.ERROR_CODE] == "NotFoundError"

    def test_error_with_details(self):
        """Test error response with additional details."""
        result = build_error_response(
            error="Storage failed",
            details={"path": "/tmp/x"},
        )
        assert result["path"] == "/tmp/x"


class TestExecuteTool:
    """Tests for execute_tool wrapper."""

    @pytest.mark.asyncio
    async def test_successful_execution(self, mock_audit_logger):
        """Test successful tool execution is audited."""

        async def operation():
            return {"result": "ok"}

        result = await execute_tool(
            tool_name="test_tool",
            params={"key": "value"},
            operation=operation,
        )

        assert result == {"result": "ok"}
        mock_audit_logger.log_tool_call.assert_called_once()
        kwargs = mock_audit_logger.log_tool_call.call_args.kwargs
        assert kwargs["result_status"] == "success"

    @pytest.mark.asyncio
    async def test_error_is_propagated_and_audited(self, mock_audit_logger):
        """Test failures propagate and are audited as errors."""

        async def operation():
            raise NoMetadataError("No token metadata found")

        with pytest.raises(NoMetadataError):
            await execute_tool(tool_name="test_tool", params={}, operation=operation)

        kwargs = mock_audit_logger.log_tool_call.call_args.kwargs
        assert kwargs["result_status"] == "error"
        assert kwargs["error_message"] == "No token metadata found"


class TestRunTool:
    """Tests for run_tool error conversion."""

    @pytest.mark.asyncio
    async def test_package_error_becomes_error_response(self, mock_audit_logger):
        """Package errors are reported with their class name."""

        async def operation():
            raise NoMetadataError("No token metadata found", details={"k": "v"})

        result = await run_tool("test_tool", {}, operation)

        assert result[ResponseKeys.STATUS] == "error"
        assert result[ResponseKeys.ERROR] == "No token metadata found"
        assert result[ResponseKeys.ERROR_CODE] == "NoMetadataError"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_hidden(self, mock_audit_logger):
        """Unexpected errors do not leak their message."""

        async def operation():
            raise RuntimeError("secret detail")

        result = await run_tool("test_tool", {}, operation)

        assert result[ResponseKeys.ERROR_CODE] == "INTERNAL_ERROR"
        assert "secret" not in result[ResponseKeys.ERROR]
