"""Base utilities for Outlook MCP tools.

This module provides shared utilities used by all Outlook MCP tools:
- Standardized response builders
- Audit logging wrapper for tool execution
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from outlook_mcp.middleware.audit_logger import audit_logger
from outlook_mcp.utils.errors import OutlookMCPError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Standard Response Keys
# =============================================================================


class ResponseKeys:
    """Standard keys for tool responses."""

    STATUS = "status"
    DATA = "data"
    MESSAGE = "message"
    ERROR = "error"
    ERROR_CODE = "error_code"


# =============================================================================
# Response Builders
# =============================================================================


def build_success_response(
    data: Any,
    message: str | None = None,
) -> dict[str, Any]:
    """Build standardized success response.

    Args:
        data: Tool-specific payload.
        message: Optional human-readable message.

    Returns:
        Standardized success response dict.
    """
    response: dict[str, Any] = {
        ResponseKeys.STATUS: "success",
        ResponseKeys.DATA: data,
    }
    if message:
        response[ResponseKeys.MESSAGE] = message
    return response


def build_error_response(
    error: str,
    error_code: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build standardized error response.

    Args:
        error: Human-readable error message.
        error_code: Optional error code for programmatic handling.
        details: Optional additional error details.

    Returns:
        Standardized error response dict.
    """
    response: dict[str, Any] = {
        ResponseKeys.STATUS: "error",
        ResponseKeys.ERROR: error,
    }
    if error_code:
        response[ResponseKeys.ERROR_CODE] = error_code
    if details:
        response.update(details)
    return response


# =============================================================================
# Tool Execution Wrapper
# =============================================================================


async def execute_tool(
    tool_name: str,
    params: dict[str, Any],
    operation: Callable[[], Awaitable[T]],
) -> T:
    """Execute a tool with timing and audit logging.

    Args:
        tool_name: Name of the tool being executed.
        params: Tool parameters (for audit logging).
        operation: The actual operation to execute (async callable).

    Returns:
        Result of the operation.

    Raises:
        OutlookMCPError: If operation fails.
    """
    start_time = time.perf_counter()
    result_status = "success"
    error_message: str | None = None

    try:
        return await operation()
    except Exception as e:
        result_status = "error"
        error_message = str(e)
        raise
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        audit_logger.log_tool_call(
            tool_name=tool_name,
            parameters=params,
            result_status=result_status,
            error_message=error_message,
            duration_ms=duration_ms,
        )


async def run_tool(
    tool_name: str,
    params: dict[str, Any],
    operation: Callable[[], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    """Execute a tool and convert failures into error responses."""
    try:
        return await execute_tool(tool_name=tool_name, params=params, operation=operation)
    except OutlookMCPError as e:
        logger.error("%s failed: %s", tool_name, e)
        return build_error_response(
            error=e.message,
            error_code=e.__class__.__name__,
        )
    except Exception as e:
        logger.error("Unexpected error in %s: %s", tool_name, e)
        return build_error_response(
            error="An unexpected error occurred",
            error_code="INTERNAL_ERROR",
        )
