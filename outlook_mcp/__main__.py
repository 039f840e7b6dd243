"""Entry point for Outlook MCP Server."""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv


def configure_logging() -> None:
    """Configure logging to stderr (STDIO-safe).

    Sends all logs to stderr so they don't interfere with MCP's
    STDIO transport which uses stdout for JSON-RPC messages.

    Respects LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelNamesMapping().get(log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Reduce noise from keyring backend discovery
    logging.getLogger("keyring").setLevel(logging.WARNING)


def validate_environment() -> bool:
    """Validate required environment variables.

    Returns:
        True if all required variables are present, False otherwise.
    """
    logger = logging.getLogger(__name__)

    required = ["AZURE_CLIENT_ID"]
    missing = [var for var in required if not os.getenv(var)]

    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        return False

    if not os.getenv("AZURE_TENANT_ID"):
        logger.info("AZURE_TENANT_ID not set, using the 'common' authority")

    return True


def main() -> None:
    """Main entry point.

    Loads environment, validates configuration, and starts the MCP server
    with the appropriate transport.
    """
    # Load .env file if present
    load_dotenv()

    # Configure logging first
    configure_logging()
    logger = logging.getLogger(__name__)

    # Validate environment
    if not validate_environment():
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    # Import server after environment is validated
    from outlook_mcp.auth import AuthConfig, TokenStore
    from outlook_mcp.server import create_server

    store = TokenStore(AuthConfig.from_env())
    mcp = create_server(store)

    transport = os.getenv("TRANSPORT", "stdio").lower()

    match transport:
        case "streamable-http":
            logger.info("Starting Outlook MCP Server with streamable-http transport")
            mcp.run(transport="streamable-http")
        case _:
            # STDIO transport for local development (default)
            logger.info("Starting Outlook MCP Server with STDIO transport")
            mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
