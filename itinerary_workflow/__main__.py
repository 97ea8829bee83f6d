# itinerary_workflow/__main__.py
"""
Entry point for the itinerary-workflow MCP server.

CRITICAL: Server imports configure_logging() first to prevent stdout pollution.
"""

import asyncio
import logging

# Import server (which configures logging before anything else)
from itinerary_workflow.server import initialize_lifecycle, mcp

logger = logging.getLogger(__name__)


async def main() -> None:
    """
    Main entry point.

    Initializes lifecycle (store client) and then runs the MCP server.
    """
    lifecycle = await initialize_lifecycle()

    logger.info("Starting MCP server on stdio transport")
    try:
        await mcp.run_stdio_async()
    finally:
        await lifecycle.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
