"""SQL Gateway MCP Server — main entry point.

Builds the server context once (settings, source registry, pool cache,
gateway), registers the permission-checked tools, tests connectivity and
serves over stdio, SSE or streamable HTTP. Pools are released on exit.
"""
import sys
import asyncio
import logging
from typing import Optional
from mcp.server.fastmcp import FastMCP
from sqlgate.config import GatewaySettings
from sqlgate.context import ServerContext, build_server_context, check_connectivity
from sqlgate.tools.query import register_query_tools
from sqlgate.tools.schema import register_schema_tools
from sqlgate.tools.sources import register_source_tools
from sqlgate.utils.errors import GatewayError

logger = logging.getLogger(__name__)

TRANSPORTS = ("stdio", "sse", "streamable-http")


def create_server(context: ServerContext) -> FastMCP:
    """Create the FastMCP server with every gateway tool registered."""
    mcp = FastMCP(
        "sqlgate_mcp",
        host="0.0.0.0",
        port=context.settings.app_port,
    )
    register_query_tools(mcp, context.gateway)
    register_schema_tools(mcp, context.gateway)
    register_source_tools(mcp, context.gateway)
    return mcp


async def serve(context: ServerContext, mcp: FastMCP) -> None:
    settings = context.settings
    try:
        if settings.skip_db_test:
            logger.warning("Skipping database connection test (SKIP_DB_TEST=true)")
        else:
            await check_connectivity(context)

        logger.info(f"SQL Gateway MCP Server running ({settings.transport})")
        if settings.transport == "sse":
            await mcp.run_sse_async()
        elif settings.transport == "streamable-http":
            await mcp.run_streamable_http_async()
        else:
            await mcp.run_stdio_async()
    finally:
        await context.pools.close()
        logger.info("SQL Gateway MCP Server stopped")


def main(settings: Optional[GatewaySettings] = None) -> int:
    try:
        settings = settings or GatewaySettings()
    except GatewayError as e:
        logging.basicConfig(stream=sys.stderr)
        logger.error(f"Invalid configuration: {e}")
        return 1
    # stderr keeps the stdio transport clean
    logging.basicConfig(level=settings.log_level, stream=sys.stderr)

    if settings.transport not in TRANSPORTS:
        logger.error(
            f"Unsupported MCP_TRANSPORT '{settings.transport}'. "
            f"Choose one of: {', '.join(TRANSPORTS)}"
        )
        return 1

    try:
        context = build_server_context(settings)
    except GatewayError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    mcp = create_server(context)
    try:
        asyncio.run(serve(context, mcp))
    except KeyboardInterrupt:
        logger.info("Shutting down SQL Gateway MCP Server...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        if not settings.skip_db_test:
            logger.error("Set SKIP_DB_TEST=true to skip the startup connection test")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
