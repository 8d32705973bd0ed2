# truelist_mcp/main.py

import asyncio
import sys

import uvicorn
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from truelist_mcp.modules.validation.client import TruelistClient
from truelist_mcp.modules.validation.dispatcher import BatchDispatcher
from truelist_mcp.modules.validation.tools import register_tools
from truelist_mcp.utils import (
    SERVER_NAME,
    SERVER_VERSION,
    ConfigurationError,
    Settings,
    configure_logging,
    load_settings,
    logger,
)


def build_server(client: TruelistClient, settings: Settings) -> FastMCP:
    """Create the MCP server with every tool bound to one shared client"""
    server = FastMCP(SERVER_NAME)
    # FastMCP reports the SDK version in serverInfo unless told otherwise
    server._mcp_server.version = SERVER_VERSION
    dispatcher = BatchDispatcher(
        client,
        batch_size=settings.batch_size,
        batch_delay_ms=settings.batch_delay_ms,
    )
    register_tools(server, client, dispatcher)

    @server.custom_route("/health", methods=["GET"])
    async def health_endpoint(request: Request):
        return JSONResponse({"status": "healthy", "server": SERVER_NAME, "version": SERVER_VERSION})

    return server


def build_http_app(server: FastMCP) -> Starlette:
    app = server.streamable_http_app()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Mcp-Session-Id"],
    )
    return app


async def serve(settings: Settings):
    try:
        async with TruelistClient(
            settings.api_key, base_url=settings.base_url, timeout=settings.timeout
        ) as client:
            server = build_server(client, settings)

            if settings.transport == "http":
                logger.info(f"Serving MCP over HTTP on http://{settings.host}:{settings.port}/mcp")
                config = uvicorn.Config(
                    build_http_app(server),
                    host=settings.host,
                    port=settings.port,
                    log_level=settings.log_level.lower(),
                )
                await uvicorn.Server(config).serve()
            else:
                logger.info("Serving MCP over stdio")
                await server.run_stdio_async()
    finally:
        logger.info(f"🛑 Shutting down {SERVER_NAME} MCP server")


def main():
    load_dotenv()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    configure_logging(settings.log_level)

    logger.info(
        f"🚀 Starting {SERVER_NAME} MCP server v{SERVER_VERSION} "
        f"(batch size {settings.batch_size}, delay {settings.batch_delay_ms}ms)"
    )
    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
