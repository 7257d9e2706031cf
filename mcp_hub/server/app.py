"""Starlette ASGI application factory, MCP server instance and transports."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from mcp.server import Server as McpServer
from mcp.server.lowlevel import NotificationOptions
from mcp.server.models import InitializationOptions
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Mount, Route

from mcp_hub.config.schema import HubConfig
from mcp_hub.constants import POST_MESSAGES_PATH, SERVER_NAME, SERVER_VERSION, SSE_PATH
from mcp_hub.runtime.service import HubService
from mcp_hub.server.handlers import register_handlers

logger = logging.getLogger(__name__)

# Module-level MCP server instance; the lifespan attaches the MetaServer.
mcp_server = McpServer(SERVER_NAME)
mcp_server.meta_server = None  # type: ignore[attr-defined]
register_handlers(mcp_server)
logger.debug("Underlying MCP server instance '%s' created.", mcp_server.name)

sse_transport = SseServerTransport(POST_MESSAGES_PATH)


def _init_options() -> InitializationOptions:
    return InitializationOptions(
        server_name=SERVER_NAME,
        server_version=SERVER_VERSION,
        capabilities=mcp_server.get_capabilities(NotificationOptions(), {}),
    )


async def handle_sse(request: Request) -> Response:
    """Handle incoming SSE connection requests."""
    logger.debug("Received new SSE connection request (GET): %s", request.url)
    if mcp_server.meta_server is None:  # type: ignore[attr-defined]
        logger.error("Hub is not initialized; refusing SSE connection.")
        return Response("Hub is not ready", status_code=503)

    async with sse_transport.connect_sse(
        request.scope,
        request.receive,
        request._send,
    ) as (read_stream, write_stream):
        await mcp_server.run(read_stream, write_stream, _init_options())
    logger.debug("SSE connection closed.")
    return Response()


@asynccontextmanager
async def hub_lifespan(app: Starlette) -> AsyncIterator[None]:
    """Start the hub service on startup and stop it on shutdown."""
    config: HubConfig = app.state.config
    service = HubService()
    app.state.hub_service = service
    logger.info("Server '%s' v%s startup sequence started...", SERVER_NAME, SERVER_VERSION)

    try:
        await service.start(config)
        mcp_server.meta_server = service.meta_server  # type: ignore[attr-defined]
        logger.info("Lifespan startup phase completed successfully.")
        yield
    finally:
        logger.info("Server '%s' shutdown sequence started...", SERVER_NAME)
        mcp_server.meta_server = None  # type: ignore[attr-defined]
        await service.stop()


def create_app(config: HubConfig) -> Starlette:
    """Create the Starlette ASGI application serving the SSE transport."""
    application = Starlette(
        lifespan=hub_lifespan,
        routes=[
            Route(SSE_PATH, endpoint=handle_sse),
            Mount(POST_MESSAGES_PATH, app=sse_transport.handle_post_message),
        ],
    )
    application.state.config = config
    logger.info(
        "Starlette ASGI app '%s' created. SSE GET on %s, POST on %s",
        SERVER_NAME,
        SSE_PATH,
        POST_MESSAGES_PATH,
    )
    return application


async def run_stdio(config: HubConfig) -> None:
    """Serve the hub over stdin/stdout until the client disconnects."""
    service = HubService()
    await service.start(config)
    mcp_server.meta_server = service.meta_server  # type: ignore[attr-defined]
    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("Serving MCP over stdio.")
            await mcp_server.run(read_stream, write_stream, _init_options())
    finally:
        mcp_server.meta_server = None  # type: ignore[attr-defined]
        await service.stop()
