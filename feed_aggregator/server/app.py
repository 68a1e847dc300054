"""feed_aggregator - MCP server with a background refresh loop.

This module wires the FeedStore, Refresher and Scheduler together, exposes the
feed tools over FastMCP (STDIO, SSE or Streamable HTTP), and runs the server
and refresh loop as sibling tasks under one cancellation scope.
"""

import logging
import os
import signal
import sys
from typing import Optional

import anyio
import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from feed_aggregator.config import ServerConfig, get_config
from feed_aggregator.exceptions import StoreUnavailable
from feed_aggregator.logging_config import logger, setup_logging
from feed_aggregator.services.refresher import Refresher
from feed_aggregator.services.scheduler import Scheduler
from feed_aggregator.storage.database import FeedStore
from feed_aggregator.tools.feed_tools import build_feed_tools

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)


def create_mcp_server(
    config: ServerConfig,
    store: FeedStore,
    refresher: Refresher,
) -> FastMCP:
    """Create the MCP server and register the feed tools.

    Args:
        config: Server configuration
        store: Store shared with the refresh loop
        refresher: Refresher used for on-demand refreshes

    Returns:
        Configured FastMCP server instance
    """
    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()] if allowed_hosts_env else []

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")

    mcp_server = FastMCP(
        config.name or "feed_aggregator",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts,
        ),
    )

    for tool_func in build_feed_tools(store, refresher):
        mcp_server.tool(name=tool_func.__name__)(tool_func)
        logger.info(f"Registered feed tool: {tool_func.__name__}")

    logger.info(f"Server '{mcp_server.name}' initialized")
    return mcp_server


async def _serve(mcp_server: FastMCP, transport: str, host: str, port: int) -> None:
    if transport == "stdio":
        logger.info("Starting server with STDIO transport")
        await mcp_server.run_stdio_async()
    elif transport == "sse":
        logger.info(f"Starting server with SSE transport on {host}:{port}")
        mcp_server.settings.host = host
        mcp_server.settings.port = port
        await mcp_server.run_sse_async()
    elif transport == "streamable-http":
        logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
        mcp_server.settings.host = host
        mcp_server.settings.port = port
        mcp_server.settings.streamable_http_path = "/mcp"
        await mcp_server.run_streamable_http_async()
    else:
        raise ValueError(f"Unknown transport: {transport}")


async def _watch_signals(shutdown: anyio.Event, scope: anyio.CancelScope) -> None:
    with anyio.open_signal_receiver(*SHUTDOWN_SIGNALS) as signals:
        async for signum in signals:
            logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            break

    shutdown.set()
    scope.cancel()


async def _serve_until_done(
    mcp_server: FastMCP,
    transport: str,
    host: str,
    port: int,
    shutdown: anyio.Event,
    scope: anyio.CancelScope,
) -> None:
    try:
        await _serve(mcp_server, transport, host, port)
        logger.info("Server exited")
    finally:
        shutdown.set()
        scope.cancel()


async def run_app(
    config: ServerConfig,
    transport: str,
    host: str,
    port: int,
    store: Optional[FeedStore] = None,
) -> None:
    """Serve requests while refreshing feeds until a signal or server exit.

    Whichever of the server or a shutdown signal finishes first cancels the
    whole group; refreshes already in flight are allowed to complete.

    Raises:
        StoreUnavailable: If the store cannot be opened
    """
    if store is None:
        store = await FeedStore.connect(config.db_path, page_size=config.page_size)

    refresher = Refresher(store, timeout=config.fetch_timeout)
    scheduler = Scheduler(store, refresher, interval=config.refresh_seconds)
    mcp_server = create_mcp_server(config, store, refresher)
    shutdown = anyio.Event()

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_signals, shutdown, tg.cancel_scope)
            tg.start_soon(scheduler.run, shutdown)
            tg.start_soon(
                _serve_until_done, mcp_server, transport, host, port, shutdown, tg.cancel_scope
            )
    finally:
        with anyio.CancelScope(shield=True):
            await store.close()
        logger.info("Store closed")


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
def main(port: int, host: str, transport: str) -> int:
    """Run the feed_aggregator server with specified transport."""
    config = get_config()
    setup_logging(config)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")
    logger.info(f"Database: {config.db_path}")

    try:
        anyio.run(run_app, config, transport, host, port)
        return 0
    except StoreUnavailable as e:
        logger.error(f"Could not initialize store: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logging.getLogger(__name__).error(f"Server failed: {e}", exc_info=True)
        sys.exit(1)


def main_stdio() -> int:
    """Entry point for STDIO transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="stdio")


def main_http() -> int:
    """Entry point for Streamable HTTP transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="streamable-http")


if __name__ == "__main__":
    sys.exit(main())
