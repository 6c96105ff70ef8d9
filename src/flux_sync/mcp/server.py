"""MCP Server for the Flux sync engine using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents trigger and inspect vault synchronization with a Flux server.

The server speaks JSON-RPC over stdio, so nothing but protocol traffic may
be written to stdout.
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import setup_logging
from ..sync.engine import SyncEngine
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("flux-sync")

# Set by main() for the lifetime of the stdio session
_engine: SyncEngine | None = None

_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, read-only)
# ---------------------------------------------------------------------------


async def _handle_ping(
    engine: SyncEngine, args: dict
) -> types.CallToolResult:
    """Handle ping tool -- test Flux server connectivity."""
    try:
        health = await run_sync(engine.client.validate_connection)
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Flux server reachable at {engine.settings.base_url}. Health: {health}",
                )
            ]
        )
    except Exception as e:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Flux connection failed: {e}. Check FLUX_ENDPOINT, FLUX_USERNAME, FLUX_PASSWORD.",
                )
            ],
            isError=True,
        )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test Flux server connectivity via its /health endpoint",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    mutating=False,
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_engine() -> SyncEngine:
    """Return the engine built by the lifespan manager.

    Raises:
        RuntimeError: main() has not entered the lifespan yet
    """
    if _engine is None:
        raise RuntimeError(
            "SyncEngine not initialized. Server lifespan not started."
        )
    return _engine


def set_engine(engine: SyncEngine | None) -> None:
    global _engine
    _engine = engine


def get_registry() -> ToolRegistry:
    """Return the registry installed by main(); RuntimeError before that."""
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available sync tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch a tool call to its handler with the running engine.

    Handlers return their own error results; only a name the registry does
    not know is turned into an ``unknown_tool`` error here.
    """
    engine = get_engine()
    try:
        return await get_registry().call_tool(name, arguments, engine)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(read_only: bool = False) -> ToolRegistry:
    """Registry of ping plus the sync tools, minus mutating ones if read-only."""
    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    return registry


async def main(config_overrides: dict | None = None):
    """Serve the sync tools over stdio until the client disconnects.

    Sets up logging for MCP mode (file only, never stdout), builds the
    engine via the lifespan manager, and serves JSON-RPC over stdio.

    Args:
        config_overrides: Optional dict with config values to override
            (vault, endpoint, username, password, folder, interval,
            enabled, debug, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # Must run before stdio_server so nothing reaches stdout
    setup_logging(
        mode="mcp", debug=overrides.get("debug", False), log_file=log_file
    )

    registry = build_registry(read_only=read_only)
    if read_only:
        print(
            f"Read-only mode ({registry.tool_count()} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_engine() is called here rather than in the lifespan so that
    # running this file as __main__ updates the right module's global.
    async with server_lifespan(config_overrides=overrides or None) as ctx:
        set_engine(ctx["engine"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="flux-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_engine(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Flux Sync MCP Server - keep a Markdown vault in sync with a Flux server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .flux/config.yml)
  flux-sync-mcp

  # Sync a vault against a local server
  flux-sync-mcp --vault ~/Notes --endpoint localhost:8080 --enable

  # Only expose read-only tools
  flux-sync-mcp --read-only

stdin and stdout carry the MCP protocol; status messages go to stderr.
        """,
    )

    parser.add_argument("--vault", help="Vault root directory")
    parser.add_argument(
        "--endpoint",
        help="Flux server URL or host[:port] (takes precedence over FLUX_ENDPOINT and config files)",
    )
    parser.add_argument("--username", help="Basic auth username")
    parser.add_argument(
        "--password",
        help="Basic auth password"
        " (visible in process list -- prefer FLUX_PASSWORD env var for security)",
    )
    parser.add_argument(
        "--folder", help="Only sync this folder of the vault"
    )
    parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between periodic pulls",
    )
    parser.add_argument(
        "--enable",
        action="store_true",
        help="Start continuous syncing (same as FLUX_ENABLED=true)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Only expose tools that do not modify the vault or the server",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: /tmp/flux-sync.log)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"flux-sync-mcp version {__version__}",
    )
    return parser


def run() -> None:
    """Console entry point for ``flux-sync-mcp``."""
    args = build_parser().parse_args()

    config_overrides: dict = {}
    for key in (
        "vault",
        "endpoint",
        "username",
        "password",
        "folder",
        "interval",
        "log_file",
    ):
        value = getattr(args, key)
        if value is not None:
            config_overrides[key] = value
    if args.enable:
        config_overrides["enabled"] = True
    if args.read_only:
        config_overrides["read_only"] = True
    if args.debug:
        config_overrides["debug"] = True

    if config_overrides:
        override_keys = [k for k in config_overrides if k != "password"]
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # server_lifespan has already reported the cause on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
