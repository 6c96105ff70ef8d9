"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, yaml_fallbacks
from ..core.async_utils import run_sync
from ..core.client import FluxClient
from ..sync.engine import SyncEngine
from ..sync.notifier import BufferedNotifier
from ..sync.watcher import WorkspaceWatcher
from ..sync.workspace import LocalWorkspace

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Build the sync engine for the MCP session and tear it down after.

    Startup:
    - read .env first so YAML ${VAR} references can see its values
    - use the discovered YAML file as the lowest-priority source
    - resolve settings with load_config(): CLI, then environment, then YAML
    - build the SyncEngine over the vault and check the server's /health
    - when sync is enabled, run the initial sync and start watching the vault

    Shutdown:
    - stop the watcher and the engine (pending pushes are dropped)

    An unreachable server is reported but does not stop startup: the engine
    retries on its poll interval.

    Args:
        config_overrides: Optional dict with config values from CLI
            (vault, endpoint, username, password, folder, interval)

    Yields:
        Dict with 'engine', 'client', 'config' and 'watcher' keys

    Raises:
        RuntimeError: The configuration could not be loaded or validated.
    """
    logger.info("Starting flux-sync MCP server")
    _stderr_print("Flux Sync MCP Server starting...")

    try:
        # .env must be loaded before YAML interpolation runs
        load_dotenv()

        # The flux section of the YAML files supplies fallback values
        fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            config_path = config_files[0]
            unified = build_config(load_hierarchical_config())
            fallbacks = yaml_fallbacks(unified)
            sources.append(f"config file: {config_path}")

        overrides = config_overrides or {}
        config = load_config(
            vault=overrides.get("vault"),
            endpoint=overrides.get("endpoint"),
            username=overrides.get("username"),
            password=overrides.get("password"),
            enabled=overrides.get("enabled"),
            interval=overrides.get("interval"),
            folder=overrides.get("folder"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  Vault: {config.vault_dir}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    settings = config.settings
    client = FluxClient(settings)
    engine = SyncEngine(
        client=client,
        workspace=LocalWorkspace(config.vault_dir),
        settings=settings,
        notifier=BufferedNotifier(),
    )

    if settings.configured:
        _stderr_print(f"  Flux endpoint: {settings.base_url}")
        try:
            health = await run_sync(client.validate_connection)
            logger.info("Flux server health: %s", health)
            _stderr_print(f"  Server health: {health}")
        except Exception as e:
            logger.warning("Flux server not reachable: %s", e)
            _stderr_print(f"  WARNING: Flux server not reachable: {e}")
    else:
        _stderr_print("  No Flux endpoint configured; sync tools will fail.")

    watcher: WorkspaceWatcher | None = None
    if settings.enabled:
        await engine.start()
        watcher = WorkspaceWatcher(
            config.vault_dir, engine.post_event_threadsafe
        )
        watcher.start()
        _stderr_print(
            f"  Sync running (every {settings.sync_interval_seconds}s)"
        )
    else:
        _stderr_print("  Sync disabled; tools run on demand only.")

    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {
            "engine": engine,
            "client": client,
            "config": config,
            "watcher": watcher,
        }
    finally:
        if watcher is not None:
            watcher.stop()
        await engine.stop()
        logger.info("MCP server shutting down")
        _stderr_print("Flux Sync MCP Server shutting down.")
