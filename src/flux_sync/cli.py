"""Command-line host for the Flux sync engine.

Subcommands:

- ``init``  -- write a commented starter config file.
- ``pull``  -- reconcile the vault with the server once.
- ``push``  -- push every eligible note in one batch.
- ``sync``  -- reconcile, then push every eligible note.
- ``watch`` -- run the engine and a filesystem watcher until interrupted.

Running a command is the user's go-ahead, so the one-shot commands and
``watch`` run with syncing enabled regardless of ``FLUX_ENABLED``.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import build_config, yaml_fallbacks
from .core.client import FluxClient
from .core.errors import FluxError
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.notifier import StderrNotifier
from .sync.reporter import format_reconcile_report
from .sync.watcher import WorkspaceWatcher
from .sync.workspace import LocalWorkspace

logger = logging.getLogger(__name__)

COMMANDS = ("init", "pull", "push", "sync", "watch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flux-sync",
        description="Keep a Markdown vault in sync with a Flux server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create .flux/config.yml in the current directory
  flux-sync init

  # One-off full sync against a local server
  flux-sync --vault ~/Notes --endpoint localhost:8080 sync

  # Keep syncing until Ctrl-C, only the Flux/ folder
  flux-sync --vault ~/Notes --folder Flux watch
        """,
    )
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--vault", help="Vault root directory")
    parser.add_argument(
        "--endpoint", help="Flux server URL or host[:port]"
    )
    parser.add_argument("--username", help="Basic auth username")
    parser.add_argument(
        "--password",
        help="Basic auth password (prefer FLUX_PASSWORD env var)",
    )
    parser.add_argument(
        "--folder", help="Only sync this folder of the vault"
    )
    parser.add_argument(
        "--interval",
        type=int,
        help="Seconds between periodic pulls (watch only)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file to create (init only)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also log to this file")
    parser.add_argument(
        "--version",
        action="version",
        version=f"flux-sync version {__version__}",
    )
    return parser


def _load(args: argparse.Namespace) -> tuple[Config, str | None, str | None]:
    unified = build_config(load_hierarchical_config())
    config = load_config(
        vault=args.vault,
        endpoint=args.endpoint,
        username=args.username,
        password=args.password,
        enabled=True,
        interval=args.interval,
        folder=args.folder,
        debug=args.debug,
        yaml_fallbacks=yaml_fallbacks(unified),
    )
    return config, unified.logging.level, unified.logging.file


def build_engine(config: Config) -> SyncEngine:
    settings = config.settings
    return SyncEngine(
        client=FluxClient(settings),
        workspace=LocalWorkspace(config.vault_dir),
        settings=settings,
        notifier=StderrNotifier(),
    )


async def _pull(engine: SyncEngine) -> int:
    report = await engine.reconcile()
    if report is None:
        return 1
    print(format_reconcile_report(report))
    return 0 if report.success else 1


async def _push(engine: SyncEngine) -> int:
    paths = await engine.eligible_paths()
    try:
        pushed = await engine.coalescer.push_all_now(paths)
    except FluxError as exc:
        engine.notifier.notify(f"Flux: push failed - {exc}")
        return 1
    print(f"Pushed {pushed} of {len(paths)} files")
    return 0


async def _sync(engine: SyncEngine) -> int:
    report = await engine.initial_sync()
    if report is None:
        return 1
    print(format_reconcile_report(report))
    return 0 if report.success else 1


async def _watch(engine: SyncEngine, vault_dir: str) -> int:
    await engine.start()
    watcher = WorkspaceWatcher(vault_dir, engine.post_event_threadsafe)
    watcher.start()
    print(
        f"Watching {vault_dir} (Ctrl-C to stop)",
        file=sys.stderr,
    )
    try:
        await asyncio.Event().wait()
    finally:
        watcher.stop()
        await engine.stop()
    return 0


async def run_command(command: str, engine: SyncEngine, config: Config) -> int:
    match command:
        case "pull":
            return await _pull(engine)
        case "push":
            return await _push(engine)
        case "sync":
            return await _sync(engine)
        case "watch":
            return await _watch(engine, config.vault_dir)
        case _:
            raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    if args.command == "init":
        path = ensure_config(args.config)
        print(f"Config file: {path}")
        return 0

    try:
        config, level, file_from_config = _load(args)
    except ValueError as exc:
        print(f"ERROR: Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(
        mode="cli",
        debug=config.debug,
        log_file=args.log_file or file_from_config,
        level=level,
    )

    if not config.settings.configured:
        print(
            "ERROR: No Flux endpoint configured. "
            "Use --endpoint or set FLUX_ENDPOINT.",
            file=sys.stderr,
        )
        return 1

    logger.debug("Settings: %s", config.settings)
    engine = build_engine(config)
    return asyncio.run(run_command(args.command, engine, config))


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
