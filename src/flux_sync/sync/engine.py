"""Sync engine that ties the components into one running service.

The ``SyncEngine`` owns the shared feedback suppressor and wires the push
coalescer, reconciler and rename translator together. It:

1. Runs the initial sync on ``start()``: reconcile, then push every
   eligible file in one batch.
2. Consumes local change events from a queue, one at a time.
3. Reconciles periodically every ``sync_interval_seconds``.
4. Cancels in-flight work on ``stop()``.

Error handling is per-event: a failing handler is logged and the consumer
moves on to the next event.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from ..config import SyncSettings
from ..core.errors import FluxError
from .coalescer import PUSH_DEBOUNCE_SECONDS, PushCoalescer
from .models import ChangeEvent, ChangeKind, ReconcileReport
from .notifier import LogNotifier, Notifier
from .paths import TRACKED_EXTENSION, is_eligible, normalize_folder
from .reconciler import Reconciler
from .rename import RenameTranslator
from .suppressor import FeedbackSuppressor
from .workspace import Workspace

if TYPE_CHECKING:
    from ..core.client import FluxClient

logger = logging.getLogger(__name__)


class SyncEngine:
    """Keep one workspace continuously in sync with one Flux server.

    Args:
        client: Transport for the server.
        workspace: Local file tree.
        settings: Live sync settings (shared with the host).
        notifier: Sink for user-visible messages. Defaults to logging.
        debounce: Push debounce window in seconds.
    """

    def __init__(
        self,
        client: FluxClient,
        workspace: Workspace,
        settings: SyncSettings,
        notifier: Notifier | None = None,
        debounce: float = PUSH_DEBOUNCE_SECONDS,
    ) -> None:
        self.client = client
        self.workspace = workspace
        self.settings = settings
        self.notifier = notifier or LogNotifier()

        self.suppressor = FeedbackSuppressor()
        self.coalescer = PushCoalescer(
            client,
            workspace,
            settings,
            self.suppressor,
            self.notifier,
            debounce=debounce,
        )
        self.reconciler = Reconciler(
            client,
            workspace,
            settings,
            self.suppressor,
            self.notifier,
            self.coalescer,
        )
        self.renames = RenameTranslator(
            client,
            workspace,
            settings,
            self.suppressor,
            self.notifier,
            self.coalescer,
        )

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[ChangeEvent] | None = None
        self._consumer: asyncio.Task | None = None
        self._poller: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Run the initial sync and begin consuming events and polling.

        Returns:
            ``True`` if the engine is running afterwards, ``False`` when
            sync is disabled.
        """
        if not self.settings.enabled:
            logger.info("Sync disabled; engine not started")
            return False
        if self.running:
            return True

        self._loop = asyncio.get_running_loop()
        # Events that arrive during the initial sync wait in the queue
        self._queue = asyncio.Queue()

        await self._ensure_folder()
        await self.initial_sync()

        self._consumer = asyncio.create_task(
            self._consume(self._queue), name="flux-events"
        )
        self._start_poller()
        logger.info(
            "Sync engine started (interval %ds)",
            self.settings.sync_interval_seconds,
        )
        return True

    async def stop(self) -> None:
        """Cancel in-flight work and stop the consumer and poll loop."""
        self.cancel()
        await self._stop_poller()
        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            logger.info("Sync engine stopped")
        self._queue = None

    def cancel(self) -> None:
        """Cancel the running reconcile and every pending push."""
        self.reconciler.cancel()
        self.coalescer.cancel()

    def update_settings(self, settings: SyncSettings) -> None:
        """Apply new settings everywhere.

        While running, the poll loop restarts with the new interval; an
        interval of zero or less turns periodic pulls off.
        """
        self.settings = settings
        self.client.update_settings(settings)
        self.coalescer.update_settings(settings)
        self.reconciler.update_settings(settings)
        self.renames.update_settings(settings)
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        self._start_poller()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def reconcile(self) -> ReconcileReport | None:
        return await self.reconciler.reconcile()

    async def initial_sync(self) -> ReconcileReport | None:
        """Pull first, then push every eligible file in one batch."""
        report = await self.reconciler.reconcile()
        try:
            paths = await self.eligible_paths()
            if paths:
                await self.coalescer.push_all_now(paths)
        except (FluxError, OSError) as exc:
            logger.error("Initial push failed: %s", exc)
            self.notifier.notify(f"Flux: initial push failed - {exc}")
        return report

    async def push_all(self) -> int:
        """Schedule a debounced push of every eligible file."""
        scheduled = await self.coalescer.push_files(
            await self.eligible_paths()
        )
        self.notifier.notify("Flux: pushed all files")
        return scheduled

    async def sync_now(self) -> ReconcileReport | None:
        """Reconcile, then push every eligible file."""
        report = await self.reconciler.reconcile()
        await self.push_all()
        return report

    async def eligible_paths(self) -> list[str]:
        files = await self.workspace.list_all_files(TRACKED_EXTENSION)
        return [p for p in files if is_eligible(p, self.settings.folder)]

    def status(self) -> dict[str, Any]:
        last = self.reconciler.last_report
        return {
            "running": self.running,
            "enabled": self.settings.enabled,
            "configured": self.settings.configured,
            "endpoint": self.settings.base_url,
            "folder": normalize_folder(self.settings.folder),
            "sync_interval_seconds": self.settings.sync_interval_seconds,
            "reconcile_in_progress": self.reconciler.running,
            "pending_pushes": self.coalescer.pending_paths,
            "last_reconcile": last.model_dump() if last else None,
        }

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def post_event(self, event: ChangeEvent) -> None:
        """Queue a change event. Must be called on the loop thread."""
        if self._queue is None:
            logger.debug("Engine not started, dropping %s", event)
            return
        self._queue.put_nowait(event)

    def post_event_threadsafe(self, event: ChangeEvent) -> None:
        """Queue a change event from a foreign thread (the file watcher)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("No event loop, dropping %s", event)
            return
        loop.call_soon_threadsafe(self.post_event, event)

    async def handle_event(self, event: ChangeEvent) -> None:
        """Dispatch one change event to the responsible component."""
        if event.kind in (ChangeKind.CREATE, ChangeKind.MODIFY):
            self.coalescer.schedule_push(event.path)
        elif event.kind is ChangeKind.RENAME:
            if event.old_path is None:
                logger.warning("Rename event without old path: %s", event)
                return
            await self.renames.handle_rename(event.path, event.old_path)
        elif event.kind is ChangeKind.DELETE:
            await self.renames.handle_delete(event.path)

    async def _consume(self, queue: asyncio.Queue[ChangeEvent]) -> None:
        while True:
            event = await queue.get()
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception("Failed to handle %s", event)
            finally:
                queue.task_done()

    # ------------------------------------------------------------------
    # Periodic reconcile
    # ------------------------------------------------------------------

    def _start_poller(self) -> None:
        if self._consumer is None:
            return
        if self.settings.sync_interval_seconds <= 0:
            logger.info("Periodic pull disabled (interval <= 0)")
            return
        self._poller = asyncio.create_task(self._poll(), name="flux-poll")

    async def _stop_poller(self) -> None:
        poller, self._poller = self._poller, None
        if poller is not None:
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sync_interval_seconds)
            try:
                await self.reconciler.reconcile()
            except Exception:
                logger.exception("Periodic reconcile failed")

    async def _ensure_folder(self) -> None:
        folder = normalize_folder(self.settings.folder)
        if not folder:
            return
        try:
            if not await self.workspace.exists(folder):
                await self.workspace.create_directory(folder)
        except (OSError, ValueError) as exc:
            logger.warning("Could not create sync folder %s: %s", folder, exc)
