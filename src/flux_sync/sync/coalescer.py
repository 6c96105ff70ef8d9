"""Debounced outbound pushes.

Every local create/modify of a tracked note schedules a push. Bursts of
events for the same path collapse into one request: scheduling again
cancels the pending timer and starts a fresh window. When the window
expires the file's *current* content is read and sent as a single-file
batch.

The coalescer also remembers, per path, the fingerprint the server is
known to hold. A debounced push whose content matches it is dropped
without network I/O, which keeps the engine's own writes from echoing
back to the server when their filesystem events arrive late.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from ..config import SyncSettings
from ..core.async_utils import run_sync
from ..core.errors import FluxError
from .fingerprint import fingerprint
from .models import FileRecord, PushBatch
from .notifier import Notifier
from .paths import is_eligible, normalize_path
from .suppressor import FeedbackSuppressor
from .workspace import Workspace

if TYPE_CHECKING:
    from ..core.client import FluxClient

logger = logging.getLogger(__name__)

PUSH_DEBOUNCE_SECONDS = 0.5

ContentSupplier = Callable[[], Awaitable[str]]


class PushCoalescer:
    """Per-path debounce timers for outbound pushes.

    Args:
        client: Transport used to submit batches.
        workspace: Source of file content.
        settings: Live sync settings.
        suppressor: Shared feedback suppressor.
        notifier: Sink for user-visible messages.
        debounce: Quiet period in seconds before a push fires.
    """

    def __init__(
        self,
        client: FluxClient,
        workspace: Workspace,
        settings: SyncSettings,
        suppressor: FeedbackSuppressor,
        notifier: Notifier,
        debounce: float = PUSH_DEBOUNCE_SECONDS,
    ) -> None:
        self.client = client
        self.workspace = workspace
        self.settings = settings
        self.suppressor = suppressor
        self.notifier = notifier
        self.debounce = debounce

        self._timers: dict[str, asyncio.Task] = {}
        self._flushing: set[asyncio.Task] = set()
        self._known: dict[str, str] = {}
        self._tombstoned: set[str] = set()

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    # ------------------------------------------------------------------
    # Server fingerprint memory
    # ------------------------------------------------------------------

    def remember(self, path: str, digest: str) -> None:
        """Record that the server holds content with *digest* at *path*."""
        self._known[path] = digest
        self._tombstoned.discard(path)

    def forget(self, path: str, tombstoned: bool = False) -> None:
        """Drop the memory for *path*.

        ``tombstoned`` records that the server already deleted the path,
        so a local delete event for it need not be sent back.
        """
        self._known.pop(path, None)
        if tombstoned:
            self._tombstoned.add(path)
        else:
            self._tombstoned.discard(path)

    def known_fingerprint(self, path: str) -> str | None:
        return self._known.get(path)

    def known_deleted(self, path: str) -> bool:
        return path in self._tombstoned

    # ------------------------------------------------------------------
    # Debounced pushes
    # ------------------------------------------------------------------

    @property
    def pending_paths(self) -> list[str]:
        return sorted(self._timers)

    def schedule_push(
        self, path: str, content_supplier: ContentSupplier | None = None
    ) -> bool:
        """Push *path* once no further change arrives within the window.

        Must be called from the event loop thread.

        Args:
            path: Vault-relative path of the changed file.
            content_supplier: Coroutine factory returning the content to
                send. Defaults to reading the file from the workspace when
                the timer fires.

        Returns:
            ``True`` if a push is now pending for the path.
        """
        if self.suppressor.active:
            logger.debug("Suppressed push for %s", path)
            return False
        if not self.settings.active:
            return False
        try:
            key = normalize_path(path)
        except ValueError:
            logger.warning("Ignoring push for invalid path %r", path)
            return False
        if not is_eligible(key, self.settings.folder):
            return False

        previous = self._timers.pop(key, None)
        if previous is not None:
            previous.cancel()

        self._timers[key] = asyncio.create_task(
            self._fire(key, content_supplier), name=f"flux-push:{key}"
        )
        logger.debug("Push scheduled for %s", key)
        return True

    async def push_files(self, paths: Iterable[str]) -> int:
        """Schedule a debounced push for each path; return how many were."""
        scheduled = 0
        for path in paths:
            if self.schedule_push(path):
                scheduled += 1
        return scheduled

    async def _fire(
        self, path: str, supplier: ContentSupplier | None
    ) -> None:
        await asyncio.sleep(self.debounce)

        # The window has expired: from here on the push is in flight and
        # no longer pending.
        task = asyncio.current_task()
        if self._timers.get(path) is task:
            del self._timers[path]
        if task is not None:
            self._flushing.add(task)
            task.add_done_callback(self._flushing.discard)

        try:
            if supplier is not None:
                content = await supplier()
            else:
                content = await self.workspace.read(path)
        except FileNotFoundError:
            logger.debug("File vanished before push: %s", path)
            return
        except (OSError, ValueError) as exc:
            logger.error("Failed to read %s for push: %s", path, exc)
            self.notifier.notify(f"Flux: push failed - {exc}")
            return

        record = FileRecord.from_content(path, content)
        if self._known.get(path) == record.fingerprint:
            logger.debug("Server already holds %s, skipping push", path)
            return

        try:
            await run_sync(self.client.submit, PushBatch(files=[record]))
        except FluxError as exc:
            logger.error("Push of %s failed: %s", path, exc)
            self.notifier.notify(f"Flux: push failed - {exc}")
            return
        except Exception as exc:
            logger.exception("Unexpected error pushing %s", path)
            self.notifier.notify(f"Flux: push failed - {exc}")
            return

        self.remember(path, record.fingerprint)
        logger.info("Pushed %s", path)
        self.notifier.notify(f"Flux: pushed {path}")

    # ------------------------------------------------------------------
    # Immediate batch push
    # ------------------------------------------------------------------

    async def submit_now(self, paths: Iterable[str]) -> list[str]:
        """Read every eligible path and submit them as one batch.

        Files that disappear between listing and reading are skipped.
        Nothing is sent when no file could be read.

        Returns:
            Paths included in the submitted batch.

        Raises:
            FluxError: If the submission fails.
        """
        records: dict[str, FileRecord] = {}
        for raw in paths:
            try:
                path = normalize_path(raw)
            except ValueError:
                logger.warning("Skipping invalid path %r", raw)
                continue
            if path in records or not is_eligible(path, self.settings.folder):
                continue
            try:
                content = await self.workspace.read(path)
            except FileNotFoundError:
                logger.debug("File vanished before batch push: %s", path)
                continue
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable %s: %s", path, exc)
                continue
            records[path] = FileRecord.from_content(path, content)

        if not records:
            return []

        batch = PushBatch(files=list(records.values()))
        await run_sync(self.client.submit, batch)
        for record in batch.files:
            self.remember(record.path, record.fingerprint)
        logger.info("Pushed batch of %d files", len(batch.files))
        return list(records)

    async def push_all_now(self, paths: Iterable[str]) -> int:
        """Push *paths* immediately in one request.

        Returns:
            Number of files sent.

        Raises:
            FluxError: If the submission fails.
        """
        return len(await self.submit_now(paths))

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def discard(self, path: str) -> None:
        """Drop the pending push for *path* without sending it."""
        task = self._timers.pop(path, None)
        if task is not None:
            task.cancel()
            logger.debug("Discarded pending push for %s", path)

    def cancel(self) -> None:
        """Drop every pending push. Pushes already in flight complete."""
        timers, self._timers = self._timers, {}
        for task in timers.values():
            task.cancel()
        if timers:
            logger.debug("Cancelled %d pending pushes", len(timers))

    async def join(self) -> None:
        """Wait until every pending and in-flight push has finished."""
        while self._timers or self._flushing:
            tasks = [*self._timers.values(), *self._flushing]
            await asyncio.gather(*tasks, return_exceptions=True)
