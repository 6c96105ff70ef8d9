"""Inbound reconcile: make the workspace match the server, then push
whatever the server has never seen.

A reconcile runs as a *session* task. Starting a new reconcile cancels the
previous session if it is still running; the superseded caller gets
``None`` and nothing from the old session is applied after that point.
The blocking HTTP request of a cancelled session cannot be interrupted,
its result is simply dropped.

Order within a session:

1. Fetch the server snapshot.
2. Apply tombstones, then files, with feedback suppression raised.
3. Push every eligible local file the server does not know about.
4. Emit one summary notification.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..config import SyncSettings
from ..core.async_utils import run_sync
from ..core.errors import FluxError
from .coalescer import PushCoalescer
from .fingerprint import fingerprint
from .models import FileRecord, PullSnapshot, ReconcileReport
from .notifier import Notifier
from .paths import TRACKED_EXTENSION, in_scope, parent_directories
from .suppressor import FeedbackSuppressor
from .workspace import Workspace

if TYPE_CHECKING:
    from ..core.client import FluxClient

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Reconciler:
    """Pull-apply-diff cycle with supersede semantics.

    Args:
        client: Transport used to fetch the snapshot.
        workspace: Local file tree to update.
        settings: Live sync settings.
        suppressor: Shared feedback suppressor.
        notifier: Sink for user-visible messages.
        coalescer: Used for the local-only batch push and to record which
            content the server holds.
    """

    def __init__(
        self,
        client: FluxClient,
        workspace: Workspace,
        settings: SyncSettings,
        suppressor: FeedbackSuppressor,
        notifier: Notifier,
        coalescer: PushCoalescer,
    ) -> None:
        self.client = client
        self.workspace = workspace
        self.settings = settings
        self.suppressor = suppressor
        self.notifier = notifier
        self.coalescer = coalescer
        self._session: asyncio.Task | None = None
        self.last_report: ReconcileReport | None = None

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    @property
    def running(self) -> bool:
        return self._session is not None and not self._session.done()

    async def reconcile(self) -> ReconcileReport | None:
        """Run one reconcile, superseding any session still in progress.

        Returns:
            The session's report, or ``None`` when sync is inactive or this
            call was superseded by a newer one.
        """
        if not self.settings.active:
            logger.debug("Reconcile skipped: sync inactive")
            return None

        previous = self._session
        if previous is not None and not previous.done():
            logger.debug("Superseding running reconcile")
            previous.cancel()

        session = asyncio.create_task(
            self._run_session(), name="flux-reconcile"
        )
        self._session = session
        try:
            return await session
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("Reconcile superseded")
            return None
        finally:
            if self._session is session:
                self._session = None

    def cancel(self) -> None:
        """Cancel the running session, if any."""
        session = self._session
        if session is not None and not session.done():
            session.cancel()
            logger.debug("Reconcile cancelled")

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def _run_session(self) -> ReconcileReport:
        started_at = _now()

        try:
            snapshot: PullSnapshot = await run_sync(self.client.fetch_state)
        except FluxError as exc:
            logger.error("Pull failed: %s", exc)
            self.notifier.notify(f"Flux: pull failed - {exc}")
            report = ReconcileReport(
                errors=[str(exc)],
                started_at=started_at,
                completed_at=_now(),
            )
            self.last_report = report
            return report

        folder = self.settings.folder
        updated: list[str] = []
        deleted: list[str] = []
        errors: list[str] = []

        with self.suppressor.suppressing():
            for path in snapshot.deleted:
                if not in_scope(path, folder):
                    continue
                self.coalescer.forget(path, tombstoned=True)
                try:
                    if await self.workspace.exists(path):
                        await self.workspace.delete(path)
                        deleted.append(path)
                except (OSError, ValueError) as exc:
                    logger.warning("Failed to delete %s: %s", path, exc)
                    errors.append(f"{path}: {exc}")

            for record in snapshot.files:
                if not in_scope(record.path, folder):
                    continue
                try:
                    if await self._apply_record(record):
                        updated.append(record.path)
                except (OSError, ValueError) as exc:
                    logger.warning(
                        "Failed to apply %s: %s", record.path, exc
                    )
                    errors.append(f"{record.path}: {exc}")

        pushed = await self._push_local_only(snapshot, errors)

        report = ReconcileReport(
            updated=updated,
            deleted=deleted,
            pushed=pushed,
            skipped=snapshot.skipped,
            errors=errors,
            started_at=started_at,
            completed_at=_now(),
        )
        self.last_report = report
        logger.info(
            "Reconcile complete: %d updated, %d deleted, %d pushed, "
            "%d errors",
            len(updated),
            len(deleted),
            len(pushed),
            len(errors),
        )
        self.notifier.notify(report.summary())
        return report

    async def _apply_record(self, record: FileRecord) -> bool:
        """Write one server record locally; return whether anything changed."""
        path = record.path
        expected = fingerprint(record.content)

        if not await self.workspace.exists(path):
            for parent in parent_directories(path):
                if not await self.workspace.exists(parent):
                    await self.workspace.create_directory(parent)
            await self.workspace.create(path, record.content)
            changed = True
        elif fingerprint(await self.workspace.read(path)) != expected:
            await self.workspace.modify(path, record.content)
            changed = True
        else:
            changed = False

        self.coalescer.remember(path, expected)
        return changed

    async def _push_local_only(
        self, snapshot: PullSnapshot, errors: list[str]
    ) -> list[str]:
        folder = self.settings.folder
        advertised = snapshot.advertised_paths
        try:
            local = await self.workspace.list_all_files(TRACKED_EXTENSION)
        except OSError as exc:
            logger.error("Failed to list local files: %s", exc)
            errors.append(f"list: {exc}")
            return []

        local_only = [
            p for p in local if in_scope(p, folder) and p not in advertised
        ]
        if not local_only:
            return []

        try:
            return await self.coalescer.submit_now(local_only)
        except FluxError as exc:
            logger.error("Push of local-only files failed: %s", exc)
            errors.append(str(exc))
            return []
