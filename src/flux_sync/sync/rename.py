"""Translate local renames and deletes into server batches.

A rename is sent as one batch that tombstones the old path and carries the
new file's content, so the server never sees one half without the other.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import SyncSettings
from ..core.async_utils import run_sync
from ..core.errors import FluxError
from .coalescer import PushCoalescer
from .models import FileRecord, PushBatch
from .notifier import Notifier
from .paths import in_scope, is_eligible, normalize_path
from .suppressor import FeedbackSuppressor
from .workspace import Workspace

if TYPE_CHECKING:
    from ..core.client import FluxClient

logger = logging.getLogger(__name__)


class RenameTranslator:
    """Sends local renames and deletes to the server.

    Both are ignored while the suppressor is raised or sync is inactive.

    Args:
        client: Transport used to submit the batches.
        workspace: Local file tree the renamed file is read from.
        settings: Live sync settings.
        suppressor: Shared feedback suppressor.
        notifier: Sink for user-visible messages.
        coalescer: Owner of the pending pushes and echo memory that a
            rename or delete discards.
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

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    def _gated(self) -> bool:
        return self.suppressor.active or not self.settings.active

    async def handle_rename(self, new_path: str, old_path: str) -> bool:
        """Propagate a local rename as one atomic batch.

        Returns:
            ``True`` if a batch was submitted successfully.
        """
        if self._gated():
            return False
        try:
            new_path = normalize_path(new_path)
            old_path = normalize_path(old_path)
        except ValueError as exc:
            logger.warning("Ignoring rename: %s", exc)
            return False

        folder = self.settings.folder
        self.coalescer.discard(old_path)

        deleted = (
            [old_path]
            if in_scope(old_path, folder) and old_path != new_path
            else []
        )
        files: list[FileRecord] = []
        try:
            if is_eligible(new_path, folder) and await self.workspace.is_file(
                new_path
            ):
                content = await self.workspace.read(new_path)
                files.append(FileRecord.from_content(new_path, content))
        except (OSError, ValueError) as exc:
            logger.error("Failed to read renamed file %s: %s", new_path, exc)
            self.notifier.notify(f"Flux: rename failed - {exc}")
            return False

        if not deleted and not files:
            return False

        try:
            await run_sync(
                self.client.submit, PushBatch(files=files, deleted=deleted)
            )
        except FluxError as exc:
            logger.error("Rename %s -> %s failed: %s", old_path, new_path, exc)
            self.notifier.notify(f"Flux: rename failed - {exc}")
            return False

        if deleted:
            self.coalescer.forget(old_path, tombstoned=True)
        for record in files:
            self.coalescer.remember(record.path, record.fingerprint)
        logger.info("Synced rename %s -> %s", old_path, new_path)
        self.notifier.notify(f"Flux: synced rename -> {new_path}")
        return True

    async def handle_delete(self, path: str) -> bool:
        """Send a tombstone for a locally deleted path.

        Returns:
            ``True`` if the tombstone was submitted successfully.
        """
        if self._gated():
            return False
        try:
            path = normalize_path(path)
        except ValueError as exc:
            logger.warning("Ignoring delete: %s", exc)
            return False
        if not in_scope(path, self.settings.folder):
            return False

        self.coalescer.discard(path)
        if self.coalescer.known_deleted(path):
            logger.debug("Server already deleted %s", path)
            return False
        try:
            await run_sync(self.client.submit, PushBatch(deleted=[path]))
        except FluxError as exc:
            logger.error("Delete of %s failed: %s", path, exc)
            self.notifier.notify(f"Flux: delete failed - {exc}")
            return False

        self.coalescer.forget(path, tombstoned=True)
        logger.info("Deleted %s", path)
        self.notifier.notify(f"Flux: deleted {path}")
        return True
