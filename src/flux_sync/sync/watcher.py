"""Filesystem watcher that feeds local changes into the engine.

Runs a watchdog ``Observer`` thread over the vault root and converts file
events into ``ChangeEvent`` objects. Events are handed to a callback which
is invoked on the observer thread; pass
``SyncEngine.post_event_threadsafe`` so they reach the event loop safely.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path, PurePosixPath

from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    FileSystemMovedEvent,
)
from watchdog.observers import Observer

from .models import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

EventSink = Callable[[ChangeEvent], None]


def _is_hidden(rel_path: str) -> bool:
    return any(part.startswith(".") for part in PurePosixPath(rel_path).parts)


class _ChangeHandler(FileSystemEventHandler):
    """Map watchdog file events under *root* to ``ChangeEvent``s.

    Directory events and anything below a dot-directory are ignored.
    """

    def __init__(self, root: Path, sink: EventSink):
        super().__init__()
        self._root = root
        self._sink = sink

    def _relative(self, raw_path: str | bytes) -> str | None:
        try:
            rel = Path(os.fsdecode(raw_path)).relative_to(self._root)
        except ValueError:
            return None
        text = rel.as_posix()
        if text == "." or _is_hidden(text):
            return None
        return text

    def _emit(
        self, kind: ChangeKind, path: str, old_path: str | None = None
    ) -> None:
        event = ChangeEvent(kind=kind, path=path, old_path=old_path)
        logger.debug("Local change: %s %s", kind.value, path)
        try:
            self._sink(event)
        except Exception:
            logger.exception("Failed to deliver %s", event)

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = self._relative(event.src_path)
        if path is not None:
            self._emit(ChangeKind.CREATE, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = self._relative(event.src_path)
        if path is not None:
            self._emit(ChangeKind.MODIFY, path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = self._relative(event.src_path)
        if path is not None:
            self._emit(ChangeKind.DELETE, path)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        old = self._relative(event.src_path)
        new = self._relative(event.dest_path)
        if old is not None and new is not None:
            self._emit(ChangeKind.RENAME, new, old_path=old)
        elif new is not None:
            # Moved in from outside the vault (or from a hidden path)
            self._emit(ChangeKind.CREATE, new)
        elif old is not None:
            self._emit(ChangeKind.DELETE, old)


class WorkspaceWatcher:
    """Recursive watchdog observer for one vault.

    Args:
        root: Vault root directory.
        sink: Called with every ``ChangeEvent`` on the observer thread.
    """

    def __init__(self, root: Path | str, sink: EventSink):
        self.root = Path(root).resolve()
        self._handler = _ChangeHandler(self.root, sink)
        self._observer: Observer | None = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self._handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching %s", self.root)

    def stop(self, timeout: float = 2.0) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=timeout)
        logger.info("Stopped watching %s", self.root)
