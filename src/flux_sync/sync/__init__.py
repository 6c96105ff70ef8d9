"""Continuous workspace <-> Flux server sync engine.

Public API for keeping a local tree of Markdown notes consistent with a
Flux store that exposes ``GET /pull`` and ``POST /push``.

Architecture
------------
The server is a dumb (path, content) + tombstone store, so all of the
decision making happens here.  Outbound changes are debounced per path and
sent as soon as the user stops typing; inbound state is reconciled on a
timer by fetching the full snapshot and applying it with feedback
suppression raised, so the engine's own writes are never pushed back.
Last writer wins per path.

Modules:

- ``engine``      -- ``SyncEngine``: lifecycle, event queue, poll loop.
- ``coalescer``   -- ``PushCoalescer``: per-path debounce timers and the
  immediate batch push.
- ``reconciler``  -- ``Reconciler``: pull, apply, push local-only files.
- ``rename``      -- ``RenameTranslator``: atomic rename and delete batches.
- ``suppressor``  -- ``FeedbackSuppressor``: re-entrancy guard.
- ``workspace``   -- ``Workspace`` protocol and ``LocalWorkspace``.
- ``watcher``     -- ``WorkspaceWatcher``: watchdog-based change events.
- ``models``      -- ``FileRecord``, ``PushBatch``, ``PullSnapshot``,
  ``ChangeEvent``, ``ReconcileReport``: data contracts.
- ``notifier``    -- user-visible notification sinks.
- ``reporter``    -- human-readable and JSON report formatting.

Usage example
-------------
::

    from flux_sync.config import SyncSettings
    from flux_sync.core.client import FluxClient
    from flux_sync.sync import LocalWorkspace, SyncEngine, WorkspaceWatcher

    settings = SyncSettings(endpoint="localhost:8080", enabled=True)
    engine = SyncEngine(
        client=FluxClient(settings),
        workspace=LocalWorkspace("~/Notes"),
        settings=settings,
    )

    await engine.start()
    watcher = WorkspaceWatcher("~/Notes", engine.post_event_threadsafe)
    watcher.start()
    ...
    watcher.stop()
    await engine.stop()
"""

from .coalescer import PUSH_DEBOUNCE_SECONDS, PushCoalescer
from .engine import SyncEngine
from .fingerprint import fingerprint
from .models import (
    ChangeEvent,
    ChangeKind,
    FileRecord,
    PullSnapshot,
    PushBatch,
    ReconcileReport,
)
from .notifier import BufferedNotifier, LogNotifier, StderrNotifier
from .reconciler import Reconciler
from .rename import RenameTranslator
from .reporter import format_reconcile_report, report_to_json
from .suppressor import FeedbackSuppressor
from .watcher import WorkspaceWatcher
from .workspace import LocalWorkspace, Workspace

__all__ = [
    "PUSH_DEBOUNCE_SECONDS",
    "BufferedNotifier",
    "ChangeEvent",
    "ChangeKind",
    "FeedbackSuppressor",
    "FileRecord",
    "LocalWorkspace",
    "LogNotifier",
    "PullSnapshot",
    "PushBatch",
    "PushCoalescer",
    "ReconcileReport",
    "Reconciler",
    "RenameTranslator",
    "StderrNotifier",
    "SyncEngine",
    "Workspace",
    "WorkspaceWatcher",
    "fingerprint",
    "report_to_json",
    "format_reconcile_report",
]
