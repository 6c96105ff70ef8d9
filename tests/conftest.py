"""Shared pytest fixtures for flux-sync tests.

The engine is exercised against in-memory fakes:

- ``FakeFluxServer``: a blocking stand-in for ``FluxClient`` that keeps a
  (path, content) + tombstone store and records every submitted batch.
- ``FakeWorkspace``: an async in-memory file tree with failure injection.
- ``RecordingNotifier``: collects notification messages.
"""

from __future__ import annotations

import threading
from pathlib import PurePosixPath

import pytest
from dotenv import load_dotenv

from flux_sync.config import SyncSettings
from flux_sync.core.errors import NotConfigured
from flux_sync.sync.engine import SyncEngine
from flux_sync.sync.fingerprint import fingerprint
from flux_sync.sync.models import FileRecord, PullSnapshot, PushBatch

load_dotenv()

# Short enough to keep tests fast, long enough to coalesce bursts
TEST_DEBOUNCE = 0.05


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Flux server",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Flux server"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFluxServer:
    """In-memory Flux store with the blocking ``FluxClient`` interface."""

    def __init__(self, settings: SyncSettings | None = None):
        self.settings = settings or SyncSettings()
        self.files: dict[str, str] = {}
        self.deleted: list[str] = []
        self.submitted: list[PushBatch] = []
        self.fetch_count = 0
        self.fetch_error: Exception | None = None
        self.submit_error: Exception | None = None
        self.snapshot_override: PullSnapshot | None = None
        # Raw /pull body, decoded the way FluxClient decodes it
        self.pull_payload: object | None = None
        self._fetch_gate: threading.Event | None = None
        self.fetch_started = threading.Event()

    # -- helpers used by tests -------------------------------------------

    def seed(self, path: str, content: str) -> None:
        self.files[path] = content

    def block_next_fetch(self) -> threading.Event:
        """Make the next ``fetch_state`` wait until the returned event is set."""
        gate = threading.Event()
        self._fetch_gate = gate
        self.fetch_started.clear()
        return gate

    @property
    def submitted_paths(self) -> list[str]:
        return [f.path for batch in self.submitted for f in batch.files]

    # -- FluxClient interface --------------------------------------------

    def update_settings(self, settings: SyncSettings) -> None:
        self.settings = settings

    def fetch_state(self) -> PullSnapshot:
        self.fetch_count += 1
        gate, self._fetch_gate = self._fetch_gate, None
        self.fetch_started.set()
        if gate is not None:
            gate.wait(timeout=5)
        if self.fetch_error is not None:
            raise self.fetch_error
        if self.pull_payload is not None:
            return PullSnapshot.from_wire(self.pull_payload)
        if self.snapshot_override is not None:
            return self.snapshot_override
        return PullSnapshot(
            files=[
                FileRecord.from_content(path, content)
                for path, content in sorted(self.files.items())
            ],
            deleted=list(self.deleted),
        )

    def submit(self, batch: PushBatch) -> None:
        if not self.settings.configured:
            raise NotConfigured()
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(batch)
        for record in batch.files:
            self.files[record.path] = record.content
            if record.path in self.deleted:
                self.deleted.remove(record.path)
        for path in batch.deleted:
            self.files.pop(path, None)
            if path not in self.deleted:
                self.deleted.append(path)

    def validate_connection(self) -> str:
        return "ok"


class FakeWorkspace:
    """Async in-memory ``Workspace`` that records every write."""

    def __init__(self, files: dict[str, str] | None = None):
        self.files: dict[str, str] = dict(files or {})
        self.directories: set[str] = set()
        self.writes: list[tuple[str, str]] = []
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()

    def _check_write(self, path: str) -> None:
        if path in self.fail_writes:
            raise PermissionError(f"Permission denied: {path}")

    async def read(self, path: str) -> str:
        if path in self.fail_reads:
            raise PermissionError(f"Permission denied: {path}")
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    async def create(self, path: str, content: str) -> None:
        self._check_write(path)
        if path in self.files:
            raise FileExistsError(path)
        self.files[path] = content
        self.writes.append(("create", path))

    async def modify(self, path: str, content: str) -> None:
        self._check_write(path)
        self.files[path] = content
        self.writes.append(("modify", path))

    async def delete(self, path: str) -> None:
        self._check_write(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]
        self.writes.append(("delete", path))

    async def create_directory(self, path: str) -> None:
        self.directories.add(path)
        self.writes.append(("mkdir", path))

    async def exists(self, path: str) -> bool:
        return path in self.files or path in self.directories

    async def is_file(self, path: str) -> bool:
        return path in self.files

    async def list_all_files(self, extension: str) -> list[str]:
        return sorted(
            p
            for p in self.files
            if PurePosixPath(p).suffix == f".{extension}"
        )


class RecordingNotifier:
    def __init__(self):
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    """Active settings pointing at a loopback endpoint."""
    return SyncSettings(endpoint="localhost:8080", enabled=True)


@pytest.fixture
def server(settings):
    return FakeFluxServer(settings)


@pytest.fixture
def workspace():
    return FakeWorkspace()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(server, workspace, settings, notifier):
    """SyncEngine wired to the fakes with a short debounce."""
    return SyncEngine(
        client=server,
        workspace=workspace,
        settings=settings,
        notifier=notifier,
        debounce=TEST_DEBOUNCE,
    )


@pytest.fixture
def fp():
    return fingerprint
