"""Tests for sync/coalescer.py -- debounced pushes and the batch push.

Covers:
- Debounce coalescing (N edits -> one batch with the last content)
- Gates: suppression, disabled, unconfigured, extension, folder scope
- Echo filter (server already holds the content)
- Failure notifications
- push_all_now batching, vanished files, empty batches
- discard / cancel
"""

import asyncio

import pytest

from flux_sync.core.errors import NotConfigured, TransportError
from flux_sync.sync.fingerprint import fingerprint


@pytest.fixture
def coalescer(engine):
    return engine.coalescer


class TestDebounce:
    async def test_burst_produces_one_batch_with_last_content(
        self, coalescer, workspace, server
    ):
        for i in range(5):
            workspace.files["note.md"] = f"edit {i}"
            assert coalescer.schedule_push("note.md") is True
        assert coalescer.pending_paths == ["note.md"]

        await coalescer.join()

        assert len(server.submitted) == 1
        batch = server.submitted[0]
        assert [f.path for f in batch.files] == ["note.md"]
        assert batch.files[0].content == "edit 4"
        assert batch.files[0].fingerprint == fingerprint("edit 4")
        assert batch.deleted == []

    async def test_paths_are_independent(self, coalescer, workspace, server):
        workspace.files.update({"a.md": "A", "b.md": "B"})
        coalescer.schedule_push("a.md")
        coalescer.schedule_push("b.md")
        await coalescer.join()

        assert sorted(server.submitted_paths) == ["a.md", "b.md"]
        assert len(server.submitted) == 2

    async def test_equivalent_paths_share_one_timer(
        self, coalescer, workspace, server
    ):
        workspace.files["dir/n.md"] = "x"
        coalescer.schedule_push("dir/n.md")
        coalescer.schedule_push("./dir//n.md")
        assert coalescer.pending_paths == ["dir/n.md"]
        await coalescer.join()
        assert len(server.submitted) == 1

    async def test_success_notification(
        self, coalescer, workspace, notifier
    ):
        workspace.files["note.md"] = "hello"
        coalescer.schedule_push("note.md")
        await coalescer.join()
        assert notifier.messages == ["Flux: pushed note.md"]

    async def test_content_supplier_used(self, coalescer, server):
        async def supplier():
            return "supplied"

        coalescer.schedule_push("note.md", supplier)
        await coalescer.join()
        assert server.submitted[0].files[0].content == "supplied"


class TestGates:
    async def test_suppressed(self, engine, coalescer, workspace, server):
        workspace.files["note.md"] = "x"
        with engine.suppressor.suppressing():
            assert coalescer.schedule_push("note.md") is False
        assert coalescer.pending_paths == []

    async def test_disabled(self, coalescer, settings):
        settings.enabled = False
        assert coalescer.schedule_push("note.md") is False

    async def test_unconfigured(self, coalescer, settings):
        settings.endpoint = ""
        assert coalescer.schedule_push("note.md") is False

    @pytest.mark.parametrize(
        "path", ["image.png", "notes.txt", "README.MD", "md"]
    )
    async def test_untracked_extension(self, coalescer, path):
        assert coalescer.schedule_push(path) is False

    async def test_outside_folder(self, coalescer, settings):
        settings.folder = "Flux"
        assert coalescer.schedule_push("Other/note.md") is False
        assert coalescer.schedule_push("Fluxish/note.md") is False
        assert coalescer.schedule_push("Flux/note.md") is True
        coalescer.cancel()

    async def test_invalid_path(self, coalescer):
        assert coalescer.schedule_push("../escape.md") is False


class TestEchoFilter:
    async def test_known_content_not_pushed(
        self, coalescer, workspace, server, notifier
    ):
        workspace.files["note.md"] = "same"
        coalescer.remember("note.md", fingerprint("same"))

        coalescer.schedule_push("note.md")
        await coalescer.join()

        assert server.submitted == []
        assert notifier.messages == []

    async def test_changed_content_pushed(
        self, coalescer, workspace, server
    ):
        coalescer.remember("note.md", fingerprint("old"))
        workspace.files["note.md"] = "new"
        coalescer.schedule_push("note.md")
        await coalescer.join()
        assert server.submitted_paths == ["note.md"]

    async def test_successful_push_is_remembered(
        self, coalescer, workspace, server
    ):
        workspace.files["note.md"] = "v1"
        coalescer.schedule_push("note.md")
        await coalescer.join()
        assert coalescer.known_fingerprint("note.md") == fingerprint("v1")

        # A late event for the same content is filtered
        coalescer.schedule_push("note.md")
        await coalescer.join()
        assert len(server.submitted) == 1

    async def test_forget(self, coalescer):
        coalescer.remember("a.md", "sha256:x")
        coalescer.forget("a.md", tombstoned=True)
        assert coalescer.known_fingerprint("a.md") is None
        assert coalescer.known_deleted("a.md")

        coalescer.remember("a.md", "sha256:y")
        assert not coalescer.known_deleted("a.md")


class TestFailures:
    async def test_transport_failure_notified(
        self, coalescer, workspace, server, notifier
    ):
        server.submit_error = TransportError(500, "boom")
        workspace.files["note.md"] = "x"
        coalescer.schedule_push("note.md")
        await coalescer.join()

        assert notifier.messages == ["Flux: push failed - boom (HTTP 500)"]
        assert coalescer.known_fingerprint("note.md") is None

    async def test_read_failure_notified(
        self, coalescer, workspace, server, notifier
    ):
        workspace.files["note.md"] = "x"
        workspace.fail_reads.add("note.md")
        coalescer.schedule_push("note.md")
        await coalescer.join()

        assert server.submitted == []
        assert len(notifier.messages) == 1
        assert notifier.messages[0].startswith("Flux: push failed - ")

    async def test_vanished_file_skipped_silently(
        self, coalescer, server, notifier
    ):
        coalescer.schedule_push("gone.md")
        await coalescer.join()
        assert server.submitted == []
        assert notifier.messages == []

    async def test_failure_does_not_block_next_push(
        self, coalescer, workspace, server
    ):
        workspace.files["note.md"] = "x"
        server.submit_error = TransportError(None, "offline")
        coalescer.schedule_push("note.md")
        await coalescer.join()

        server.submit_error = None
        coalescer.schedule_push("note.md")
        await coalescer.join()
        assert server.submitted_paths == ["note.md"]


class TestPushAllNow:
    async def test_single_batch(self, coalescer, workspace, server):
        workspace.files.update({"a.md": "A", "b/c.md": "C"})
        count = await coalescer.push_all_now(["a.md", "b/c.md"])

        assert count == 2
        assert len(server.submitted) == 1
        assert sorted(server.submitted_paths) == ["a.md", "b/c.md"]

    async def test_skips_vanished_and_ineligible(
        self, coalescer, workspace, server, settings
    ):
        settings.folder = "Flux"
        workspace.files.update({"Flux/a.md": "A", "Other/b.md": "B"})
        count = await coalescer.push_all_now(
            ["Flux/a.md", "Flux/missing.md", "Other/b.md", "Flux/x.png"]
        )
        assert count == 1
        assert server.submitted_paths == ["Flux/a.md"]

    async def test_empty_batch_no_request(self, coalescer, server):
        assert await coalescer.push_all_now([]) == 0
        assert await coalescer.push_all_now(["missing.md"]) == 0
        assert server.submitted == []

    async def test_errors_propagate(self, coalescer, workspace, server):
        workspace.files["a.md"] = "A"
        server.submit_error = TransportError(503, "unavailable")
        with pytest.raises(TransportError):
            await coalescer.push_all_now(["a.md"])

    async def test_not_configured_propagates(
        self, coalescer, workspace, settings
    ):
        settings.endpoint = ""
        workspace.files["a.md"] = "A"
        with pytest.raises(NotConfigured):
            await coalescer.push_all_now(["a.md"])

    async def test_remembers_fingerprints(self, coalescer, workspace):
        workspace.files["a.md"] = "A"
        await coalescer.push_all_now(["a.md"])
        assert coalescer.known_fingerprint("a.md") == fingerprint("A")


class TestCancellation:
    async def test_discard(self, coalescer, workspace, server):
        workspace.files.update({"a.md": "A", "b.md": "B"})
        coalescer.schedule_push("a.md")
        coalescer.schedule_push("b.md")
        coalescer.discard("a.md")
        await coalescer.join()
        assert server.submitted_paths == ["b.md"]

    async def test_cancel_drops_all_pending(
        self, coalescer, workspace, server
    ):
        workspace.files.update({"a.md": "A", "b.md": "B"})
        coalescer.schedule_push("a.md")
        coalescer.schedule_push("b.md")
        coalescer.cancel()
        assert coalescer.pending_paths == []

        await asyncio.sleep(0.1)
        assert server.submitted == []

    async def test_cancel_is_idempotent(self, coalescer):
        coalescer.cancel()
        coalescer.cancel()
        assert coalescer.pending_paths == []
