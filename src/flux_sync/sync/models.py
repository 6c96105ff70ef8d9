"""Pydantic models for the Flux sync engine.

Defines the data contracts exchanged with the server and between the
engine's components:

- ``FileRecord``: one file's content at a point in time.
- ``PushBatch``: one ``POST /push`` submission.
- ``PullSnapshot``: the server's full advertised state from ``GET /pull``.
- ``ChangeKind`` / ``ChangeEvent``: local change notifications.
- ``ReconcileReport``: outcome of one reconcile cycle.

All models are frozen (immutable).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from ..core.errors import MalformedResponse
from .fingerprint import fingerprint as content_fingerprint
from .paths import normalize_path

logger = logging.getLogger(__name__)


class FileRecord(BaseModel):
    """Snapshot of one file's content.

    Attributes:
        path: Vault-relative POSIX path.
        content: Full text content.
        fingerprint: Content digest; travels as ``hash`` on the wire.
    """

    path: str
    content: str
    fingerprint: str = Field(default="", alias="hash")

    model_config = {"frozen": True, "populate_by_name": True}

    @classmethod
    def from_content(cls, path: str, content: str) -> FileRecord:
        return cls(
            path=path,
            content=content,
            fingerprint=content_fingerprint(content),
        )

    def to_wire(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class PushBatch(BaseModel):
    """One submission to the server.

    A path never appears in both ``files`` and ``deleted``.
    """

    files: list[FileRecord] = []
    deleted: list[str] = []

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _paths_disjoint(self) -> PushBatch:
        overlap = {f.path for f in self.files} & set(self.deleted)
        if overlap:
            raise ValueError(
                f"Paths both written and deleted in one batch: {sorted(overlap)}"
            )
        return self

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.deleted

    def to_wire(self) -> dict[str, Any]:
        return {
            "files": [f.to_wire() for f in self.files],
            "deleted": list(self.deleted),
        }


class PullSnapshot(BaseModel):
    """The server's complete state at fetch time.

    Attributes:
        files: Authoritative content for every path the server holds.
        deleted: Tombstones for paths the server has removed.
        skipped: Number of malformed records dropped while decoding.
    """

    files: list[FileRecord] = []
    deleted: list[str] = []
    skipped: int = 0

    model_config = {"frozen": True}

    @property
    def advertised_paths(self) -> set[str]:
        """Every path the server has an opinion about."""
        return {f.path for f in self.files} | set(self.deleted)

    @classmethod
    def from_wire(cls, payload: Any) -> PullSnapshot:
        """Decode a ``GET /pull`` body.

        Malformed individual records are skipped and counted rather than
        failing the whole snapshot. A path listed both as a file and as a
        tombstone is kept as a file.

        ``files`` is required; ``deleted`` may be missing or null.

        Raises:
            MalformedResponse: If the payload is not an object, lacks
                ``files``, or its ``files`` / ``deleted`` members are not
                lists.
        """
        if not isinstance(payload, dict):
            raise MalformedResponse("Pull response is not a JSON object")
        if "files" not in payload:
            raise MalformedResponse("Pull response has no 'files' member")

        raw_files = payload["files"]
        raw_deleted = payload.get("deleted") or []
        if not isinstance(raw_files, list):
            raise MalformedResponse("Pull response 'files' is not a list")
        if not isinstance(raw_deleted, list):
            raise MalformedResponse(
                "Pull response 'deleted' is not a list"
            )

        skipped = 0
        files: dict[str, FileRecord] = {}
        for raw in raw_files:
            record = _decode_record(raw)
            if record is None:
                logger.warning("Skipping malformed pull record: %r", raw)
                skipped += 1
                continue
            files[record.path] = record

        deleted: list[str] = []
        for raw in raw_deleted:
            try:
                path = normalize_path(raw)
            except (AttributeError, TypeError, ValueError):
                logger.warning("Skipping malformed tombstone: %r", raw)
                skipped += 1
                continue
            if path not in files and path not in deleted:
                deleted.append(path)

        return cls(
            files=list(files.values()), deleted=deleted, skipped=skipped
        )


def _decode_record(raw: Any) -> FileRecord | None:
    if not isinstance(raw, dict):
        return None
    path, content = raw.get("path"), raw.get("content")
    if not isinstance(path, str) or not isinstance(content, str):
        return None
    try:
        path = normalize_path(path)
    except ValueError:
        return None
    digest = raw.get("hash")
    if not isinstance(digest, str) or not digest:
        digest = content_fingerprint(content)
    return FileRecord(path=path, content=content, fingerprint=digest)


class ChangeKind(str, Enum):
    """Kinds of local change events delivered by the host."""

    CREATE = "create"
    MODIFY = "modify"
    RENAME = "rename"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """One local change notification.

    Attributes:
        kind: What happened.
        path: Affected path (the new path for renames).
        old_path: Previous path, only for renames.
    """

    kind: ChangeKind
    path: str
    old_path: str | None = None

    model_config = {"frozen": True}


class ReconcileReport(BaseModel):
    """Aggregate outcome of one reconcile cycle.

    Attributes:
        updated: Paths created or overwritten locally.
        deleted: Paths removed locally because of server tombstones.
        pushed: Local-only paths sent to the server.
        skipped: Malformed records ignored in the snapshot.
        errors: Per-record or push failures.
        started_at: ISO 8601 timestamp when the cycle started.
        completed_at: ISO 8601 timestamp when the cycle finished.
    """

    updated: list[str] = []
    deleted: list[str] = []
    pushed: list[str] = []
    skipped: int = 0
    errors: list[str] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def has_changes(self) -> bool:
        return bool(self.updated or self.deleted or self.pushed)

    @property
    def success(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        """One-line notification text for this cycle.

        Recorded errors are counted at the end, so a cycle that changed
        nothing but failed is never reported as "no changes".
        """
        if not self.has_changes and not self.errors:
            return "Flux: pull complete (no changes)"
        text = (
            f"Flux: {len(self.updated)} updated, "
            f"{len(self.deleted)} deleted, "
            f"{len(self.pushed)} pushed"
        )
        if self.errors:
            n = len(self.errors)
            text += f", {n} error" if n == 1 else f", {n} errors"
        return text
