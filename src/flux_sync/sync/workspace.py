"""Workspace access: the local file tree the engine keeps in sync.

``Workspace`` is the async interface the engine consumes. ``LocalWorkspace``
implements it on a directory, with encoding-aware reads and UTF-8 writes.
The blocking helpers are plain functions; the async methods compose them
through ``run_sync()``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from charset_normalizer import from_bytes

from ..core.async_utils import run_sync
from .paths import normalize_path


class Workspace(Protocol):
    """Operations the engine needs from the host's file tree.

    All paths are vault-relative POSIX strings.
    """

    async def read(self, path: str) -> str: ...

    async def create(self, path: str, content: str) -> None: ...

    async def modify(self, path: str, content: str) -> None: ...

    async def delete(self, path: str) -> None: ...

    async def create_directory(self, path: str) -> None: ...

    async def exists(self, path: str) -> bool: ...

    async def is_file(self, path: str) -> bool: ...

    async def list_all_files(self, extension: str) -> list[str]: ...


# =============================================================================
# Blocking file helpers
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        # Fast path: almost every note is UTF-8
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def write_file(path: Path, content: str, exclusive: bool = False) -> int:
    """Write UTF-8 content, creating parent directories as needed.

    Args:
        path: Target file.
        content: Text to write.
        exclusive: Fail with ``FileExistsError`` if the file exists.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode("utf-8")
    with open(path, "xb" if exclusive else "wb") as fh:
        fh.write(encoded)
    return len(encoded)


def remove_path(path: Path) -> None:
    """Delete a file, or an empty directory."""
    if path.is_dir():
        path.rmdir()
    else:
        path.unlink()


def scan_files(root: Path, extension: str) -> list[str]:
    """List vault-relative paths of files with *extension* under *root*.

    Hidden files and directories (leading dot) are skipped.
    """
    suffix = f".{extension}"
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for name in filenames:
            if name.startswith(".") or not name.endswith(suffix):
                continue
            found.append(
                (Path(dirpath) / name).relative_to(root).as_posix()
            )
    return sorted(found)


# =============================================================================
# Filesystem workspace
# =============================================================================


class LocalWorkspace:
    """A ``Workspace`` backed by a directory on disk.

    Args:
        root: Vault root directory. Must exist.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> Path:
        """Map a vault path to an absolute path inside the root.

        Raises:
            ValueError: If the path is empty or escapes the root.
        """
        target = (self.root / normalize_path(path)).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Path escapes the vault: {path!r}")
        return target

    def relative(self, absolute: Path | str) -> str | None:
        """Inverse of ``resolve``; ``None`` for paths outside the root."""
        try:
            rel = Path(absolute).resolve().relative_to(self.root)
        except ValueError:
            return None
        text = rel.as_posix()
        return None if text == "." else text

    async def read(self, path: str) -> str:
        content, _ = await run_sync(
            read_file_with_encoding, self.resolve(path)
        )
        return content

    async def create(self, path: str, content: str) -> None:
        await run_sync(write_file, self.resolve(path), content, True)

    async def modify(self, path: str, content: str) -> None:
        await run_sync(write_file, self.resolve(path), content)

    async def delete(self, path: str) -> None:
        await run_sync(remove_path, self.resolve(path))

    async def create_directory(self, path: str) -> None:
        await run_sync(self.resolve(path).mkdir, parents=True, exist_ok=True)

    async def exists(self, path: str) -> bool:
        return await run_sync(self.resolve(path).exists)

    async def is_file(self, path: str) -> bool:
        return await run_sync(self.resolve(path).is_file)

    async def list_all_files(self, extension: str) -> list[str]:
        return await run_sync(scan_files, self.root, extension)
