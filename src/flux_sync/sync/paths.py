"""Path rules shared by every sync component.

All paths handled by the engine are vault-relative POSIX strings such as
``Notes/today.md``. ``normalize_path`` is the single place that turns host
or server input into that form, so timer keys and snapshot paths compare
equal.
"""

from __future__ import annotations

from pathlib import PurePosixPath

TRACKED_EXTENSION = "md"


def normalize_path(path: str) -> str:
    """Return the canonical vault-relative form of *path*.

    Backslashes become slashes, empty and ``.`` segments are dropped and
    leading/trailing slashes are removed.

    Raises:
        ValueError: If the path is empty or climbs out of the vault.
    """
    parts = [
        part
        for part in path.replace("\\", "/").split("/")
        if part not in ("", ".")
    ]
    if not parts:
        raise ValueError(f"Empty path: {path!r}")
    if ".." in parts:
        raise ValueError(f"Path escapes the vault: {path!r}")
    return "/".join(parts)


def normalize_folder(folder: str) -> str:
    return (folder or "").strip().replace("\\", "/").strip("/")


def in_scope(path: str, folder: str) -> bool:
    """True if *path* is *folder* itself or lies beneath it.

    An empty folder means the whole vault is in scope.
    """
    folder = normalize_folder(folder)
    return not folder or path == folder or path.startswith(folder + "/")


def is_tracked(path: str, extension: str = TRACKED_EXTENSION) -> bool:
    return PurePosixPath(path).suffix == f".{extension}"


def is_eligible(path: str, folder: str) -> bool:
    """True if *path* is a tracked note inside the synced folder."""
    return is_tracked(path) and in_scope(path, folder)


def parent_directories(path: str) -> list[str]:
    """Ancestor directories of *path*, outermost first.

    >>> parent_directories("a/b/c.md")
    ['a', 'a/b']
    """
    parents = PurePosixPath(path).parents
    return [str(p) for p in reversed(parents) if str(p) != "."]
