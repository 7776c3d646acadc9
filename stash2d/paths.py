"""Subtree filter normalization."""

from __future__ import annotations

from pathlib import PurePosixPath

from stash2d.errors import UsageError


def normalize_subtree(path: str | None) -> str:
    """Normalize a subtree filter to a forward-slash relative path.

    Returns an empty string for the whole tree. Absolute paths and paths
    that climb out of the tree with ``..`` are rejected.

    Raises:
        UsageError: If the path is not a relative path inside the tree.
    """
    if not path:
        return ""

    raw = path.replace("\\", "/")
    if raw.startswith("/"):
        raise UsageError(f"Subtree path must be relative: {path}")

    parts = [p for p in PurePosixPath(raw).parts if p not in ("", ".")]
    if ".." in parts:
        raise UsageError(f"Subtree path must not contain '..': {path}")

    return "/".join(parts)


def join_subtree(subtree: str, relpath: str) -> str:
    """Join a normalized subtree and a path relative to it."""
    if not subtree:
        return relpath
    return f"{subtree}/{relpath}"


def strip_subtree(subtree: str, fullpath: str) -> str | None:
    """Return *fullpath* relative to *subtree*, or None if it lies outside."""
    if not subtree:
        return fullpath
    prefix = f"{subtree}/"
    if fullpath.startswith(prefix):
        return fullpath[len(prefix):]
    return None


def is_safe_relpath(relpath: str) -> bool:
    """Whether *relpath* stays inside the directory it is joined to."""
    if not relpath or relpath.startswith("/"):
        return False
    parts = PurePosixPath(relpath).parts
    return ".." not in parts and "." not in parts
