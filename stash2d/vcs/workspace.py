"""Removal of throwaway workspaces.

git stores packed objects read-only, which makes a plain rmtree fail on
some platforms. Metadata is forced writable before the tree is removed.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path

from stash2d.errors import CleanupFailure

logger = logging.getLogger(__name__)


def _make_writable(path: Path) -> None:
    mode = os.lstat(path).st_mode
    if stat.S_ISLNK(mode):
        return
    os.chmod(path, stat.S_IMODE(mode) | stat.S_IWRITE | stat.S_IREAD)


def force_writable(root: Path) -> None:
    """Add owner read/write permission to *root* and everything below it."""
    if not root.exists():
        return
    _make_writable(root)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            _make_writable(Path(dirpath) / name)


def remove_tree(path: Path, metadata_dir_name: str = ".git") -> None:
    """Delete a workspace directory, metadata included.

    A missing directory is not an error.

    Raises:
        CleanupFailure: If the directory could not be removed.
    """
    if not path.exists():
        return

    try:
        force_writable(path / metadata_dir_name)
        shutil.rmtree(path)
    except OSError as e:
        raise CleanupFailure(f"Failed to remove {path}: {e}") from e

    logger.debug("Removed workspace %s", path)
