"""Blob extraction into a snapshot directory."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

from stash2d.errors import ExtractionFailure, GitCommandError
from stash2d.paths import is_safe_relpath
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)


class BlobExtractor:
    """Writes exact file contents at a revision into a directory.

    Only the requested paths are written. There is no rollback: files
    written before a failure stay on disk.
    """

    def __init__(self, vcs: VersionControl) -> None:
        self._vcs = vcs

    def extract(
        self, revision: str, subtree: str, paths: list[str], destination: Path
    ) -> list[Path]:
        """Write each of *paths* at *revision* below *destination*.

        Args:
            revision: Revision to read from.
            subtree: Normalized subtree filter the paths are relative to.
            paths: Relative paths to extract.
            destination: Directory receiving the files.

        Returns:
            The files written.

        Raises:
            ExtractionFailure: If the revision or a path cannot be read,
                or a file cannot be written.
        """
        if not paths:
            return []

        unsafe = [p for p in paths if not is_safe_relpath(p)]
        if unsafe:
            raise ExtractionFailure(f"Refusing to extract paths outside the stash: {unsafe}")

        try:
            blobs = self._vcs.archive(revision, subtree, paths)
        except GitCommandError as e:
            raise ExtractionFailure(f"Cannot read {revision}: {e}") from e

        missing = [p for p in paths if p not in blobs]
        if missing:
            raise ExtractionFailure(
                f"Paths not readable at {revision}: {', '.join(missing)}"
            )

        written: list[Path] = []
        for relpath in paths:
            target = destination.joinpath(*PurePosixPath(relpath).parts)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(blobs[relpath])
            except OSError as e:
                raise ExtractionFailure(f"Cannot write {target}: {e}") from e
            written.append(target)

        logger.debug("Extracted %d file(s) at %s into %s", len(written), revision, destination)
        return written
