"""Snapshot writer — orchestrates the save flow.

Resolves ancestry, enumerates changes, creates a timestamped stash
directory and fills its Baseline and Code snapshots.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from stash2d.errors import ExtractionFailure
from stash2d.paths import normalize_subtree
from stash2d.save.ancestry import resolve_order
from stash2d.save.changes import enumerate_changes
from stash2d.save.extract import BlobExtractor
from stash2d.schemas.stash import SaveResult, StashConfig, StashLayout
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)


def stash_dir_name(config: StashConfig, now: datetime) -> str:
    """Directory name of a stash created at *now*."""
    return f"{now.strftime(config.timestamp_format)} - {config.stash_suffix}"


def _create_unique_dir(parent: Path, name: str) -> Path:
    """Create ``parent/name``, appending `` (n)`` if it already exists."""
    parent.mkdir(parents=True, exist_ok=True)
    candidate = parent / name
    counter = 2
    while True:
        try:
            candidate.mkdir()
            return candidate
        except FileExistsError:
            candidate = parent / f"{name} ({counter})"
            counter += 1


class SnapshotWriter:
    """Saves the change between two revisions as a stash directory.

    Synchronous and stateless between calls; every save re-derives the
    change set from the version-control backend.
    """

    def __init__(
        self,
        vcs: VersionControl,
        config: StashConfig,
        clock=datetime.now,
    ) -> None:
        self._vcs = vcs
        self._config = config
        self._clock = clock
        self._extractor = BlobExtractor(vcs)

    def save(
        self,
        first: str,
        second: str,
        destination: Path,
        subtree: str | None = None,
    ) -> SaveResult:
        """Execute the save flow.

        Flow:
        1. Order the revisions as (baseline, code)
        2. Enumerate deleted, added and modified paths
        3. Create ``<destination>/<timestamp> - <suffix>/{Baseline,Code}``
        4. Extract baseline content of deleted + modified paths
        5. Extract code content of added + modified paths

        Nothing is created on disk until steps 1 and 2 have succeeded. A
        failure after step 3 leaves the partial stash in place; callers
        should treat it as unreliable.

        Returns:
            SaveResult audit record.

        Raises:
            UnrelatedRevisions: If the revisions are not ancestry-related.
            ExtractionFailure: If file content cannot be read or written.
            GitCommandError: If a revision cannot be resolved.
        """
        subtree = normalize_subtree(subtree)

        # ── 1. Ancestry ───────────────────────────────────────────
        baseline, code, swapped = resolve_order(self._vcs, first, second)

        # ── 2. Change set ─────────────────────────────────────────
        changes = enumerate_changes(self._vcs, baseline, code, subtree)

        # ── 3. Stash directory ────────────────────────────────────
        try:
            root = _create_unique_dir(
                Path(destination), stash_dir_name(self._config, self._clock())
            )
            layout = StashLayout.for_root(root, self._config)
            layout.baseline_dir.mkdir()
            layout.code_dir.mkdir()
        except OSError as e:
            raise ExtractionFailure(f"Cannot create stash in {destination}: {e}") from e
        logger.info("Writing stash to %s", root)

        # ── 4/5. Snapshots ────────────────────────────────────────
        self._extractor.extract(baseline, subtree, changes.baseline_paths, layout.baseline_dir)
        self._extractor.extract(code, subtree, changes.code_paths, layout.code_dir)

        return SaveResult(
            stash_path=str(root),
            baseline_revision=baseline,
            code_revision=code,
            subtree=subtree,
            swapped=swapped,
            changes=changes,
        )
