"""Apply engine — orchestrates the full apply flow.

Builds the temporary repository from a stash, merges its change onto
the working tree, and always removes the temporary repository
afterwards. This is a synchronous engine.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stash2d.apply.builder import TempRepoBuilder
from stash2d.apply.merge import MergeDriver
from stash2d.errors import CleanupFailure, InvalidStash
from stash2d.paths import normalize_subtree
from stash2d.schemas.stash import ApplyResult, StashConfig, StashLayout, TemporaryRepository
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)


def open_stash(path: Path, config: StashConfig) -> StashLayout:
    """Locate the snapshot directories of a stash.

    Raises:
        InvalidStash: If *path* lacks either snapshot directory.
    """
    layout = StashLayout.for_root(Path(path), config)
    missing = [
        d.name for d in (layout.baseline_dir, layout.code_dir) if not d.is_dir()
    ]
    if missing:
        raise InvalidStash(f"Not a stash: {path} (missing {', '.join(missing)})")
    return layout


class SnapshotApplier:
    """Applies a stash onto a working tree with a three-way merge.

    Args:
        vcs: Version-control backend.
        config: Naming and merge settings.
        worktree: Working tree receiving the change.
    """

    def __init__(self, vcs: VersionControl, config: StashConfig, worktree: Path) -> None:
        self._vcs = vcs
        self._config = config
        self._worktree = Path(worktree)
        self._builder = TempRepoBuilder(vcs, config)
        self._driver = MergeDriver(vcs, config)

    def apply(self, stash_path: Path, subtree: str | None = None) -> ApplyResult:
        """Execute the apply flow.

        Flow:
        1. Validate the stash layout
        2. Build the temporary repository (nothing to clean up on failure)
        3. Merge the code commit onto the working tree
        4. Remove the temporary repository, whatever the merge did

        Returns:
            ApplyResult with a clean or conflict outcome. A cleanup
            failure is recorded in ``cleanup_error``.

        Raises:
            InvalidStash: If the stash layout is incomplete.
            TempRepoCreationFailure: If the temporary repository cannot be built.
            MergeFatalError: If the merge machinery fails.
        """
        subtree = normalize_subtree(subtree)
        layout = open_stash(Path(stash_path), self._config)

        repo = self._builder.build(layout, subtree)

        try:
            report = self._driver.merge(repo, self._worktree)
        finally:
            cleanup_error = self._cleanup(repo)

        return ApplyResult(
            stash_path=str(layout.root),
            subtree=subtree,
            outcome=report.outcome,
            conflicts=report.conflicts,
            cleanup_error=cleanup_error,
        )

    def _cleanup(self, repo: TemporaryRepository) -> str:
        """Remove the temporary repository; return an error message or ''."""
        try:
            self._vcs.remove_workspace(repo.path)
        except CleanupFailure as e:
            logger.warning("Temporary repository not removed: %s", e)
            return str(e)
        return ""
