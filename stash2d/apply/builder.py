"""Temporary repository construction for apply.

Replays a stash as a two-commit history in a throwaway workspace: the
Baseline snapshot as the first commit, the Code snapshot as its child.
Cherry-picking the child then performs a real three-way merge with the
Baseline as merge base.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path, PurePosixPath

from stash2d.errors import CleanupFailure, GitCommandError, TempRepoCreationFailure
from stash2d.schemas.stash import StashConfig, StashLayout, TemporaryRepository
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)


class TempRepoBuilder:
    """Builds the two-commit repository a merge is driven from."""

    def __init__(self, vcs: VersionControl, config: StashConfig) -> None:
        self._vcs = vcs
        self._config = config

    def build(self, layout: StashLayout, subtree: str = "") -> TemporaryRepository:
        """Build a TemporaryRepository from a stash.

        Both snapshots are placed below *subtree* so the synthetic paths
        line up with the working tree's.

        Raises:
            TempRepoCreationFailure: On any I/O or git error. Workspaces
                created so far are removed on a best-effort basis.
        """
        first: Path | None = None
        second: Path | None = None
        try:
            first = self._new_workspace()
            self._vcs.init_workspace(first)
            self._populate(layout.baseline_dir, first, subtree)
            baseline_commit = self._vcs.commit_all(first, self._config.baseline_message)

            # Moving the metadata makes the second commit a child of the first.
            second = self._new_workspace()
            meta = self._config.metadata_dir_name
            shutil.move(str(first / meta), str(second / meta))
            self._populate(layout.code_dir, second, subtree)
            code_commit = self._vcs.commit_all(second, self._config.code_message)
        except (GitCommandError, OSError) as e:
            for workspace in (first, second):
                if workspace is not None:
                    self._discard(workspace)
            raise TempRepoCreationFailure(f"Cannot build temporary repository: {e}") from e

        self._discard(first)
        logger.info(
            "Built temporary repository %s (baseline %s, code %s)",
            second,
            baseline_commit[:12],
            code_commit[:12],
        )
        return TemporaryRepository(
            path=second, baseline_commit=baseline_commit, code_commit=code_commit
        )

    def _new_workspace(self) -> Path:
        return Path(tempfile.mkdtemp(prefix=self._config.temp_prefix))

    @staticmethod
    def _populate(snapshot: Path, workspace: Path, subtree: str) -> None:
        """Copy a snapshot directory into *workspace* below *subtree*."""
        target = workspace.joinpath(*PurePosixPath(subtree).parts) if subtree else workspace
        target.mkdir(parents=True, exist_ok=True)
        shutil.copytree(snapshot, target, symlinks=True, dirs_exist_ok=True)

    def _discard(self, workspace: Path) -> None:
        try:
            self._vcs.remove_workspace(workspace)
        except CleanupFailure as e:
            logger.warning("Could not remove temporary workspace: %s", e)
