"""Merge driver: applies the synthetic change onto the working tree."""

from __future__ import annotations

import logging
from pathlib import Path

from stash2d.errors import GitCommandError, MergeFatalError
from stash2d.schemas.stash import MergeOutcome, MergeReport, StashConfig, TemporaryRepository
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)


class MergeDriver:
    """Cherry-picks a temporary repository's code commit into a working tree.

    Clean and conflicting merges are returned as a MergeReport. A
    conflicted working tree is left as-is for manual resolution.
    """

    def __init__(self, vcs: VersionControl, config: StashConfig) -> None:
        self._vcs = vcs
        self._config = config

    def merge(self, repo: TemporaryRepository, worktree: Path) -> MergeReport:
        """Import *repo*'s history into *worktree* and apply its code commit.

        Raises:
            MergeFatalError: If the import fails or the merge engine
                reports anything other than success or content conflicts.
        """
        try:
            self._vcs.fetch(worktree, repo.path)
        except GitCommandError as e:
            raise MergeFatalError(f"Cannot import temporary repository: {e}") from e

        report = self._vcs.cherry_pick(
            worktree, repo.code_commit, record_commit=self._config.commit_on_apply
        )

        if report.outcome == MergeOutcome.FATAL:
            logger.error("Merge failed: %s", report.detail)
            raise MergeFatalError(f"Merge failed: {report.detail or 'unknown error'}")

        if report.outcome == MergeOutcome.CONFLICT:
            logger.warning("Merge left %d conflicted path(s)", len(report.conflicts))
        else:
            logger.info("Merge applied cleanly")
        return report
