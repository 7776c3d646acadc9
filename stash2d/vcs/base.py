"""Abstract base class for the host version-control system.

Defines the VersionControl interface the save and apply pipelines drive.
The pipelines interact exclusively through this interface, so they can
be exercised against an in-memory fake without a git binary.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from stash2d.schemas.stash import MergeReport


class VersionControl(ABC):
    """Narrow surface of a version-control system used by stash2d.

    Read operations (ancestry, diff, archive) act on the repository the
    instance was created for. Workspace operations take an explicit
    directory, since the apply pipeline builds repositories of its own.
    """

    # ── Read-only queries on the working repository ───────────

    @abstractmethod
    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Whether *ancestor* is reachable from *descendant*.

        A revision counts as its own ancestor.
        """

    @abstractmethod
    def diff_tree(
        self, baseline: str, code: str, subtree: str, diff_filter: str
    ) -> list[str]:
        """List paths changed between two revisions.

        Args:
            baseline: Revision the change starts from.
            code: Revision the change ends at.
            subtree: Normalized subtree filter; empty for the whole tree.
            diff_filter: git --diff-filter letters selecting change kinds.

        Returns:
            Paths relative to *subtree*, rename detection disabled.
        """

    @abstractmethod
    def archive(self, revision: str, subtree: str, paths: list[str]) -> dict[str, bytes]:
        """Read file contents at a revision.

        Args:
            revision: Revision to read from.
            subtree: Normalized subtree filter; empty for the whole tree.
            paths: Paths relative to *subtree*.

        Returns:
            Mapping of each requested relative path to its bytes.
        """

    # ── Workspace operations ──────────────────────────────────

    @abstractmethod
    def init_workspace(self, path: Path) -> None:
        """Create an empty repository in *path*."""

    @abstractmethod
    def commit_all(self, path: Path, message: str) -> str:
        """Stage every file in *path* and commit, allowing an empty commit.

        Returns:
            The new commit's identifier.
        """

    @abstractmethod
    def fetch(self, path: Path, source: Path) -> None:
        """Import *source*'s history into *path* without checking it out."""

    @abstractmethod
    def cherry_pick(self, path: Path, commit: str, *, record_commit: bool) -> MergeReport:
        """Apply *commit*'s change onto the tree at *path*.

        Empty changes are allowed. Content conflicts are reported in the
        returned MergeReport; anything else unrecognised must be reported
        as MergeOutcome.FATAL.
        """

    @abstractmethod
    def remove_workspace(self, path: Path) -> None:
        """Delete *path*, including read-only version-control metadata."""
