"""Error taxonomy for stash2d.

Every failure the save and apply pipelines can report derives from
Stash2dError, so the CLI can map them to a single exit status. Merge
conflicts are deliberately absent: they are an outcome, not an error.
"""

from __future__ import annotations


class Stash2dError(Exception):
    """Base class for all stash2d errors."""


class UsageError(Stash2dError):
    """Malformed invocation, e.g. a subtree path escaping the tree."""


class ConfigError(Stash2dError):
    """Configuration file missing or invalid."""


class GitCommandError(Stash2dError):
    """A git command exited with an unexpected status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"git command failed ({returncode}): {' '.join(args)}"
        if self.stderr:
            message = f"{message}\n{self.stderr}"
        super().__init__(message)


class UnrelatedRevisions(Stash2dError):
    """Neither revision is an ancestor of the other."""


class ExtractionFailure(Stash2dError):
    """A blob could not be read from a revision or written to disk."""


class InvalidStash(Stash2dError):
    """A directory does not have the Baseline/Code stash layout."""


class TempRepoCreationFailure(Stash2dError):
    """The throwaway two-commit repository could not be built."""


class MergeFatalError(Stash2dError):
    """The merge machinery failed for a reason other than a content conflict."""


class CleanupFailure(Stash2dError):
    """A temporary workspace could not be removed."""
