"""Stash schemas for saving and applying two-tree snapshots.

Defines the configuration value threaded through both pipelines, the
changed-file set produced by the enumerator, the on-disk stash layout,
and the audit records returned by save and apply.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Configuration ─────────────────────────────────────────────────


class StashConfig(BaseModel):
    """Naming and behaviour settings for stash2d.

    Loaded from defaults.toml (optionally overlaid by a user file) and
    passed explicitly into the writer, builder, merge driver and applier.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    baseline_dir_name: str = Field(
        default="Baseline", min_length=1, description="Snapshot of pre-change files"
    )
    code_dir_name: str = Field(
        default="Code", min_length=1, description="Snapshot of post-change files"
    )
    stash_suffix: str = Field(
        default="stash2d", min_length=1, description="Fixed suffix of stash directory names"
    )
    timestamp_format: str = Field(
        default="%Y-%m-%d %H.%M.%S",
        description="strftime format for the stash directory timestamp",
    )
    metadata_dir_name: str = Field(
        default=".git", min_length=1, description="Version-control metadata directory"
    )
    temp_prefix: str = Field(
        default="stash2d-", description="Prefix for temporary workspace directories"
    )
    git_executable: str = Field(default="git", description="git binary to invoke")
    command_timeout: int = Field(
        default=300, gt=0, description="Seconds before a git command is abandoned"
    )
    author_name: str = Field(default="stash2d", description="Author of synthetic commits")
    author_email: str = Field(
        default="stash2d@localhost", description="Author email of synthetic commits"
    )
    baseline_message: str = Field(
        default="stash2d baseline", description="Message of the synthetic baseline commit"
    )
    code_message: str = Field(
        default="stash2d code", description="Message of the synthetic code commit"
    )
    commit_on_apply: bool = Field(
        default=False,
        description="Record a commit on apply instead of only updating the working tree",
    )

    @model_validator(mode="after")
    def _distinct_snapshot_dirs(self) -> StashConfig:
        if self.baseline_dir_name == self.code_dir_name:
            raise ValueError("baseline_dir_name and code_dir_name must differ")
        return self


# ── Save ──────────────────────────────────────────────────────────


class ChangeKind(StrEnum):
    """Classification of a changed path between two revisions."""

    DELETED = "deleted"
    ADDED = "added"
    MODIFIED = "modified"


class ChangedFileSet(BaseModel):
    """Paths that differ between two revisions under a subtree filter.

    Paths are relative to the subtree root. Each path belongs to exactly
    one class.
    """

    deleted: list[str] = Field(default_factory=list, description="In baseline only")
    added: list[str] = Field(default_factory=list, description="In code only")
    modified: list[str] = Field(default_factory=list, description="In both, content differs")

    @model_validator(mode="after")
    def _disjoint(self) -> ChangedFileSet:
        seen: set[str] = set()
        for path in [*self.deleted, *self.added, *self.modified]:
            if path in seen:
                raise ValueError(f"path appears in more than one change class: {path}")
            seen.add(path)
        return self

    @property
    def is_empty(self) -> bool:
        return not (self.deleted or self.added or self.modified)

    @property
    def baseline_paths(self) -> list[str]:
        """Paths whose baseline content belongs in the stash."""
        return sorted([*self.deleted, *self.modified])

    @property
    def code_paths(self) -> list[str]:
        """Paths whose code content belongs in the stash."""
        return sorted([*self.added, *self.modified])

    def kind_of(self, path: str) -> ChangeKind | None:
        if path in self.deleted:
            return ChangeKind.DELETED
        if path in self.added:
            return ChangeKind.ADDED
        if path in self.modified:
            return ChangeKind.MODIFIED
        return None


class SaveResult(BaseModel):
    """Audit record for a save operation."""

    stash_path: str = Field(description="Directory of the created stash")
    baseline_revision: str = Field(description="Revision the change starts from")
    code_revision: str = Field(description="Revision the change ends at")
    subtree: str = Field(default="", description="Subtree filter, empty for whole tree")
    swapped: bool = Field(
        default=False, description="Whether the revisions were given descendant-first"
    )
    changes: ChangedFileSet = Field(default_factory=ChangedFileSet)


# ── Stash layout ──────────────────────────────────────────────────


class StashEntry(BaseModel):
    """A path inside a stash and what applying it will do."""

    path: str
    kind: ChangeKind


class StashLayout(BaseModel):
    """The two snapshot directories of a stash on disk."""

    root: Path
    baseline_dir: Path
    code_dir: Path

    @classmethod
    def for_root(cls, root: Path, config: StashConfig) -> StashLayout:
        return cls(
            root=root,
            baseline_dir=root / config.baseline_dir_name,
            code_dir=root / config.code_dir_name,
        )

    def entries(self) -> list[StashEntry]:
        """Classify every stashed path from the directory structure alone.

        Present in both directories means modified, only in the baseline
        means deleted, only in the code means added.
        """
        baseline = _relative_files(self.baseline_dir)
        code = _relative_files(self.code_dir)

        entries: list[StashEntry] = []
        for path in sorted(baseline | code):
            if path in baseline and path in code:
                kind = ChangeKind.MODIFIED
            elif path in baseline:
                kind = ChangeKind.DELETED
            else:
                kind = ChangeKind.ADDED
            entries.append(StashEntry(path=path, kind=kind))
        return entries


def _relative_files(directory: Path) -> set[str]:
    if not directory.is_dir():
        return set()
    return {
        p.relative_to(directory).as_posix()
        for p in directory.rglob("*")
        if p.is_file() or p.is_symlink()
    }


# ── Apply ─────────────────────────────────────────────────────────


class MergeOutcome(StrEnum):
    """Result of merging a stash onto a working tree."""

    CLEAN = "clean"
    CONFLICT = "conflict"
    FATAL = "fatal"


class TemporaryRepository(BaseModel):
    """A throwaway workspace holding the baseline and code commits."""

    path: Path = Field(description="Workspace directory")
    baseline_commit: str = Field(description="Commit reproducing the Baseline tree")
    code_commit: str = Field(description="Child commit reproducing the Code tree")


class MergeReport(BaseModel):
    """What the merge driver observed."""

    outcome: MergeOutcome
    conflicts: list[str] = Field(default_factory=list, description="Unmerged paths")
    detail: str = Field(default="", description="Merge engine diagnostics")


class ApplyResult(BaseModel):
    """Audit record for an apply operation."""

    stash_path: str = Field(description="Stash that was applied")
    subtree: str = Field(default="", description="Subtree filter, empty for whole tree")
    outcome: MergeOutcome = Field(description="Clean or conflicting merge")
    conflicts: list[str] = Field(default_factory=list, description="Paths left conflicted")
    cleanup_error: str = Field(
        default="", description="Temporary repository removal error, if any"
    )
