"""Tests for the apply engine, driven through the in-memory VCS."""

from __future__ import annotations

import tempfile
from datetime import datetime

import pytest

from stash2d.apply.engine import SnapshotApplier, open_stash
from stash2d.errors import (
    InvalidStash,
    MergeFatalError,
    TempRepoCreationFailure,
    UsageError,
)
from stash2d.save.writer import SnapshotWriter
from stash2d.schemas.stash import MergeOutcome, StashConfig
from stash2d.vcs.workspace import remove_tree

A_FILES = {
    "keep.txt": b"keep",
    "edit.txt": b"before",
    "gone.txt": b"gone",
    "src/a.py": b"a1",
}
B_FILES = {
    "keep.txt": b"keep",
    "edit.txt": b"after",
    "added.txt": b"added",
    "src/a.py": b"a2",
}


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def stash(fake_vcs, tmp_path):
    fake_vcs.add_revision("A", A_FILES)
    fake_vcs.add_revision("B", B_FILES, parent="A")
    writer = SnapshotWriter(fake_vcs, StashConfig(), clock=lambda: datetime(2026, 1, 2, 3, 4, 5))
    return writer.save("A", "B", tmp_path / "stashes").stash_path


def _worktree(tmp_path, files: dict[str, bytes]):
    root = tmp_path / "work"
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
    root.mkdir(exist_ok=True)
    return root


def _tree(directory):
    return {
        p.relative_to(directory).as_posix(): p.read_bytes()
        for p in directory.rglob("*")
        if p.is_file()
    }


class TestOpenStash:
    def test_valid(self, tmp_path):
        (tmp_path / "Baseline").mkdir()
        (tmp_path / "Code").mkdir()
        layout = open_stash(tmp_path, StashConfig())
        assert layout.baseline_dir == tmp_path / "Baseline"

    def test_missing_code(self, tmp_path):
        (tmp_path / "Baseline").mkdir()
        with pytest.raises(InvalidStash, match="missing Code"):
            open_stash(tmp_path, StashConfig())

    def test_missing_directory(self, tmp_path):
        with pytest.raises(InvalidStash, match="Not a stash"):
            open_stash(tmp_path / "nope", StashConfig())


class TestSnapshotApplier:
    def test_clean_apply_reproduces_code(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, A_FILES)
        result = SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)

        assert result.outcome == MergeOutcome.CLEAN
        assert result.conflicts == []
        assert result.cleanup_error == ""
        assert _tree(worktree) == B_FILES

    def test_temporary_repository_removed(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, A_FILES)
        SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)
        assert list(temp_root.iterdir()) == []

    def test_unrelated_edits_survive(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, {**A_FILES, "keep.txt": b"local", "mine.txt": b"m"})
        result = SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)

        assert result.outcome == MergeOutcome.CLEAN
        assert _tree(worktree) == {**B_FILES, "keep.txt": b"local", "mine.txt": b"m"}

    def test_conflict_outcome(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, {**A_FILES, "edit.txt": b"diverged"})
        result = SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)

        assert result.outcome == MergeOutcome.CONFLICT
        assert result.conflicts == ["edit.txt"]
        assert list(temp_root.iterdir()) == []

    def test_fatal_merge_still_cleans_up(self, fake_vcs, stash, tmp_path, temp_root):
        fake_vcs.forced_outcome = MergeOutcome.FATAL
        worktree = _worktree(tmp_path, A_FILES)

        with pytest.raises(MergeFatalError):
            SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)
        assert len(fake_vcs.called("remove_workspace")) == 2
        assert list(temp_root.iterdir()) == []

    def test_cleanup_failure_is_recorded(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, A_FILES)
        fake_vcs.fail_cleanup = True
        try:
            result = SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)
        finally:
            for leftover in temp_root.iterdir():
                remove_tree(leftover)

        assert result.outcome == MergeOutcome.CLEAN
        assert "Failed to remove" in result.cleanup_error
        assert _tree(worktree) == B_FILES

    def test_cleanup_failure_does_not_mask_fatal(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, A_FILES)
        fake_vcs.fail_cleanup = True
        fake_vcs.forced_outcome = MergeOutcome.FATAL
        try:
            with pytest.raises(MergeFatalError):
                SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)
        finally:
            for leftover in temp_root.iterdir():
                remove_tree(leftover)

    def test_invalid_stash_touches_nothing(self, fake_vcs, tmp_path, temp_root):
        worktree = _worktree(tmp_path, A_FILES)
        with pytest.raises(InvalidStash):
            SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(tmp_path / "missing")
        assert fake_vcs.called("init_workspace") == []
        assert _tree(worktree) == A_FILES

    def test_build_failure_skips_merge(self, fake_vcs, stash, tmp_path, temp_root):
        fake_vcs.fail_on.add("commit_all")
        worktree = _worktree(tmp_path, A_FILES)

        with pytest.raises(TempRepoCreationFailure):
            SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash)
        assert fake_vcs.called("cherry_pick") == []
        assert list(temp_root.iterdir()) == []

    def test_empty_stash_changes_nothing(self, fake_vcs, tmp_path, temp_root):
        fake_vcs.add_revision("A", A_FILES)
        writer = SnapshotWriter(fake_vcs, StashConfig())
        empty = writer.save("A", "A", tmp_path / "stashes").stash_path
        worktree = _worktree(tmp_path, A_FILES)

        result = SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(empty)

        assert result.outcome == MergeOutcome.CLEAN
        assert _tree(worktree) == A_FILES

    def test_subtree_apply(self, fake_vcs, tmp_path, temp_root):
        fake_vcs.add_revision("A", A_FILES)
        fake_vcs.add_revision("B", B_FILES, parent="A")
        stash = SnapshotWriter(fake_vcs, StashConfig()).save(
            "A", "B", tmp_path / "stashes", "src"
        ).stash_path
        worktree = _worktree(tmp_path, A_FILES)

        result = SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash, "src")

        assert result.subtree == "src"
        assert _tree(worktree) == {**A_FILES, "src/a.py": b"a2"}

    def test_bad_subtree(self, fake_vcs, stash, tmp_path, temp_root):
        worktree = _worktree(tmp_path, A_FILES)
        with pytest.raises(UsageError):
            SnapshotApplier(fake_vcs, StashConfig(), worktree).apply(stash, "../x")
