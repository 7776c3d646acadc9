"""Shared fixtures: throwaway git repositories and an in-memory VCS fake."""

from __future__ import annotations

import stat
import subprocess
from pathlib import Path

import pytest

from stash2d.errors import CleanupFailure, GitCommandError
from stash2d.paths import join_subtree, strip_subtree
from stash2d.schemas.stash import MergeOutcome, MergeReport
from stash2d.vcs.base import VersionControl
from stash2d.vcs.workspace import remove_tree

# ── Real git repositories ─────────────────────────────────────────


def git(repo: Path, *args: str) -> str:
    """Run git in *repo* and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


class GitRepo:
    """A temporary repository with helpers to commit file states."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "--quiet")
        git(path, "config", "user.email", "test@test.com")
        git(path, "config", "user.name", "Test")
        git(path, "config", "commit.gpgsign", "false")

    def git(self, *args: str) -> str:
        return git(self.path, *args)

    def write(self, relpath: str, content: str | bytes) -> None:
        target = self.path / relpath
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content)

    def delete(self, relpath: str) -> None:
        (self.path / relpath).unlink()

    def commit(self, message: str) -> str:
        git(self.path, "add", "--all")
        git(self.path, "commit", "--quiet", "--allow-empty", "-m", message)
        return git(self.path, "rev-parse", "HEAD").strip()

    def checkout(self, ref: str) -> None:
        git(self.path, "checkout", "--quiet", ref)

    def files(self) -> dict[str, bytes]:
        """Working tree contents, metadata excluded."""
        return {
            p.relative_to(self.path).as_posix(): p.read_bytes()
            for p in self.path.rglob("*")
            if p.is_file() and ".git" not in p.relative_to(self.path).parts
        }

    def tree_files(self, ref: str) -> dict[str, bytes]:
        """Committed contents at *ref*."""
        names = git(self.path, "ls-tree", "-r", "--name-only", ref).splitlines()
        return {
            name: subprocess.run(
                ["git", "show", f"{ref}:{name}"],
                cwd=str(self.path),
                capture_output=True,
                check=True,
            ).stdout
            for name in names
        }


@pytest.fixture
def make_repo(tmp_path):
    """Factory creating named git repositories under tmp_path."""

    def _make(name: str = "repo") -> GitRepo:
        return GitRepo(tmp_path / name)

    return _make


# ── In-memory fake ────────────────────────────────────────────────


class FakeVcs(VersionControl):
    """VersionControl fake backed by dictionaries and the real filesystem.

    Revisions are whole-tree dicts of path -> bytes with a single parent.
    Workspaces are real directories whose metadata directory holds a
    HEAD file and a read-only object file. Cherry-pick performs a
    file-level three-way merge.
    """

    def __init__(self) -> None:
        self.revisions: dict[str, dict[str, bytes]] = {}
        self.parents: dict[str, str | None] = {}
        self.commits: dict[str, dict[str, bytes]] = {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()
        self.forced_outcome: MergeOutcome | None = None
        self.fail_cleanup = False
        self.workspaces: list[Path] = []

    # ── History setup ─────────────────────────────────────────

    def add_revision(self, name: str, files: dict[str, bytes], parent: str | None = None) -> str:
        self.revisions[name] = dict(files)
        self.parents[name] = parent
        return name

    def _check(self, op: str) -> None:
        if op in self.fail_on:
            raise GitCommandError(["git", op], 128, f"fatal: {op} failed")

    def _tree(self, revision: str) -> dict[str, bytes]:
        if revision not in self.revisions:
            raise GitCommandError(["git", "rev-parse", revision], 128, "unknown revision")
        return self.revisions[revision]

    # ── Queries ───────────────────────────────────────────────

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        self.calls.append(("is_ancestor", ancestor, descendant))
        self._tree(ancestor)
        self._tree(descendant)
        current: str | None = descendant
        while current is not None:
            if current == ancestor:
                return True
            current = self.parents[current]
        return False

    def diff_tree(self, baseline: str, code: str, subtree: str, diff_filter: str) -> list[str]:
        self.calls.append(("diff_tree", baseline, code, subtree, diff_filter))
        self._check("diff_tree")
        old, new = self._tree(baseline), self._tree(code)
        paths: list[str] = []
        for fullpath in sorted(set(old) | set(new)):
            relpath = strip_subtree(subtree, fullpath)
            if not relpath:
                continue
            if fullpath not in new:
                status = "D"
            elif fullpath not in old:
                status = "A"
            elif old[fullpath] != new[fullpath]:
                status = "M"
            else:
                continue
            if status in diff_filter:
                paths.append(relpath)
        return paths

    def archive(self, revision: str, subtree: str, paths: list[str]) -> dict[str, bytes]:
        self.calls.append(("archive", revision, subtree, list(paths)))
        self._check("archive")
        tree = self._tree(revision)
        return {
            p: tree[join_subtree(subtree, p)]
            for p in paths
            if join_subtree(subtree, p) in tree
        }

    # ── Workspaces ────────────────────────────────────────────

    def init_workspace(self, path: Path) -> None:
        self.calls.append(("init_workspace", path))
        self._check("init_workspace")
        self.workspaces.append(path)
        meta = path / ".git"
        (meta / "objects").mkdir(parents=True)
        packed = meta / "objects" / "pack"
        packed.write_bytes(b"packed")
        packed.chmod(stat.S_IREAD)
        (meta / "objects").chmod(stat.S_IREAD | stat.S_IEXEC)
        (meta / "HEAD").write_text("")

    def _snapshot(self, path: Path) -> dict[str, bytes]:
        return {
            p.relative_to(path).as_posix(): p.read_bytes()
            for p in path.rglob("*")
            if p.is_file() and ".git" not in p.relative_to(path).parts
        }

    def commit_all(self, path: Path, message: str) -> str:
        self.calls.append(("commit_all", path, message))
        self._check("commit_all")
        head = path / ".git" / "HEAD"
        parent = head.read_text() or None
        sha = f"commit{len(self.commits) + 1}"
        self.commits[sha] = self._snapshot(path)
        self.parents[sha] = parent
        head.write_text(sha)
        return sha

    def fetch(self, path: Path, source: Path) -> None:
        self.calls.append(("fetch", path, source))
        self._check("fetch")

    def cherry_pick(self, path: Path, commit: str, *, record_commit: bool) -> MergeReport:
        self.calls.append(("cherry_pick", path, commit, record_commit))
        if self.forced_outcome is not None:
            return MergeReport(outcome=self.forced_outcome, detail="forced")

        theirs = self.commits[commit]
        base = self.commits.get(self.parents[commit] or "", {})
        ours = self._snapshot(path)

        conflicts: list[str] = []
        for name in sorted(set(base) | set(theirs)):
            if base.get(name) == theirs.get(name):
                continue
            if ours.get(name) == theirs.get(name):
                continue
            if ours.get(name) != base.get(name):
                conflicts.append(name)
                continue
            target = path / name
            if name in theirs:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(theirs[name])
            else:
                target.unlink()

        if conflicts:
            return MergeReport(outcome=MergeOutcome.CONFLICT, conflicts=conflicts)
        return MergeReport(outcome=MergeOutcome.CLEAN)

    def remove_workspace(self, path: Path) -> None:
        self.calls.append(("remove_workspace", path))
        if self.fail_cleanup:
            raise CleanupFailure(f"Failed to remove {path}: permission denied")
        remove_tree(path)

    def called(self, op: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == op]


@pytest.fixture
def fake_vcs():
    return FakeVcs()
