"""git implementation of the VersionControl interface.

Uses subprocess directly, like the rest of stash2d's git handling, so no
git bindings are required. Output is read as bytes and decoded with the
filesystem encoding, since file contents and paths are not necessarily
text.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from stash2d.errors import GitCommandError
from stash2d.paths import join_subtree, strip_subtree
from stash2d.schemas.stash import MergeOutcome, MergeReport, StashConfig
from stash2d.vcs.base import VersionControl
from stash2d.vcs.workspace import remove_tree

logger = logging.getLogger(__name__)

# Gitlinks (submodules) carry no file content.
_GITLINK_MODE = "160000"

# Bounds how much blob content a single cat-file call holds in memory.
_BATCH_SIZE = 500

# Variables that would point git at a repository other than cwd.
_REPO_ENV_VARS = ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_OBJECT_DIRECTORY")


def classify_merge_exit(returncode: int, conflicts: list[str]) -> MergeOutcome:
    """Map a cherry-pick exit status to a merge outcome.

    Status 1 means a content conflict only when unmerged paths exist.
    Every other non-zero status is fatal.
    """
    if returncode == 0:
        return MergeOutcome.CLEAN
    if returncode == 1 and conflicts:
        return MergeOutcome.CONFLICT
    return MergeOutcome.FATAL


class GitBackend(VersionControl):
    """Drives the git command line.

    Args:
        repo_dir: The caller's working tree. Read queries and the merge
            run here.
        config: Supplies the git executable, timeout and commit identity.
    """

    def __init__(self, repo_dir: Path, config: StashConfig | None = None) -> None:
        self._repo_dir = Path(repo_dir)
        self._config = config or StashConfig()

    @property
    def repo_dir(self) -> Path:
        return self._repo_dir

    def _run(
        self,
        *args: str,
        cwd: Path | None = None,
        check: bool = True,
        input: bytes | None = None,
        isolated: bool = False,
    ) -> subprocess.CompletedProcess:
        """Run a git command and return the result.

        Args:
            cwd: Directory to run in; defaults to the working tree.
            check: Raise GitCommandError on a non-zero exit status.
            input: Bytes fed to standard input.
            isolated: Drop environment variables that redirect git to
                another repository. Used for temporary workspaces.
        """
        cmd = [self._config.git_executable, *args]
        env = None
        if isolated:
            env = {k: v for k, v in os.environ.items() if k not in _REPO_ENV_VARS}

        logger.debug("Running git command: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd or self._repo_dir),
                input=input,
                capture_output=True,
                env=env,
                timeout=self._config.command_timeout,
            )
        except FileNotFoundError as e:
            raise GitCommandError(cmd, 127, f"git executable not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(
                cmd, -1, f"timed out after {self._config.command_timeout}s"
            ) from e

        if check and result.returncode != 0:
            stderr = os.fsdecode(result.stderr)
            logger.debug("git stderr: %s", stderr)
            raise GitCommandError(cmd, result.returncode, stderr)
        return result

    # ── Read-only queries ─────────────────────────────────────

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._run("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitCommandError(
            [self._config.git_executable, "merge-base", "--is-ancestor", ancestor, descendant],
            result.returncode,
            os.fsdecode(result.stderr),
        )

    def diff_tree(
        self, baseline: str, code: str, subtree: str, diff_filter: str
    ) -> list[str]:
        args = [
            "--literal-pathspecs",
            "diff-tree",
            "-r",
            "-z",
            "--no-renames",
            f"--diff-filter={diff_filter}",
            baseline,
            code,
        ]
        if subtree:
            args += ["--", subtree]
        output = self._run(*args).stdout

        # Raw records: ":<mode> <mode> <sha> <sha> <status>\0<path>\0"
        fields = [os.fsdecode(f) for f in output.split(b"\0")]
        paths: list[str] = []
        for header, fullpath in zip(fields[0::2], fields[1::2]):
            src_mode, dst_mode = header.lstrip(":").split(" ")[:2]
            if _GITLINK_MODE in (src_mode, dst_mode):
                logger.debug("Skipping submodule entry: %s", fullpath)
                continue
            relpath = strip_subtree(subtree, fullpath)
            if relpath:
                paths.append(relpath)
        return paths

    def archive(self, revision: str, subtree: str, paths: list[str]) -> dict[str, bytes]:
        blobs: dict[str, bytes] = {}
        for start in range(0, len(paths), _BATCH_SIZE):
            batch = paths[start:start + _BATCH_SIZE]
            blobs.update(self._read_blobs(revision, subtree, batch))
        return blobs

    def _read_blobs(self, revision: str, subtree: str, paths: list[str]) -> dict[str, bytes]:
        """Read a batch of blobs through a single ``cat-file --batch``."""
        if not paths:
            return {}

        request = b"".join(
            os.fsencode(f"{revision}:{join_subtree(subtree, p)}") + b"\n" for p in paths
        )
        output = self._run("cat-file", "--batch", input=request).stdout

        blobs: dict[str, bytes] = {}
        pos = 0
        for relpath in paths:
            eol = output.index(b"\n", pos)
            header = output[pos:eol].split(b" ")
            pos = eol + 1
            # "<name> missing" / "<name> ambiguous" carry no content; <name>
            # may itself contain spaces.
            if header[-1] in (b"missing", b"ambiguous"):
                logger.debug("Blob not found: %s:%s", revision, relpath)
                continue
            _, obj_type, size = header
            content = output[pos:pos + int(size)]
            pos += int(size) + 1
            if obj_type == b"blob":
                blobs[relpath] = content
        return blobs

    # ── Workspace operations ──────────────────────────────────

    def init_workspace(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)
        self._run("init", "--quiet", cwd=path, isolated=True)

    def commit_all(self, path: Path, message: str) -> str:
        # Ignore rules must not drop snapshot files.
        self._run(
            "-c", "core.autocrlf=false", "add", "--all", "--force", cwd=path, isolated=True
        )
        self._run(
            "-c", f"user.name={self._config.author_name}",
            "-c", f"user.email={self._config.author_email}",
            "-c", "commit.gpgsign=false",
            "commit", "--quiet", "--allow-empty", "--no-verify", "-m", message,
            cwd=path,
            isolated=True,
        )
        sha = os.fsdecode(self._run("rev-parse", "HEAD", cwd=path, isolated=True).stdout)
        return sha.strip()

    def fetch(self, path: Path, source: Path) -> None:
        self._run("fetch", "--quiet", "--no-tags", str(source), "HEAD", cwd=path)

    def cherry_pick(self, path: Path, commit: str, *, record_commit: bool) -> MergeReport:
        if record_commit:
            args = ["cherry-pick", "--allow-empty", "--keep-redundant-commits", commit]
        else:
            args = ["cherry-pick", "--no-commit", commit]

        result = self._run(*args, cwd=path, check=False)
        detail = os.fsdecode(result.stderr).strip()

        conflicts = self._unmerged_paths(path) if result.returncode == 1 else []
        outcome = classify_merge_exit(result.returncode, conflicts)
        if outcome == MergeOutcome.FATAL:
            logger.debug("cherry-pick exited %d: %s", result.returncode, detail)
        return MergeReport(outcome=outcome, conflicts=conflicts, detail=detail)

    def _unmerged_paths(self, path: Path) -> list[str]:
        output = self._run("ls-files", "--unmerged", "-z", cwd=path).stdout
        # "<mode> <sha> <stage>\t<path>" per stage
        paths = {
            os.fsdecode(entry.split(b"\t", 1)[1])
            for entry in output.split(b"\0")
            if b"\t" in entry
        }
        return sorted(paths)

    def remove_workspace(self, path: Path) -> None:
        remove_tree(path, self._config.metadata_dir_name)
