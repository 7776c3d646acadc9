"""Apply mode: merge a stash onto a working tree.

Replays the stash as a throwaway two-commit repository and cherry-picks
the change, so conflicts surface exactly as in a regular git merge.
"""

from stash2d.apply.engine import SnapshotApplier

__all__ = ["SnapshotApplier"]
