"""stash2d: save and re-apply changes between revisions as two-tree stashes."""

__version__ = "0.1.0"

from stash2d.apply import SnapshotApplier
from stash2d.save import SnapshotWriter
from stash2d.schemas.stash import ApplyResult, MergeOutcome, SaveResult, StashConfig

__all__ = [
    "ApplyResult",
    "MergeOutcome",
    "SaveResult",
    "SnapshotApplier",
    "SnapshotWriter",
    "StashConfig",
]
