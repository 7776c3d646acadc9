"""stash2d schema definitions.

Pydantic v2 models shared by the save and apply pipelines.
"""

from stash2d.schemas.stash import (
    ApplyResult,
    ChangedFileSet,
    ChangeKind,
    MergeOutcome,
    MergeReport,
    SaveResult,
    StashConfig,
    StashEntry,
    StashLayout,
    TemporaryRepository,
)

__all__ = [
    "ApplyResult",
    "ChangeKind",
    "ChangedFileSet",
    "MergeOutcome",
    "MergeReport",
    "SaveResult",
    "StashConfig",
    "StashEntry",
    "StashLayout",
    "TemporaryRepository",
]
