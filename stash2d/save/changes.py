"""Changed-file enumeration between two revisions.

Each change class is a separate tree diff with its own filter, so the
three lists are re-derived for every save and never cached. Rename
detection is off: a renamed file shows up as a delete plus an add.
"""

from __future__ import annotations

import logging

from stash2d.schemas.stash import ChangedFileSet
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)

# git --diff-filter letters per change class. Type changes count as
# modifications; R and C never occur with rename detection disabled but
# are kept so they would land in the same class.
DELETED_FILTER = "D"
ADDED_FILTER = "A"
MODIFIED_FILTER = "MTRC"


def enumerate_changes(
    vcs: VersionControl, baseline: str, code: str, subtree: str = ""
) -> ChangedFileSet:
    """Partition the paths that differ between *baseline* and *code*.

    Args:
        vcs: Version-control backend to query.
        baseline: Ancestor revision.
        code: Descendant revision.
        subtree: Normalized subtree filter; empty for the whole tree.

    Returns:
        ChangedFileSet with paths relative to *subtree*. An empty set is
        a valid result.
    """
    changes = ChangedFileSet(
        deleted=sorted(vcs.diff_tree(baseline, code, subtree, DELETED_FILTER)),
        added=sorted(vcs.diff_tree(baseline, code, subtree, ADDED_FILTER)),
        modified=sorted(vcs.diff_tree(baseline, code, subtree, MODIFIED_FILTER)),
    )
    logger.info(
        "Changes under '%s': %d deleted, %d added, %d modified",
        subtree or ".",
        len(changes.deleted),
        len(changes.added),
        len(changes.modified),
    )
    return changes
