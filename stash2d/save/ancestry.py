"""Revision ancestry resolution for save.

A stash records a linear change, so the two revisions must be related.
Revisions given descendant-first are swapped rather than rejected.
"""

from __future__ import annotations

import logging

from stash2d.errors import UnrelatedRevisions
from stash2d.vcs.base import VersionControl

logger = logging.getLogger(__name__)


def resolve_order(vcs: VersionControl, first: str, second: str) -> tuple[str, str, bool]:
    """Order two revisions as (baseline, code).

    Args:
        vcs: Version-control backend to query.
        first: Revision given first by the caller.
        second: Revision given second by the caller.

    Returns:
        Tuple of (baseline, code, swapped). ``swapped`` is True when the
        caller gave the descendant first.

    Raises:
        UnrelatedRevisions: If neither revision is an ancestor of the other.
    """
    if vcs.is_ancestor(first, second):
        return first, second, False

    if vcs.is_ancestor(second, first):
        logger.info("Revisions given descendant-first; using %s as baseline", second)
        return second, first, True

    raise UnrelatedRevisions(
        f"Neither {first} nor {second} is an ancestor of the other"
    )
