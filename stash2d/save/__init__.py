"""Save mode: capture the change between two revisions as a stash.

Writes the pre-change and post-change content of every touched file
into the Baseline and Code snapshots of a new stash directory.
"""

from stash2d.save.writer import SnapshotWriter

__all__ = ["SnapshotWriter"]
