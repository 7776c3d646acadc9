"""Version-control interface and its git implementation."""

from stash2d.vcs.base import VersionControl
from stash2d.vcs.git import GitBackend

__all__ = ["GitBackend", "VersionControl"]
