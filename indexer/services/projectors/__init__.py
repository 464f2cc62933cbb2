"""
Projectors.

Each projector owns a disjoint set of contract events and aggregate
documents and can be started independently.
"""

from .base import BaseProjector
from .farm import FarmProjector
from .launchpad import LaunchpadProjector
from .leaderboard import LeaderboardProjector

__all__ = [
    "BaseProjector",
    "FarmProjector",
    "LaunchpadProjector",
    "LeaderboardProjector",
]
