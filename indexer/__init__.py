"""
CthuCoin Indexer.

Mirrors launchpad, farm and leaderboard contract events into Firestore.
"""

__version__ = "0.1.0"
