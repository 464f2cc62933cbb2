"""
Event decoder package.

Events-only ABIs for the launchpad, farm and leaderboard contracts and the
decoder turning raw logs into typed event records.
"""

from .abis import FARM_ABI, LAUNCHPAD_ABI, LEADERBOARD_ABI, ContractKind
from .event_decoder import DecodedEvent, EventDecoder, event_signature, event_topic

__all__ = [
    "ContractKind",
    "DecodedEvent",
    "EventDecoder",
    "LAUNCHPAD_ABI",
    "FARM_ABI",
    "LEADERBOARD_ABI",
    "event_signature",
    "event_topic",
]
