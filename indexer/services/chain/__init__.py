"""
Chain client package.

Web3 connection, log polling subscriptions and RPC timeout/retry helpers.
"""

from .client import ChainClient, LogSubscription, NetworkInfo
from .rpc_wrapper import rpc_call_with_retry, run_sync, with_timeout

__all__ = [
    "ChainClient",
    "LogSubscription",
    "NetworkInfo",
    "rpc_call_with_retry",
    "run_sync",
    "with_timeout",
]
