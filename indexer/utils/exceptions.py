"""
Exception handling utilities.

Defines categorized exception types for proper error handling.
"""

from web3.exceptions import Web3Exception


class IndexerError(Exception):
    """Base exception for indexer errors."""
    pass


class DecodeError(IndexerError):
    """Raised when a raw log cannot be decoded into a known event."""
    pass


class StoreError(IndexerError):
    """Raised when an aggregate store operation fails."""
    pass


class ConnectivityError(IndexerError):
    """Raised when the initial network identity check fails."""
    pass


class ChainError(IndexerError):
    """Raised when a blockchain RPC call fails after all retries."""
    pass


class ChainTimeoutError(ChainError):
    """Raised when a blockchain RPC call times out."""
    pass


# Exception categories based on handling strategy

# Must log but can continue - per-event failures
MUST_LOG = (
    DecodeError,       # Malformed or unrecognized log
    StoreError,        # Store write lost, no retry queue
    ChainError,        # Poll failed, retried next tick
    Web3Exception,     # Raw RPC errors
)

# Fatal - process exits non-zero
FATAL = (
    ConnectivityError,
)


def must_log(exc: BaseException) -> bool:
    """
    Check if exception must be logged and processing continued.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a recoverable per-event failure
    """
    return isinstance(exc, MUST_LOG)


def is_fatal(exc: BaseException) -> bool:
    """
    Check if exception must terminate the process.

    Args:
        exc: Exception to check

    Returns:
        True if exception is fatal
    """
    return isinstance(exc, FATAL)
