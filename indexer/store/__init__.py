"""
Aggregate store package.

Document store abstraction with atomic increment and transactional
read-modify-write, plus Firestore and in-memory backends.
"""

from .base import (
    SERVER_TIMESTAMP,
    AggregateStore,
    Increment,
    StoreTransaction,
    doc_path,
)
from .memory import MemoryAggregateStore

__all__ = [
    "AggregateStore",
    "StoreTransaction",
    "MemoryAggregateStore",
    "Increment",
    "SERVER_TIMESTAMP",
    "doc_path",
    "create_store",
]


def create_store(settings) -> AggregateStore:
    """
    Build the configured aggregate store backend.

    Args:
        settings: Indexer settings

    Returns:
        AggregateStore instance
    """
    if settings.store_backend == "memory":
        return MemoryAggregateStore()

    from .firestore import FirestoreAggregateStore, initialize_firebase

    client = initialize_firebase(
        credentials_path=settings.google_application_credentials,
        project_id=settings.firebase_project_id,
    )
    return FirestoreAggregateStore(client)
