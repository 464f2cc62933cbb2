"""
Firestore aggregate store.

Backs the ``AggregateStore`` interface with Cloud Firestore through the
Firebase Admin SDK async client.
"""

import inspect
import os
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import firestore
from loguru import logger

from indexer.store.base import (
    SERVER_TIMESTAMP,
    AggregateStore,
    Increment,
    StoreTransaction,
)
from indexer.utils.exceptions import StoreError

T = TypeVar("T")

# Start of the ValueError message the SDK raises when commit retries run out
TRANSACTION_EXHAUSTED_PREFIX = "Failed to commit transaction"


def initialize_firebase(
    credentials_path: str | None = None,
    project_id: str | None = None,
) -> firestore.AsyncClient:
    """
    Initialize the Firebase Admin app if needed and return an async client.

    Args:
        credentials_path: Service account JSON path; application default
            credentials are used when not set
        project_id: Optional Firebase project id override

    Returns:
        Firestore AsyncClient
    """
    if not firebase_admin._apps:
        if credentials_path:
            if not os.path.exists(credentials_path):
                raise FileNotFoundError(
                    f"Firebase credentials not found: {credentials_path}"
                )
            logger.info(f"Using Firebase credentials from: {credentials_path}")
            cred = credentials.Certificate(credentials_path)
        else:
            logger.info("Using application default Firebase credentials")
            cred = credentials.ApplicationDefault()

        options = {"projectId": project_id} if project_id else None
        firebase_admin.initialize_app(cred, options)
        logger.info("Firebase connection initialized successfully.")

    return firestore_async.client()


def to_firestore_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Translate store field transforms into Firestore sentinels."""
    translated = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            translated[key] = firestore.SERVER_TIMESTAMP
        elif isinstance(value, Increment):
            translated[key] = firestore.Increment(value.value)
        else:
            translated[key] = value
    return translated


class _FirestoreTransaction(StoreTransaction):
    """Transaction handle wrapping a Firestore AsyncTransaction."""

    def __init__(self, client: firestore.AsyncClient, transaction: Any):
        self._client = client
        self._transaction = transaction

    async def get(self, path: str) -> dict[str, Any] | None:
        snapshot = await self._client.document(path).get(
            transaction=self._transaction
        )
        return snapshot.to_dict() if snapshot.exists else None

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._transaction.set(
            self._client.document(path), to_firestore_fields(data), merge=merge
        )

    def update(self, path: str, data: dict[str, Any]) -> None:
        self._transaction.update(
            self._client.document(path), to_firestore_fields(data)
        )


class FirestoreAggregateStore(AggregateStore):
    """Aggregate store on Cloud Firestore."""

    def __init__(self, client: firestore.AsyncClient):
        """
        Initialize store.

        Args:
            client: Firestore AsyncClient
        """
        self.client = client

    async def get(self, path: str) -> dict[str, Any] | None:
        try:
            snapshot = await self.client.document(path).get()
        except GoogleAPICallError as e:
            raise StoreError(f"Read failed for {path}: {e}") from e
        return snapshot.to_dict() if snapshot.exists else None

    async def set(
        self, path: str, data: dict[str, Any], merge: bool = False
    ) -> None:
        try:
            await self.client.document(path).set(
                to_firestore_fields(data), merge=merge
            )
        except GoogleAPICallError as e:
            raise StoreError(f"Write failed for {path}: {e}") from e

    async def update(self, path: str, data: dict[str, Any]) -> None:
        try:
            await self.client.document(path).update(to_firestore_fields(data))
        except NotFound as e:
            raise StoreError(f"No document to update: {path}") from e
        except GoogleAPICallError as e:
            raise StoreError(f"Update failed for {path}: {e}") from e

    async def increment(
        self,
        path: str,
        deltas: dict[str, int | float],
        extra: dict[str, Any] | None = None,
    ) -> None:
        data: dict[str, Any] = {
            field: Increment(delta) for field, delta in deltas.items()
        }
        if extra:
            data.update(extra)
        await self.set(path, data, merge=True)

    async def transact(
        self, mutator: Callable[[StoreTransaction], Awaitable[T]]
    ) -> T:
        @firestore.async_transactional
        async def _run(transaction: Any) -> T:
            return await mutator(_FirestoreTransaction(self.client, transaction))

        try:
            return await _run(self.client.transaction())
        except GoogleAPICallError as e:
            raise StoreError(f"Transaction failed: {e}") from e
        except ValueError as e:
            if not str(e).startswith(TRANSACTION_EXHAUSTED_PREFIX):
                raise
            raise StoreError(f"Transaction aborted: {e}") from e

    async def close(self) -> None:
        result = self.client.close()
        if inspect.isawaitable(result):
            await result
        logger.info("Firestore client closed")
