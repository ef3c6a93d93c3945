"""Lifecycle of the single named collection an orchestrator works against."""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Optional

from .config import SourceKind
from .connector import StoreConnector
from .errors import CollectionError, StoreConnectionError
from .schemas import SCHEMAS, generative_config, vectorizer_config

logger = logging.getLogger(__name__)

COLLECTION_PREFIXES = {
    SourceKind.HISTORY: "History_",
    SourceKind.DISCORD: "Discord_",
}

_WHITESPACE = re.compile(r"\s+")


def collection_name(kind: SourceKind, logical_name: str) -> str:
    """Deterministic store name for ``(kind, logical_name)``.

    All whitespace is removed, so ``"Test Room"`` and ``"TestRoom"`` map to
    the same collection.
    """
    return _WHITESPACE.sub("", COLLECTION_PREFIXES[SourceKind(kind)] + logical_name)


class CollectionState(str, Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    FAILED = "failed"


class CollectionManager:
    """Open, and if needed create, one collection and hold its handle."""

    def __init__(self, kind: SourceKind, logical_name: str, connector: StoreConnector) -> None:
        if not logical_name or not logical_name.strip():
            raise ValueError("logical_name must not be empty")
        self.kind = SourceKind(kind)
        self.name = collection_name(self.kind, logical_name)
        self.connector = connector
        self.state = CollectionState.UNOPENED
        self.last_error: Optional[Exception] = None
        self._client: Optional[Any] = None
        self._collection: Optional[Any] = None
        logger.debug("CollectionManager initialised for %s", self.name)

    @property
    def is_open(self) -> bool:
        return self.state is CollectionState.OPEN and self._collection is not None

    @property
    def collection(self) -> Any:
        """Handle of the open collection."""
        if not self.is_open:
            raise CollectionError("collection not ready")
        return self._collection

    def ensure_open(self) -> Any:
        """Return the collection handle, connecting and creating it on first use."""
        if self.is_open:
            return self._collection

        logger.info("Opening collection %s", self.name)
        try:
            client = self.connector.connect()
        except StoreConnectionError as exc:
            self._fail(exc)
            raise

        self._client = client
        try:
            exists = client.collections.exists(self.name)
        except Exception as exc:
            error = CollectionError(f"Error checking collection {self.name}", cause=exc)
            self._fail(error)
            raise error from exc

        if not exists:
            try:
                self.create_collection()
            except CollectionError as exc:
                self._fail(exc)
                raise

        try:
            self._collection = client.collections.get(self.name)
        except Exception as exc:
            error = CollectionError(f"Error getting collection {self.name}", cause=exc)
            self._fail(error)
            raise error from exc

        self.state = CollectionState.OPEN
        self.last_error = None
        logger.info("Collection %s is open", self.name)
        return self._collection

    def initialize(self) -> Any:
        """Connect and create the collection without checking for it first.

        Meant for provisioning a brand new collection; the store rejects the
        request if the name is already taken.
        """
        try:
            self._client = self.connector.connect()
        except StoreConnectionError as exc:
            self._fail(exc)
            raise
        try:
            self._collection = self.create_collection()
        except CollectionError as exc:
            self._fail(exc)
            raise
        self.state = CollectionState.OPEN
        return self._collection

    def create_collection(self) -> Any:
        """Create the collection with the schema for this source kind."""
        if self._client is None:
            raise CollectionError("Client not initialized")

        provider = self.connector.credentials.provider
        schema = SCHEMAS[self.kind]
        logger.info("Creating collection %s (kind=%s, provider=%s)", self.name, self.kind.value, provider.value)
        try:
            return self._client.collections.create(
                name=self.name,
                description=schema["description"],
                properties=schema["properties"],
                vectorizer_config=vectorizer_config(provider),
                generative_config=generative_config(provider),
            )
        except Exception as exc:
            logger.exception("Failed to create collection %s", self.name)
            raise CollectionError(f"Error creating collection {self.name}", cause=exc) from exc

    def close(self) -> None:
        """Close the store session and forget the handle."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception:
                logger.warning("Error closing vector store client for %s", self.name, exc_info=True)
        self._client = None
        self._collection = None
        self.state = CollectionState.UNOPENED

    def _fail(self, exc: Exception) -> None:
        logger.error("Collection %s failed to open: %s", self.name, exc)
        self.state = CollectionState.FAILED
        self.last_error = exc
        self._collection = None
        if self._client is not None:
            try:
                self._client.close()
            except Exception:
                logger.debug("Ignoring error while closing client", exc_info=True)
            self._client = None
