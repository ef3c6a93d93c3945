"""Weaviate-backed conversational memory: connection, collection and writes."""

from .collection import CollectionManager, CollectionState, collection_name
from .config import ModelProvider, ProviderCredentials, SourceKind, StoreConfig
from .connector import StoreConnector
from .memory import DialogueEntry, MemoryStore, strip_nulls

__all__ = [
    "CollectionManager",
    "CollectionState",
    "DialogueEntry",
    "MemoryStore",
    "ModelProvider",
    "ProviderCredentials",
    "SourceKind",
    "StoreConfig",
    "StoreConnector",
    "collection_name",
    "strip_nulls",
]
