"""Shared fixtures: an in-memory stand-in for the Weaviate client."""

from __future__ import annotations

import uuid as uuid_module
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from exchange_module.config import ExchangeConfig
from exchange_module.service import ExchangeOrchestrator
from vector_memory import CollectionManager, MemoryStore, ModelProvider, ProviderCredentials, SourceKind, StoreConfig
from vector_memory.connector import StoreConnector
from vector_memory.errors import GenerationError, TransportError


class FakeData:
    def __init__(self, collection: "FakeCollection") -> None:
        self.collection = collection
        self.fail_inserts = False
        self.fail_batch_indexes: List[int] = []

    def insert(self, properties: Dict[str, Any], uuid: Any = None) -> Any:
        if self.fail_inserts:
            raise RuntimeError("insert rejected")
        object_id = uuid or uuid_module.uuid4()
        self.collection.objects.append(SimpleNamespace(uuid=object_id, properties=dict(properties)))
        return object_id

    def insert_many(self, objects: List[Any]) -> Any:
        errors = {}
        for index, obj in enumerate(objects):
            if index in self.fail_batch_indexes:
                errors[index] = SimpleNamespace(message="object rejected")
                continue
            self.collection.objects.append(SimpleNamespace(uuid=obj.uuid, properties=dict(obj.properties)))
        return SimpleNamespace(has_errors=bool(errors), errors=errors)


class FakeQuery:
    def __init__(self, collection: "FakeCollection") -> None:
        self.collection = collection
        self.calls: List[tuple] = []

    def hybrid(self, query: str, **kwargs: Any) -> Any:
        self.calls.append(("hybrid", query, kwargs))
        return SimpleNamespace(objects=self._ranked(kwargs.get("limit")))

    def near_text(self, query: str, **kwargs: Any) -> Any:
        self.calls.append(("near_text", query, kwargs))
        return SimpleNamespace(objects=self._ranked(kwargs.get("limit")))

    def _ranked(self, limit: Optional[int]) -> List[Any]:
        objects = list(reversed(self.collection.objects))
        return objects[:limit] if limit else objects


class FakeGenerate:
    def __init__(self) -> None:
        self.generated: Optional[str] = "generated reply"
        self.calls: List[tuple] = []

    def hybrid(self, query: str, **kwargs: Any) -> Any:
        self.calls.append(("hybrid", query, kwargs))
        return SimpleNamespace(objects=[], generated=self.generated)

    def near_text(self, query: str, **kwargs: Any) -> Any:
        self.calls.append(("near_text", query, kwargs))
        return SimpleNamespace(objects=[], generated=self.generated)


class FakeAggregate:
    def __init__(self, collection: "FakeCollection") -> None:
        self.collection = collection

    def over_all(self, total_count: bool = False) -> Any:
        return SimpleNamespace(total_count=len(self.collection.objects))


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.objects: List[Any] = []
        self.data = FakeData(self)
        self.query = FakeQuery(self)
        self.generate = FakeGenerate()
        self.aggregate = FakeAggregate(self)


class FakeCollections:
    def __init__(self) -> None:
        self.store: Dict[str, FakeCollection] = {}
        self.create_calls: List[Dict[str, Any]] = []
        self.fail_exists = False
        self.fail_create = False

    def exists(self, name: str) -> bool:
        if self.fail_exists:
            raise RuntimeError("exists check failed")
        return name in self.store

    def create(self, name: str, **kwargs: Any) -> FakeCollection:
        self.create_calls.append({"name": name, **kwargs})
        if self.fail_create:
            raise RuntimeError("create rejected")
        if name in self.store:
            raise RuntimeError(f"class name {name} already exists")
        self.store[name] = FakeCollection(name)
        return self.store[name]

    def get(self, name: str) -> FakeCollection:
        return self.store[name]


class FakeClient:
    def __init__(self, ready_sequence: Optional[List[bool]] = None) -> None:
        self.collections = FakeCollections()
        self.ready_sequence = list(ready_sequence or [True])
        self.ready_checks = 0
        self.closed = False

    def is_ready(self) -> bool:
        self.ready_checks += 1
        if len(self.ready_sequence) > 1:
            return self.ready_sequence.pop(0)
        return self.ready_sequence[0]

    def close(self) -> None:
        self.closed = True


class FakeConnectFn:
    """Replacement for ``weaviate.connect_to_weaviate_cloud``."""

    def __init__(self, client: FakeClient) -> None:
        self.client = client
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> FakeClient:
        self.calls.append(kwargs)
        return self.client


class FakeCompletion:
    def __init__(self) -> None:
        self.reply = "completion reply"
        self.error: Optional[str] = None
        self.calls: List[tuple] = []

    def history_completion(self, query: str, entries: List[Dict[str, Any]]) -> str:
        self.calls.append(("history", query, entries))
        if self.error:
            raise GenerationError(self.error)
        return self.reply

    def transport_completion(self, query: str, entries: List[Dict[str, Any]], prompt: str, payload: Any) -> str:
        self.calls.append(("transport", query, entries, prompt, payload))
        if self.error:
            raise GenerationError(self.error)
        return self.reply


class FakeTransport:
    def __init__(self) -> None:
        self.typing: List[str] = []
        self.sent: List[tuple] = []
        self.fail_send = False

    def send_typing_indicator(self, channel_id: str, token: str) -> None:
        self.typing.append(channel_id)

    def send_message(self, channel_id: str, message: Dict[str, Any], token: str) -> Dict[str, Any]:
        if self.fail_send:
            raise TransportError("Discord request failed")
        self.sent.append((channel_id, message, token))
        return {
            "id": "1300000000000000001",
            "channel_id": channel_id,
            "content": message["content"],
            "author": {"id": "42", "username": "memorybot", "bot": True},
            "edited_timestamp": None,
        }


@pytest.fixture
def credentials() -> ProviderCredentials:
    return ProviderCredentials(ModelProvider.MISTRAL, "test-key")


@pytest.fixture
def store_config() -> StoreConfig:
    return StoreConfig(
        cluster_url="https://example.weaviate.cloud",
        admin_api_key="admin-key",
        ready_poll_interval=0.01,
        ready_timeout=0.2,
    )


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def connect_fn(fake_client: FakeClient) -> FakeConnectFn:
    return FakeConnectFn(fake_client)


@pytest.fixture
def connector(store_config: StoreConfig, credentials: ProviderCredentials, connect_fn: FakeConnectFn) -> StoreConnector:
    return StoreConnector(store_config, credentials, connect_fn=connect_fn)


@pytest.fixture
def manager(connector: StoreConnector) -> CollectionManager:
    return CollectionManager(SourceKind.HISTORY, "Test Room", connector)


@pytest.fixture
def open_manager(manager: CollectionManager) -> CollectionManager:
    manager.ensure_open()
    return manager


@pytest.fixture
def memory(open_manager: CollectionManager) -> MemoryStore:
    return MemoryStore(open_manager)


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


def build_orchestrator(
    kind: SourceKind,
    name: str,
    store_config: StoreConfig,
    credentials: ProviderCredentials,
    connector: StoreConnector,
    completion: FakeCompletion,
    transport: FakeTransport,
) -> ExchangeOrchestrator:
    config = ExchangeConfig(source_kind=kind, collection=name, store=store_config)
    return ExchangeOrchestrator(
        config,
        credentials,
        connector=connector,
        completion=completion,  # type: ignore[arg-type]
        transport=transport,  # type: ignore[arg-type]
    )


@pytest.fixture
def orchestrator(store_config, credentials, connector, completion, transport) -> ExchangeOrchestrator:
    return build_orchestrator(SourceKind.HISTORY, "Test Room", store_config, credentials, connector, completion, transport)


@pytest.fixture
def discord_orchestrator(store_config, credentials, connector, completion, transport) -> ExchangeOrchestrator:
    return build_orchestrator(SourceKind.DISCORD, "general chat", store_config, credentials, connector, completion, transport)
