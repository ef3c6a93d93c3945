"""Retrieval and response composition for each strategy pair.

A strategy pair combines a :class:`ResponseMode` with a
:class:`RetrievalMode`.  The retrieval parameters for each pair live in
:data:`RETRIEVAL_PRESETS`; the response mode picks a
:class:`ResponseComposer`:

* ``semantic`` retrieves entries and asks the completion endpoint for the
  reply (:class:`ClientComposer`).  A user/assistant pair is always
  persisted, even when the reply is the text of a failed completion.
* ``generative`` lets the store run its own grouped generation over the
  retrieved objects (:class:`ServerComposer`).  Only a generated reply is
  persisted.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from weaviate.classes.query import HybridFusion

from vector_memory.collection import CollectionManager
from vector_memory.errors import (
    DispatchError,
    GenerationError,
    PersistenceError,
    TransportError,
)
from vector_memory.memory import MemoryStore, entries_from_objects

from .llm_client import CompletionClient
from .transport import DiscordTransport

logger = logging.getLogger(__name__)


class ResponseMode(str, Enum):
    GENERATIVE = "generative"
    SEMANTIC = "semantic"


class RetrievalMode(str, Enum):
    HYBRID = "hybrid"
    NEAR_TEXT = "nearText"


@dataclass(frozen=True)
class StrategySelector:
    response: ResponseMode
    retrieval: RetrievalMode

    @classmethod
    def parse(cls, search: str, method: str) -> "StrategySelector":
        """Build a selector from wire strings such as ``("semantic", "nearText")``."""
        try:
            return cls(ResponseMode(search), RetrievalMode(method))
        except ValueError as exc:
            raise DispatchError(f"Unknown strategy {search!r}/{method!r}", cause=exc) from exc


@dataclass(frozen=True)
class RetrievalPreset:
    """Search parameters for one strategy pair.

    ``limit`` 0 means no row cap: the store's own default applies.
    """

    limit: int
    alpha: Optional[float] = None
    certainty: Optional[float] = None
    query_properties: Optional[Tuple[str, ...]] = None

    def search_kwargs(self, retrieval: RetrievalMode) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"limit": self.limit or None}
        if retrieval is RetrievalMode.HYBRID:
            kwargs["alpha"] = self.alpha
            kwargs["fusion_type"] = HybridFusion.RANKED
            if self.query_properties:
                kwargs["query_properties"] = list(self.query_properties)
        else:
            kwargs["certainty"] = self.certainty
        return kwargs


DIALOGUE_FIELDS = ("timestamp", "role", "content")

RETRIEVAL_PRESETS: Mapping[StrategySelector, RetrievalPreset] = MappingProxyType(
    {
        StrategySelector(ResponseMode.SEMANTIC, RetrievalMode.HYBRID): RetrievalPreset(
            limit=10, alpha=0.5, query_properties=DIALOGUE_FIELDS
        ),
        StrategySelector(ResponseMode.SEMANTIC, RetrievalMode.NEAR_TEXT): RetrievalPreset(limit=10, certainty=0.85),
        StrategySelector(ResponseMode.GENERATIVE, RetrievalMode.HYBRID): RetrievalPreset(limit=0, alpha=0.3),
        StrategySelector(ResponseMode.GENERATIVE, RetrievalMode.NEAR_TEXT): RetrievalPreset(limit=0, certainty=0.72),
    }
)

# Transport memory is searched across every field.
TRANSPORT_PRESET = RetrievalPreset(limit=10, alpha=0.5)

DEFAULT_GROUPED_TASK = (
    "Using the conversation history above, write the assistant's reply to this message: {query}"
)


class ResponseComposer(ABC):
    """Turns a query into a reply and records it in memory."""

    def __init__(self, memory: MemoryStore) -> None:
        self.memory = memory

    @abstractmethod
    def compose(
        self,
        collection: Any,
        retrieval: RetrievalMode,
        preset: RetrievalPreset,
        query: str,
        prompt: Optional[str] = None,
    ) -> str:
        raise NotImplementedError


class ClientComposer(ResponseComposer):
    """Retrieve entries, then compose the reply with a completion call."""

    def __init__(self, memory: MemoryStore, completion: CompletionClient) -> None:
        super().__init__(memory)
        self.completion = completion

    def retrieve(self, collection: Any, retrieval: RetrievalMode, preset: RetrievalPreset, query: str) -> List[Dict[str, Any]]:
        kwargs = preset.search_kwargs(retrieval)
        start_time = time.perf_counter()
        if retrieval is RetrievalMode.HYBRID:
            response = collection.query.hybrid(query, **kwargs)
        else:
            response = collection.query.near_text(query, **kwargs)
        entries = entries_from_objects(response.objects)
        logger.info(
            "%s search returned %d object(s) in %.2f seconds",
            retrieval.value,
            len(entries),
            time.perf_counter() - start_time,
        )
        return entries

    def compose(
        self,
        collection: Any,
        retrieval: RetrievalMode,
        preset: RetrievalPreset,
        query: str,
        prompt: Optional[str] = None,
    ) -> str:
        entries = self.retrieve(collection, retrieval, preset, query)
        try:
            reply = self.completion.history_completion(query, entries)
        except GenerationError as exc:
            logger.warning("Completion failed; storing error text as reply: %s", exc)
            reply = str(exc)

        try:
            has_errors = self.memory.append_pair(query, reply)
        except PersistenceError:
            logger.exception("Could not store exchange pair")
        else:
            if has_errors:
                logger.warning("Exchange pair was only partially stored")
        return reply


class ServerComposer(ResponseComposer):
    """Let the store generate the reply from its own retrieval."""

    def compose(
        self,
        collection: Any,
        retrieval: RetrievalMode,
        preset: RetrievalPreset,
        query: str,
        prompt: Optional[str] = None,
    ) -> str:
        kwargs = preset.search_kwargs(retrieval)
        grouped_task = prompt or DEFAULT_GROUPED_TASK.format(query=query)
        start_time = time.perf_counter()
        if retrieval is RetrievalMode.HYBRID:
            result = collection.generate.hybrid(query, grouped_task=grouped_task, **kwargs)
        else:
            result = collection.generate.near_text(query, grouped_task=grouped_task, **kwargs)
        logger.info("Grouped %s generation finished in %.2f seconds", retrieval.value, time.perf_counter() - start_time)

        reply = getattr(result, "generated", None)
        if not reply:
            raise GenerationError("Error generating response")

        try:
            self.memory.append_turn("assistant", reply)
        except PersistenceError as exc:
            raise PersistenceError("Error adding ai response to history", cause=exc.cause) from exc
        return reply


class RetrievalDispatcher:
    """Route a strategy pair to its composer with the matching preset."""

    def __init__(
        self,
        manager: CollectionManager,
        memory: MemoryStore,
        completion: CompletionClient,
        *,
        transport: Optional[DiscordTransport] = None,
        presets: Mapping[StrategySelector, RetrievalPreset] = RETRIEVAL_PRESETS,
    ) -> None:
        self.manager = manager
        self.memory = memory
        self.completion = completion
        self.transport = transport
        self.presets = presets
        self.composers: Dict[ResponseMode, ResponseComposer] = {
            ResponseMode.SEMANTIC: ClientComposer(memory, completion),
            ResponseMode.GENERATIVE: ServerComposer(memory),
        }

    def run(self, selector: StrategySelector, query: str, prompt: Optional[str] = None) -> str:
        preset = self.presets.get(selector)
        composer = self.composers.get(getattr(selector, "response", None))
        if preset is None or composer is None:
            raise DispatchError(f"No routine for {selector!r}")

        logger.info("Dispatching %s/%s exchange on %s", selector.response.value, selector.retrieval.value, self.manager.name)
        return composer.compose(self.manager.collection, selector.retrieval, preset, query, prompt)

    def transport_exchange(self, token: str, payload: Mapping[str, Any], prompt: str) -> str:
        """Answer an inbound Discord message and store both sides of it.

        The inbound payload and the outbound message are persisted whether
        or not the send succeeded.
        """
        if self.transport is None:
            raise DispatchError("No transport configured")
        channel_id = payload.get("channel_id")
        if not channel_id:
            raise TransportError("Message payload has no channel_id")

        collection = self.manager.collection
        query = payload.get("content") or ""
        try:
            self.transport.send_typing_indicator(channel_id, token)
        except TransportError:
            logger.warning("Typing indicator failed for channel %s", channel_id)

        response = collection.query.hybrid(query, **TRANSPORT_PRESET.search_kwargs(RetrievalMode.HYBRID))
        entries = entries_from_objects(response.objects)
        logger.info("Transport search returned %d object(s) for channel %s", len(entries), channel_id)

        outbound: Any
        try:
            reply = self.completion.transport_completion(query, entries, prompt, payload)
        except GenerationError as exc:
            logger.warning("Transport completion failed: %s", exc)
            reply = str(exc)
            outbound = {"content": reply, "channel_id": channel_id}
        else:
            try:
                outbound = self.transport.send_message(channel_id, {"content": reply}, token)
            except TransportError:
                logger.exception("Failed to send reply to channel %s", channel_id)
                outbound = {"content": reply, "channel_id": channel_id}

        self._store_payload("user", payload)
        self._store_payload("assistant", outbound)
        return reply

    def _store_payload(self, role: str, payload: Any) -> None:
        try:
            self.memory.append_structured(role, payload)
        except PersistenceError:
            logger.exception("Could not store %s payload", role)
