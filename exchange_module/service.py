"""Top-level request/response cycle over vector memory."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from vector_memory.collection import CollectionManager
from vector_memory.config import ProviderCredentials
from vector_memory.connector import StoreConnector
from vector_memory.errors import VectorMemoryError, render_error
from vector_memory.memory import MemoryStore

from .config import ExchangeConfig
from .dispatcher import RetrievalDispatcher, StrategySelector
from .llm_client import CompletionClient
from .transport import DiscordTransport

logger = logging.getLogger(__name__)


class ExchangeOrchestrator:
    """Bind one collection, its memory and the dispatcher to one provider.

    The collection is opened on the first exchange and reused afterwards.
    :meth:`exchange` and :meth:`transport_exchange` always return text;
    failures come back as readable error strings.
    """

    def __init__(
        self,
        config: ExchangeConfig,
        credentials: ProviderCredentials,
        *,
        connector: Optional[StoreConnector] = None,
        completion: Optional[CompletionClient] = None,
        transport: Optional[DiscordTransport] = None,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self.manager = CollectionManager(
            config.source_kind,
            config.collection,
            connector or StoreConnector(config.store, credentials),
        )
        self.memory = MemoryStore(self.manager)
        self.dispatcher = RetrievalDispatcher(
            self.manager,
            self.memory,
            completion or CompletionClient(config.completion, credentials),
            transport=transport or DiscordTransport(config.transport),
        )
        logger.info(
            "ExchangeOrchestrator ready for collection %s (provider=%s)",
            self.manager.name,
            credentials.provider.value,
        )

    @property
    def collection_name(self) -> str:
        return self.manager.name

    def exchange(
        self,
        search: Union[str, StrategySelector],
        method: Optional[str] = None,
        query: str = "",
        prompt: Optional[str] = None,
    ) -> str:
        """Run one retrieval/generation cycle and return the reply text."""
        try:
            selector = search if isinstance(search, StrategySelector) else StrategySelector.parse(search, method or "")
            self.manager.ensure_open()
            return self.dispatcher.run(selector, query, prompt)
        except VectorMemoryError as exc:
            logger.error("Exchange on %s failed: %s", self.manager.name, exc)
            return render_error(exc)
        except Exception as exc:
            logger.exception("Unexpected failure during exchange on %s", self.manager.name)
            return render_error(exc)

    def transport_exchange(self, token: str, payload: Mapping[str, Any], prompt: str) -> str:
        """Answer an inbound transport message and return the reply text."""
        try:
            self.manager.ensure_open()
            return self.dispatcher.transport_exchange(token, payload, prompt)
        except VectorMemoryError as exc:
            logger.error("Transport exchange on %s failed: %s", self.manager.name, exc)
            return render_error(exc)
        except Exception as exc:
            logger.exception("Unexpected failure during transport exchange on %s", self.manager.name)
            return render_error(exc)

    def provision(self) -> str:
        """Create the collection up front instead of on the first exchange.

        Raises the underlying error when the store refuses, e.g. because the
        collection already exists.
        """
        self.manager.initialize()
        logger.info("Provisioned collection %s", self.manager.name)
        return self.manager.name

    def record_turn(self, role: str, content: str) -> str:
        """Store a single turn without generating anything."""
        self.manager.ensure_open()
        return self.memory.append_turn(role, content)

    def record_pair(self, user_content: str, assistant_content: str) -> bool:
        """Store a user/assistant pair; ``True`` means the batch was partial."""
        self.manager.ensure_open()
        return self.memory.append_pair(user_content, assistant_content)

    def describe(self) -> Dict[str, Any]:
        """Collection name, state and, when open, its entry count."""
        info: Dict[str, Any] = {
            "name": self.manager.name,
            "kind": self.manager.kind.value,
            "state": self.manager.state.value,
            "count": None,
        }
        if self.manager.is_open:
            info["count"] = self.memory.count()
        return info

    def close(self) -> None:
        self.manager.close()
