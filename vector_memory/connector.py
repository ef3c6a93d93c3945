"""Open a ready session against a Weaviate Cloud cluster."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

import weaviate
from weaviate.classes.init import AdditionalConfig, Auth, Timeout

from .config import ProviderCredentials, StoreConfig
from .errors import StoreConnectionError

logger = logging.getLogger(__name__)


class StoreConnector:
    """Builds a connected, ready client for one set of provider credentials.

    The connector hands the client to the caller and keeps no reference to
    it.  Readiness is polled every ``ready_poll_interval`` seconds until the
    cluster answers, ``ready_timeout`` elapses or ``cancel`` is set.
    """

    def __init__(
        self,
        config: StoreConfig,
        credentials: ProviderCredentials,
        *,
        connect_fn: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self._connect_fn = connect_fn or weaviate.connect_to_weaviate_cloud

    def headers(self) -> dict:
        """Provider key header the store forwards to the model vendor."""
        return {self.credentials.header_name: self.credentials.api_key}

    def timeouts(self) -> Timeout:
        return Timeout(
            init=self.config.init_timeout,
            query=self.config.query_timeout,
            insert=self.config.insert_timeout,
        )

    def connect(self, cancel: Optional[threading.Event] = None) -> Any:
        """Return a ready client or raise :class:`StoreConnectionError`."""
        if not self.config.cluster_url:
            raise StoreConnectionError("No vector store cluster URL configured")
        cancel = cancel or threading.Event()
        logger.info(
            "Connecting to vector store at %s (provider=%s)",
            self.config.cluster_url,
            self.credentials.provider.value,
        )
        start_time = time.perf_counter()
        try:
            client = self._connect_fn(
                cluster_url=self.config.cluster_url,
                auth_credentials=Auth.api_key(self.config.admin_api_key),
                headers=self.headers(),
                additional_config=AdditionalConfig(timeout=self.timeouts()),
            )
        except Exception as exc:
            logger.exception("Failed to open vector store session")
            raise StoreConnectionError("Error initializing client", cause=exc) from exc

        try:
            self._wait_until_ready(client, cancel)
        except StoreConnectionError:
            self._close_quietly(client)
            raise

        elapsed = time.perf_counter() - start_time
        logger.info("Vector store ready after %.2f seconds", elapsed)
        return client

    def _wait_until_ready(self, client: Any, cancel: threading.Event) -> None:
        deadline = time.monotonic() + self.config.ready_timeout
        while True:
            try:
                if client.is_ready():
                    return
            except Exception as exc:
                raise StoreConnectionError("Readiness check failed", cause=exc) from exc

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise StoreConnectionError(
                    f"Vector store not ready after {self.config.ready_timeout:.0f} seconds"
                )
            logger.debug("Vector store not ready yet; polling again")
            if cancel.wait(min(self.config.ready_poll_interval, remaining)):
                raise StoreConnectionError("Readiness wait cancelled")

    @staticmethod
    def _close_quietly(client: Any) -> None:
        try:
            client.close()
        except Exception:
            logger.debug("Ignoring error while closing unready client", exc_info=True)
