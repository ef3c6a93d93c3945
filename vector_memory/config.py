"""Configuration objects for the vector memory layer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum


class ModelProvider(str, Enum):
    """Model vendor the store calls on the caller's behalf."""

    MISTRAL = "mistral"
    OPENAI = "openai"


class SourceKind(str, Enum):
    """Kind of memory a collection holds."""

    HISTORY = "history"
    DISCORD = "discord"


# Header the store forwards to the provider when it vectorizes or generates.
PROVIDER_HEADERS = {
    ModelProvider.MISTRAL: "X-Mistral-Api-Key",
    ModelProvider.OPENAI: "X-Openai-Api-Key",
}


@dataclass(frozen=True)
class ProviderCredentials:
    """Model provider and the API key used for it."""

    provider: ModelProvider
    api_key: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider", ModelProvider(self.provider))
        if not self.api_key:
            raise ValueError("api_key must not be empty")

    @property
    def header_name(self) -> str:
        return PROVIDER_HEADERS[self.provider]


@dataclass
class StoreConfig:
    """Connection details for the Weaviate cluster."""

    cluster_url: str = ""
    admin_api_key: str = ""
    init_timeout: int = 30
    query_timeout: int = 120
    insert_timeout: int = 30
    ready_poll_interval: float = 2.0
    ready_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Build a config from ``WEAVIATE_URL`` and ``WEAVIATE_API_KEY``."""
        return cls(
            cluster_url=os.environ.get("WEAVIATE_URL", ""),
            admin_api_key=os.environ.get("WEAVIATE_API_KEY", ""),
        )
