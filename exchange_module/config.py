"""Configuration objects for the exchange module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from vector_memory.config import ModelProvider, SourceKind, StoreConfig

COMPLETION_ENDPOINTS = {
    ModelProvider.MISTRAL: "https://api.mistral.ai/v1/chat/completions",
    ModelProvider.OPENAI: "https://api.openai.com/v1/chat/completions",
}

DEFAULT_MODELS = {
    ModelProvider.MISTRAL: "mistral-small-latest",
    ModelProvider.OPENAI: "gpt-4o-mini",
}


@dataclass
class CompletionConfig:
    """Chat-completion call settings."""

    endpoint: Optional[str] = None
    model: Optional[str] = None
    request_timeout: int = 60
    system_prompt: str = (
        "You are a helpful assistant with long-term memory. The messages below "
        "were retrieved from earlier conversations because they look relevant to "
        "the user's latest message. Use them when they help and ignore them when "
        "they do not."
    )
    model_kwargs: Dict[str, object] = field(default_factory=dict)

    def endpoint_for(self, provider: ModelProvider) -> str:
        return self.endpoint or COMPLETION_ENDPOINTS[provider]

    def model_for(self, provider: ModelProvider) -> str:
        return self.model or DEFAULT_MODELS[provider]


@dataclass
class TransportConfig:
    """Discord REST settings."""

    api_base: str = "https://discord.com/api/v10"
    request_timeout: int = 30


@dataclass
class ExchangeConfig:
    """Everything one orchestrator needs, fixed at construction."""

    source_kind: SourceKind = SourceKind.HISTORY
    collection: str = "Default"
    store: StoreConfig = field(default_factory=StoreConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
