"""Retrieval-grounded chat exchange over Weaviate memory.

``exchange_module.service.ExchangeOrchestrator`` is the entry point for
Python callers; ``server.create_app`` exposes it over HTTP.
"""

from .config import CompletionConfig, ExchangeConfig, TransportConfig
from .dispatcher import ResponseMode, RetrievalMode, StrategySelector
from .service import ExchangeOrchestrator

__all__ = [
    "CompletionConfig",
    "ExchangeConfig",
    "ExchangeOrchestrator",
    "ResponseMode",
    "RetrievalMode",
    "StrategySelector",
    "TransportConfig",
]
