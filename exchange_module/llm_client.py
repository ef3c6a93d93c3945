"""Client for provider chat-completions endpoints."""

from __future__ import annotations

import json
import logging
import time
from pprint import pformat
from typing import Any, Dict, List, Mapping, Optional

import requests

from vector_memory.config import ProviderCredentials
from vector_memory.errors import GenerationError

from .config import CompletionConfig

logger = logging.getLogger(__name__)


def format_entry(entry: Mapping[str, Any]) -> str:
    """One retrieved object as a single context line."""
    author = entry.get("author")
    speaker = entry.get("role", "user")
    if isinstance(author, Mapping):
        speaker = author.get("global_name") or author.get("username") or speaker
    timestamp = entry.get("timestamp")
    prefix = f"[{timestamp}] " if timestamp else ""
    return f"{prefix}{speaker}: {entry.get('content', '')}"


class CompletionClient:
    """Thin wrapper around a chat-completions endpoint bound to one provider."""

    def __init__(self, config: CompletionConfig, credentials: ProviderCredentials) -> None:
        self.config = config
        self.credentials = credentials
        self.endpoint = config.endpoint_for(credentials.provider)
        self.model = config.model_for(credentials.provider)

    def history_completion(self, query: str, entries: List[Mapping[str, Any]]) -> str:
        """Answer ``query`` grounded on retrieved dialogue entries."""
        messages = [
            {"role": "system", "content": self._system_content(self.config.system_prompt, entries)},
            {"role": "user", "content": query},
        ]
        return self.complete(messages)

    def transport_completion(
        self,
        query: str,
        entries: List[Mapping[str, Any]],
        prompt: str,
        payload: Mapping[str, Any],
    ) -> str:
        """Answer a transport message using a grounding prompt and the raw payload."""
        author = payload.get("author") or {}
        speaker = author.get("global_name") or author.get("username") or "user"
        messages = [
            {"role": "system", "content": self._system_content(prompt, entries)},
            {"role": "user", "content": f"{speaker}: {query}"},
        ]
        return self.complete(messages)

    def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> str:
        """Return the assistant text or raise :class:`GenerationError`."""
        payload: Dict[str, object] = {"model": self.model, "messages": messages}
        payload.update(self.config.model_kwargs)
        if model_kwargs:
            payload.update(model_kwargs)

        logger.info("Requesting completion from %s using model %s", self.endpoint, self.model)
        start_time = time.perf_counter()
        try:
            response = requests.post(
                self.endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self.credentials.api_key}"},
                timeout=self.config.request_timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.exception("Completion request failed")
            raise GenerationError("An error occurred while generating response", cause=exc) from exc
        logger.debug("Completion answered in %.2f seconds", time.perf_counter() - start_time)

        if not response.ok:
            raise GenerationError(self._describe_failure(response.status_code, data))
        if not isinstance(data, dict):
            raise GenerationError("Completion returned no content")

        choice = (data.get("choices") or [{}])[0]
        content = (choice.get("message") or {}).get("content")
        if not content:
            raise GenerationError("Completion returned no content")
        return content

    @staticmethod
    def _system_content(prompt: str, entries: List[Mapping[str, Any]]) -> str:
        if not entries:
            return f"{prompt}\n\nNo earlier messages matched."
        context = "\n".join(format_entry(entry) for entry in entries)
        return f"{prompt}\n\nRelevant earlier messages:\n{context}"

    @staticmethod
    def _describe_failure(status_code: int, data: Any) -> str:
        detail = data.get("detail") if isinstance(data, dict) else None
        if isinstance(detail, list) and detail:
            return "\n".join(pformat(issue) for issue in detail)
        if detail:
            return str(detail)
        logger.warning("Completion failed with HTTP %d: %s", status_code, json.dumps(data)[:500])
        return f"Completion request failed with HTTP {status_code}"
