"""Discord REST calls used by the transport exchange."""

from __future__ import annotations

import logging
from typing import Any, Dict

import requests

from vector_memory.errors import TransportError

from .config import TransportConfig

logger = logging.getLogger(__name__)


class DiscordTransport:
    """Typing indicator and message send for a bot token."""

    def __init__(self, config: TransportConfig) -> None:
        self.config = config

    def send_typing_indicator(self, channel_id: str, token: str) -> None:
        url = f"{self.config.api_base}/channels/{channel_id}/typing"
        self._post(url, token, None)

    def send_message(self, channel_id: str, message: Dict[str, Any], token: str) -> Dict[str, Any]:
        """Post ``message`` to the channel and return the created message object."""
        url = f"{self.config.api_base}/channels/{channel_id}/messages"
        logger.info("Sending message to channel %s", channel_id)
        response = self._post(url, token, message)
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Discord returned an unreadable body for channel %s: %s", channel_id, exc)
            raise TransportError("Discord response was not valid JSON", cause=exc) from exc

    def _post(self, url: str, token: str, body: Any) -> requests.Response:
        try:
            response = requests.post(
                url,
                json=body,
                headers={"Authorization": f"Bot {token}"},
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Discord request to %s failed: %s", url, exc)
            raise TransportError("Discord request failed", cause=exc) from exc
        return response
