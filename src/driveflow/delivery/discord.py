"""Messaging webhook delivery (Discord-compatible incoming webhooks)."""

from __future__ import annotations

from typing import Any

from ..core.exceptions import DeliveryError
from ..core.logger import get_logger
from .http import BaseDeliveryClient

logger = get_logger("delivery.discord")


class WebhookMessenger(BaseDeliveryClient):
    """Posts plain text content to an incoming webhook URL."""

    channel = "webhook"

    async def send_webhook_message(self, content: str, url: str) -> dict[str, Any]:
        """Send ``content`` to the webhook at ``url``.

        Raises:
            DeliveryError: If the URL or content is empty or delivery fails.
        """
        if not url:
            raise DeliveryError("Webhook URL is empty", channel=self.channel)
        if not content:
            raise DeliveryError("Webhook message content is empty", channel=self.channel)

        result = await self._send(url, {"content": content})
        logger.info("Webhook message delivered")
        return result


__all__ = ["WebhookMessenger"]
