"""Team channel delivery through the Slack Web API."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..core.exceptions import DeliveryError
from ..core.logger import get_logger
from .http import BaseDeliveryClient

logger = get_logger("delivery.slack")


def _check_ok(result: dict[str, Any]) -> None:
    # The Web API answers 200 even on failure and reports it in the body
    if not result.get("ok", False):
        raise ValueError(f"Slack API error: {result.get('error', 'unknown_error')}")


class SlackChannelPoster(BaseDeliveryClient):
    """Posts a message to one or more Slack channels."""

    channel = "slack"

    async def post_to_channels(
        self,
        access_token: str,
        channels: Sequence[str],
        content: str,
    ) -> list[dict[str, Any]]:
        """Post ``content`` to every channel in order.

        Delivery stops at the first channel that fails.

        Returns:
            One API response per channel

        Raises:
            DeliveryError: If no channel is given or any post fails.
        """
        if not channels:
            raise DeliveryError("No Slack channels given", channel=self.channel)

        url = f"{self.config.slack_api_url.rstrip('/')}/chat.postMessage"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        responses = []
        for channel_id in channels:
            responses.append(
                await self._send(
                    url,
                    {"channel": channel_id, "text": content},
                    headers=headers,
                    response_validator=_check_ok,
                )
            )
            logger.debug("Posted to Slack channel %s", channel_id)

        logger.info("Slack message delivered to %d channel(s)", len(responses))
        return responses


__all__ = ["SlackChannelPoster"]
