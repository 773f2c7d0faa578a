"""Content store delivery: creates pages in a Notion database."""

from __future__ import annotations

import json
from typing import Any

from ..core.exceptions import DeliveryError
from ..core.logger import get_logger
from .http import BaseDeliveryClient

logger = get_logger("delivery.notion")

TITLE_LIMIT = 2000


def template_text(template: str) -> str:
    """Extract the record text from a stored template.

    A JSON object template contributes its ``content`` field; any other JSON
    value is re-serialized. Templates that are not JSON are used verbatim.
    """
    try:
        parsed = json.loads(template)
    except json.JSONDecodeError:
        return template
    if isinstance(parsed, str):
        return parsed
    if isinstance(parsed, dict) and parsed.get("content"):
        return str(parsed["content"])
    return json.dumps(parsed)


class NotionRecordWriter(BaseDeliveryClient):
    """Writes records into a Notion database."""

    channel = "notion"

    async def create_record(
        self,
        access_token: str,
        database_id: str,
        content: str,
    ) -> dict[str, Any]:
        """Create a page titled ``content`` in ``database_id``.

        Raises:
            DeliveryError: If a reference is empty or the API rejects the page.
        """
        if not database_id or not database_id.strip():
            raise DeliveryError("Database ID is required", channel=self.channel)
        if not access_token or not access_token.strip():
            raise DeliveryError("Access token is required", channel=self.channel)

        payload = {
            "parent": {"type": "database_id", "database_id": database_id.strip()},
            "properties": {
                "Name": {"title": [{"text": {"content": content[:TITLE_LIMIT]}}]},
            },
        }
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Notion-Version": self.config.notion_version,
        }
        url = f"{self.config.notion_api_url.rstrip('/')}/pages"
        result = await self._send(url, payload, headers=headers)
        logger.info("Notion record created in database %s", database_id.strip())
        return result


__all__ = ["NotionRecordWriter", "TITLE_LIMIT", "template_text"]
