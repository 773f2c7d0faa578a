"""Closed set of action kinds a flow path may contain."""

from __future__ import annotations

from enum import Enum


class ActionKind(str, Enum):
    """Supported workflow action kinds."""

    MESSAGING_WEBHOOK = "MessagingWebhook"
    TEAM_CHANNEL_POST = "TeamChannelPost"
    CONTENT_STORE_WRITE = "ContentStoreWrite"
    WAIT = "Wait"

    @classmethod
    def parse(cls, label: str) -> ActionKind | None:
        """Resolve a stored label, accepting the editor's provider names."""
        try:
            return cls(label)
        except ValueError:
            return _ALIASES.get(label)


_ALIASES: dict[str, ActionKind] = {
    "Discord": ActionKind.MESSAGING_WEBHOOK,
    "Slack": ActionKind.TEAM_CHANNEL_POST,
    "Notion": ActionKind.CONTENT_STORE_WRITE,
}


__all__ = ["ActionKind"]
