"""Outbound delivery clients used by workflow actions."""

from .discord import WebhookMessenger
from .http import AsyncHTTPDeliveryMixin, BaseDeliveryClient, RetryConfig
from .notion import NotionRecordWriter, template_text
from .slack import SlackChannelPoster

__all__ = [
    "AsyncHTTPDeliveryMixin",
    "BaseDeliveryClient",
    "NotionRecordWriter",
    "RetryConfig",
    "SlackChannelPoster",
    "WebhookMessenger",
    "template_text",
]
