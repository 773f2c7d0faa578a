"""Action dispatch table.

Every ``ActionKind`` has exactly one executor. An executor first resolves
its typed configuration from the workflow (raising ``ActionPreconditionError``
when something required is missing) and then performs its side effect once.
``ActionDispatcher`` turns both outcomes into an ``ActionRecord`` so that one
misconfigured or failing integration never stops the rest of a run. Only data
store failures propagate.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ..core.exceptions import (
    ActionPreconditionError,
    DeliveryError,
    PersistenceError,
    SchedulerRegistrationError,
)
from ..core.logger import get_logger
from ..delivery.notion import template_text
from .kinds import ActionKind

if TYPE_CHECKING:
    from ..delivery import NotionRecordWriter, SlackChannelPoster, WebhookMessenger
    from ..scheduler import BaseResumeScheduler
    from ..storage.models import Workflow
    from ..storage.repository import WorkflowStore

logger = get_logger("automation.actions")


class ActionStatus(str, Enum):
    """Outcome of one action within a run."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ActionRecord:
    """What happened to one action of a run."""

    action: str
    status: ActionStatus
    reason: str | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is ActionStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Convert to the shape stored on execution records."""
        data: dict[str, Any] = {"action": self.action, "status": self.status.value}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class ActionContext:
    """Everything an executor may read while resolving its configuration."""

    workflow: Workflow
    store: WorkflowStore
    default_wait_seconds: float = 60.0
    extras: dict[str, Any] = field(default_factory=dict)


# ----------------------------------------------------------------------
# Per-kind configuration payloads
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class MessagingWebhookConfig:
    webhook_url: str
    content: str


@dataclass(frozen=True)
class TeamChannelPostConfig:
    access_token: str
    channels: tuple[str, ...]
    content: str


@dataclass(frozen=True)
class ContentStoreWriteConfig:
    database_id: str
    access_token: str
    content: str


@dataclass(frozen=True)
class WaitConfig:
    workflow_id: str
    delay_seconds: float


ConfigT = TypeVar("ConfigT")


class BaseActionExecutor(ABC, Generic[ConfigT]):
    """Base class for action executors."""

    kind: ActionKind

    @abstractmethod
    async def resolve_config(self, context: ActionContext) -> ConfigT:
        """Build the typed configuration for this run.

        Raises:
            ActionPreconditionError: If required configuration is missing.
        """

    @abstractmethod
    async def perform(self, config: ConfigT) -> Any:
        """Carry out the side effect exactly once."""

    def precondition(self, reason: str) -> ActionPreconditionError:
        return ActionPreconditionError(self.kind.value, reason)


class MessagingWebhookExecutor(BaseActionExecutor[MessagingWebhookConfig]):
    """Send the workflow's message template to the owner's webhook."""

    kind = ActionKind.MESSAGING_WEBHOOK

    def __init__(self, messenger: WebhookMessenger) -> None:
        self.messenger = messenger

    async def resolve_config(self, context: ActionContext) -> MessagingWebhookConfig:
        workflow = context.workflow
        webhook_url = await asyncio.to_thread(
            context.store.get_discord_webhook_url, workflow.user_id
        )
        if not webhook_url:
            raise self.precondition("No webhook connected")
        if not workflow.discord_template:
            raise self.precondition("Message template is empty")
        return MessagingWebhookConfig(webhook_url=webhook_url, content=workflow.discord_template)

    async def perform(self, config: MessagingWebhookConfig) -> Any:
        return await self.messenger.send_webhook_message(config.content, config.webhook_url)


class TeamChannelPostExecutor(BaseActionExecutor[TeamChannelPostConfig]):
    """Post the workflow's template to its team channels."""

    kind = ActionKind.TEAM_CHANNEL_POST

    def __init__(self, poster: SlackChannelPoster) -> None:
        self.poster = poster

    async def resolve_config(self, context: ActionContext) -> TeamChannelPostConfig:
        workflow = context.workflow
        if not workflow.slack_access_token:
            raise self.precondition("No access token")
        if not workflow.slack_channels:
            raise self.precondition("No channels selected")
        if not workflow.slack_template:
            raise self.precondition("Message template is empty")
        return TeamChannelPostConfig(
            access_token=workflow.slack_access_token,
            channels=tuple(workflow.slack_channels),
            content=workflow.slack_template,
        )

    async def perform(self, config: TeamChannelPostConfig) -> Any:
        return await self.poster.post_to_channels(
            config.access_token, list(config.channels), config.content
        )


class ContentStoreWriteExecutor(BaseActionExecutor[ContentStoreWriteConfig]):
    """Create a record from the workflow's template in its database."""

    kind = ActionKind.CONTENT_STORE_WRITE

    def __init__(self, writer: NotionRecordWriter) -> None:
        self.writer = writer

    async def resolve_config(self, context: ActionContext) -> ContentStoreWriteConfig:
        workflow = context.workflow
        if not workflow.notion_db_id or not workflow.notion_db_id.strip():
            raise self.precondition("No database selected")
        if not workflow.notion_access_token:
            raise self.precondition("No access token")
        if not workflow.notion_template:
            raise self.precondition("Record template is empty")
        return ContentStoreWriteConfig(
            database_id=workflow.notion_db_id.strip(),
            access_token=workflow.notion_access_token,
            content=template_text(workflow.notion_template),
        )

    async def perform(self, config: ContentStoreWriteConfig) -> Any:
        return await self.writer.create_record(
            config.access_token, config.database_id, config.content
        )


class WaitExecutor(BaseActionExecutor[WaitConfig]):
    """Register a resume callback; the coordinator then suspends the run."""

    kind = ActionKind.WAIT

    def __init__(self, scheduler: BaseResumeScheduler | None) -> None:
        self.scheduler = scheduler

    async def resolve_config(self, context: ActionContext) -> WaitConfig:
        if self.scheduler is None:
            raise self.precondition("No resume scheduler configured")
        delay = context.workflow.wait_delay_seconds
        if delay is None:
            delay = context.default_wait_seconds
        return WaitConfig(workflow_id=context.workflow.id, delay_seconds=max(0.0, delay))

    async def perform(self, config: WaitConfig) -> Any:
        if self.scheduler is None:
            raise SchedulerRegistrationError(
                "No resume scheduler configured", workflow_id=config.workflow_id
            )
        return await self.scheduler.register(config.workflow_id, config.delay_seconds)


EXECUTOR_TYPES: dict[ActionKind, type[BaseActionExecutor[Any]]] = {
    ActionKind.MESSAGING_WEBHOOK: MessagingWebhookExecutor,
    ActionKind.TEAM_CHANNEL_POST: TeamChannelPostExecutor,
    ActionKind.CONTENT_STORE_WRITE: ContentStoreWriteExecutor,
    ActionKind.WAIT: WaitExecutor,
}

_missing = set(ActionKind) - set(EXECUTOR_TYPES)
if _missing:
    raise RuntimeError(f"Action kinds without executor: {sorted(k.value for k in _missing)}")


class ActionDispatcher:
    """Routes an action kind to its executor and records the outcome."""

    def __init__(self, executors: Mapping[ActionKind, BaseActionExecutor[Any]]) -> None:
        missing = set(ActionKind) - set(executors)
        if missing:
            raise ValueError(
                f"Dispatcher is missing executors for: {sorted(k.value for k in missing)}"
            )
        self._executors = dict(executors)

    @classmethod
    def create(
        cls,
        messenger: WebhookMessenger,
        poster: SlackChannelPoster,
        writer: NotionRecordWriter,
        scheduler: BaseResumeScheduler | None,
    ) -> ActionDispatcher:
        """Build the dispatcher with one executor per kind."""
        return cls(
            {
                ActionKind.MESSAGING_WEBHOOK: MessagingWebhookExecutor(messenger),
                ActionKind.TEAM_CHANNEL_POST: TeamChannelPostExecutor(poster),
                ActionKind.CONTENT_STORE_WRITE: ContentStoreWriteExecutor(writer),
                ActionKind.WAIT: WaitExecutor(scheduler),
            }
        )

    def executor_for(self, kind: ActionKind) -> BaseActionExecutor[Any]:
        return self._executors[kind]

    async def dispatch(self, kind: ActionKind, context: ActionContext) -> ActionRecord:
        """Run one action and describe the outcome.

        Raises:
            PersistenceError: If the data store fails while resolving
                configuration; every other error becomes a record.
        """
        executor = self._executors[kind]
        start_time = time.time()
        workflow_id = context.workflow.id

        try:
            config = await executor.resolve_config(context)
        except ActionPreconditionError as e:
            logger.warning("Skipping %s for workflow %s: %s", kind.value, workflow_id, e.reason)
            return ActionRecord(
                kind.value, ActionStatus.SKIPPED, e.reason, time.time() - start_time
            )

        try:
            await executor.perform(config)
        except PersistenceError:
            raise
        except (DeliveryError, SchedulerRegistrationError) as e:
            logger.error("%s failed for workflow %s: %s", kind.value, workflow_id, e)
            return ActionRecord(kind.value, ActionStatus.FAILED, str(e), time.time() - start_time)
        except Exception as e:
            logger.error(
                "%s raised for workflow %s: %s", kind.value, workflow_id, e, exc_info=True
            )
            return ActionRecord(
                kind.value, ActionStatus.FAILED, str(e) or type(e).__name__, time.time() - start_time
            )

        logger.info("%s succeeded for workflow %s", kind.value, workflow_id)
        return ActionRecord(kind.value, ActionStatus.SUCCESS, duration=time.time() - start_time)


__all__ = [
    "ActionStatus",
    "ActionRecord",
    "ActionContext",
    "MessagingWebhookConfig",
    "TeamChannelPostConfig",
    "ContentStoreWriteConfig",
    "WaitConfig",
    "BaseActionExecutor",
    "MessagingWebhookExecutor",
    "TeamChannelPostExecutor",
    "ContentStoreWriteExecutor",
    "WaitExecutor",
    "EXECUTOR_TYPES",
    "ActionDispatcher",
]
