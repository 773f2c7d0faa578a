"""Tests for the action dispatch table."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from driveflow.automation.actions import (
    EXECUTOR_TYPES,
    ActionContext,
    ActionDispatcher,
    ActionRecord,
    ActionStatus,
    ContentStoreWriteExecutor,
    MessagingWebhookExecutor,
    TeamChannelPostExecutor,
    WaitExecutor,
)
from driveflow.automation.kinds import ActionKind
from driveflow.core.exceptions import DeliveryError, PersistenceError


class TestActionKind:
    """Tests for ActionKind parsing."""

    def test_canonical_names(self) -> None:
        for kind in ActionKind:
            assert ActionKind.parse(kind.value) is kind

    def test_editor_aliases(self) -> None:
        assert ActionKind.parse("Discord") is ActionKind.MESSAGING_WEBHOOK
        assert ActionKind.parse("Slack") is ActionKind.TEAM_CHANNEL_POST
        assert ActionKind.parse("Notion") is ActionKind.CONTENT_STORE_WRITE

    def test_unknown_label(self) -> None:
        assert ActionKind.parse("Email") is None


class TestActionRecord:
    """Tests for ActionRecord."""

    def test_success_record(self) -> None:
        record = ActionRecord("Wait", ActionStatus.SUCCESS)
        assert record.ok is True
        assert record.to_dict() == {"action": "Wait", "status": "success"}

    def test_failed_record_keeps_reason(self) -> None:
        record = ActionRecord("TeamChannelPost", ActionStatus.FAILED, "boom")
        assert record.ok is False
        assert record.to_dict() == {
            "action": "TeamChannelPost",
            "status": "failed",
            "reason": "boom",
        }


class TestDispatchTable:
    """The table covers every kind exactly once."""

    def test_every_kind_has_an_executor_type(self) -> None:
        assert set(EXECUTOR_TYPES) == set(ActionKind)

    def test_dispatcher_rejects_incomplete_table(self) -> None:
        with pytest.raises(ValueError, match="Wait"):
            ActionDispatcher(
                {
                    ActionKind.MESSAGING_WEBHOOK: MessagingWebhookExecutor(AsyncMock()),
                    ActionKind.TEAM_CHANNEL_POST: TeamChannelPostExecutor(AsyncMock()),
                    ActionKind.CONTENT_STORE_WRITE: ContentStoreWriteExecutor(AsyncMock()),
                }
            )

    def test_create_builds_one_executor_per_kind(self, dispatcher) -> None:
        assert isinstance(dispatcher.executor_for(ActionKind.WAIT), WaitExecutor)
        for kind in ActionKind:
            assert dispatcher.executor_for(kind).kind is kind


class TestDispatch:
    """Tests for ActionDispatcher.dispatch outcomes."""

    @pytest.mark.asyncio
    async def test_messaging_webhook_success(self, dispatcher, store, messenger, configured_workflow):
        workflow = configured_workflow("Discord")
        record = await dispatcher.dispatch(
            ActionKind.MESSAGING_WEBHOOK, ActionContext(workflow, store)
        )

        assert record.status is ActionStatus.SUCCESS
        messenger.send_webhook_message.assert_awaited_once_with(
            "File changed", "https://discord.test/api/webhooks/1/abc"
        )

    @pytest.mark.asyncio
    async def test_missing_webhook_is_skipped(self, dispatcher, store, user, messenger):
        workflow = store.create_workflow(user.clerk_id, "No webhook")
        store.save_template(workflow.id, "Discord", "hello")
        workflow = store.get_workflow(workflow.id)

        record = await dispatcher.dispatch(
            ActionKind.MESSAGING_WEBHOOK, ActionContext(workflow, store)
        )

        assert record.status is ActionStatus.SKIPPED
        assert record.reason == "No webhook connected"
        messenger.send_webhook_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_team_channel_post_passes_channels(self, dispatcher, store, poster, configured_workflow):
        workflow = configured_workflow("Slack")
        record = await dispatcher.dispatch(
            ActionKind.TEAM_CHANNEL_POST, ActionContext(workflow, store)
        )

        assert record.ok
        poster.post_to_channels.assert_awaited_once_with("xoxb-token", ["C1"], "File changed")

    @pytest.mark.asyncio
    async def test_team_channel_post_without_token_is_skipped(self, dispatcher, store, user, poster):
        workflow = store.create_workflow(user.clerk_id, "No token")
        store.save_template(workflow.id, "Slack", "hi", channels=["C1"])
        workflow = store.get_workflow(workflow.id)

        record = await dispatcher.dispatch(
            ActionKind.TEAM_CHANNEL_POST, ActionContext(workflow, store)
        )

        assert record.status is ActionStatus.SKIPPED
        assert record.reason == "No access token"
        poster.post_to_channels.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_team_channel_post_without_channels_is_skipped(self, dispatcher, store, user):
        workflow = store.create_workflow(user.clerk_id, "No channels")
        store.save_template(workflow.id, "Slack", "hi", access_token="xoxb")
        workflow = store.get_workflow(workflow.id)

        record = await dispatcher.dispatch(
            ActionKind.TEAM_CHANNEL_POST, ActionContext(workflow, store)
        )
        assert record.reason == "No channels selected"

    @pytest.mark.asyncio
    async def test_content_store_write_extracts_template_content(
        self, dispatcher, store, writer, configured_workflow
    ):
        workflow = configured_workflow("Notion")
        record = await dispatcher.dispatch(
            ActionKind.CONTENT_STORE_WRITE, ActionContext(workflow, store)
        )

        assert record.ok
        writer.create_record.assert_awaited_once_with("secret_notion", "db-1", "File changed")

    @pytest.mark.asyncio
    async def test_content_store_write_without_database_is_skipped(self, dispatcher, store, user):
        workflow = store.create_workflow(user.clerk_id, "No db")
        store.save_template(workflow.id, "Notion", "x", access_token="secret", notion_db_id="  ")
        workflow = store.get_workflow(workflow.id)

        record = await dispatcher.dispatch(
            ActionKind.CONTENT_STORE_WRITE, ActionContext(workflow, store)
        )
        assert record.status is ActionStatus.SKIPPED
        assert record.reason == "No database selected"

    @pytest.mark.asyncio
    async def test_delivery_error_becomes_failed_record(self, dispatcher, store, poster, configured_workflow):
        poster.post_to_channels.side_effect = DeliveryError("slack said no", channel="slack")
        workflow = configured_workflow("Slack")

        record = await dispatcher.dispatch(
            ActionKind.TEAM_CHANNEL_POST, ActionContext(workflow, store)
        )

        assert record.status is ActionStatus.FAILED
        assert record.reason == "slack said no"

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failed_record(self, dispatcher, store, writer, configured_workflow):
        writer.create_record.side_effect = RuntimeError("socket closed")
        workflow = configured_workflow("Notion")

        record = await dispatcher.dispatch(
            ActionKind.CONTENT_STORE_WRITE, ActionContext(workflow, store)
        )

        assert record.status is ActionStatus.FAILED
        assert record.reason == "socket closed"

    @pytest.mark.asyncio
    async def test_persistence_error_propagates(self, dispatcher, store, messenger, configured_workflow):
        messenger.send_webhook_message.side_effect = PersistenceError("db gone")
        workflow = configured_workflow("Discord")

        with pytest.raises(PersistenceError):
            await dispatcher.dispatch(ActionKind.MESSAGING_WEBHOOK, ActionContext(workflow, store))


class TestWaitExecutor:
    """Tests for the Wait step."""

    @pytest.mark.asyncio
    async def test_wait_registers_with_default_delay(
        self, dispatcher, store, resume_scheduler, configured_workflow
    ):
        workflow = configured_workflow("Wait")
        record = await dispatcher.dispatch(
            ActionKind.WAIT, ActionContext(workflow, store, default_wait_seconds=45.0)
        )

        assert record.ok
        assert resume_scheduler.registered == [(workflow.id, 45.0)]

    @pytest.mark.asyncio
    async def test_wait_uses_saved_workflow_delay(
        self, dispatcher, store, resume_scheduler, configured_workflow
    ):
        workflow = configured_workflow("Wait")
        store.save_template(workflow.id, "Wait", "", delay_seconds=120)

        record = await dispatcher.dispatch(
            ActionKind.WAIT,
            ActionContext(store.get_workflow(workflow.id), store, default_wait_seconds=45.0),
        )

        assert record.ok
        assert resume_scheduler.registered == [(workflow.id, 120.0)]

    @pytest.mark.asyncio
    async def test_wait_without_scheduler_is_skipped(self, store, configured_workflow):
        dispatcher = ActionDispatcher.create(AsyncMock(), AsyncMock(), AsyncMock(), None)
        workflow = configured_workflow("Wait")

        record = await dispatcher.dispatch(ActionKind.WAIT, ActionContext(workflow, store))

        assert record.status is ActionStatus.SKIPPED
        assert record.reason == "No resume scheduler configured"

    @pytest.mark.asyncio
    async def test_wait_registration_failure(self, dispatcher, store, resume_scheduler, configured_workflow):
        resume_scheduler.fail = True
        workflow = configured_workflow("Wait")

        record = await dispatcher.dispatch(ActionKind.WAIT, ActionContext(workflow, store))

        assert record.status is ActionStatus.FAILED
        assert record.reason == "scheduler unavailable"
