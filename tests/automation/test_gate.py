"""Tests for the event gate."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from driveflow.automation.gate import EventGate, GateResponse
from driveflow.core.cache import CooldownTracker, RecentTokenSet


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(store, coordinator, clock):
    return EventGate(
        store,
        coordinator,
        RecentTokenSet(capacity=100),
        CooldownTracker(cooldown_seconds=10.0, clock=clock),
    )


def test_gate_response_message() -> None:
    assert GateResponse(200, {"message": "ok"}).message == "ok"
    assert GateResponse(204).message == ""


class TestAdmission:
    """Tests for the checks that run before fan-out."""

    @pytest.mark.asyncio
    async def test_missing_resource_id(self, gate):
        response = await gate.handle_notification(None, "1")
        assert response.status_code == 400
        assert response.message == "Missing resource ID"

    @pytest.mark.asyncio
    async def test_unknown_resource(self, gate, user):
        response = await gate.handle_notification("res-unknown", "1")
        assert response.status_code == 404
        assert response.message == "User not found"

    @pytest.mark.asyncio
    async def test_duplicate_message_is_ignored(self, gate, store, user, configured_workflow, messenger):
        configured_workflow("Discord")

        first = await gate.handle_notification("res-1", "42")
        second = await gate.handle_notification("res-1", "42")

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.message == "Duplicate notification ignored"
        messenger.send_webhook_message.assert_awaited_once()
        assert store.get_credits(user.clerk_id)["credits"] == "4"

    @pytest.mark.asyncio
    async def test_cooldown_rejects_without_charging(self, gate, store, user, configured_workflow, clock):
        configured_workflow("Discord")

        await gate.handle_notification("res-1", "1")
        clock.now += 4.0
        response = await gate.handle_notification("res-1", "2")

        assert response.status_code == 429
        assert response.body["retryAfter"] == 6.0
        assert store.get_credits(user.clerk_id)["credits"] == "4"

    @pytest.mark.asyncio
    async def test_cooldown_expires(self, gate, store, user, configured_workflow, clock):
        configured_workflow("Discord")

        await gate.handle_notification("res-1", "1")
        clock.now += 10.0
        response = await gate.handle_notification("res-1", "2")

        assert response.status_code == 200
        assert store.get_credits(user.clerk_id)["credits"] == "3"

    @pytest.mark.asyncio
    async def test_no_credits(self, gate, store, messenger):
        store.create_user("broke", credits="0", google_resource_id="res-broke")
        workflow = store.create_workflow("broke", "Flow")

        response = await gate.handle_notification("res-broke", "1")

        assert response.status_code == 403
        assert response.message == "Insufficient credits"
        messenger.send_webhook_message.assert_not_awaited()
        assert store.query_executions(workflow_id=workflow.id)[1] == 0


class TestFanOut:
    """Tests for running the published workflows of a user."""

    @pytest.mark.asyncio
    async def test_no_published_workflows(self, gate, store, user, configured_workflow):
        configured_workflow("Discord", publish=False)

        response = await gate.handle_notification("res-1", "1")

        assert response.status_code == 200
        assert response.message == "No published workflows to execute"
        assert store.get_credits(user.clerk_id)["credits"] == "5"

    @pytest.mark.asyncio
    async def test_one_credit_per_notification(self, gate, store, user, configured_workflow):
        for name in ("A", "B", "C"):
            configured_workflow("Discord", name=name)

        response = await gate.handle_notification("res-1", "7")

        assert response.status_code == 200
        assert response.body == {
            "message": "Workflows executed",
            "executed": 3,
            "succeeded": 3,
            "failed": 0,
        }
        assert store.get_credits(user.clerk_id)["credits"] == "4"

        executions, total = store.query_executions(user_id=user.clerk_id)
        assert total == 3
        assert sorted(e["creditsUsed"] for e in executions) == [0, 0, 1]
        assert all(e["triggeredBy"] == "google_drive" for e in executions)
        assert all(e["triggerData"] == {"resourceId": "res-1", "messageNumber": "7"} for e in executions)

    @pytest.mark.asyncio
    async def test_unlimited_credits_are_not_decremented(self, gate, store, graph_builder):
        store.create_user("vip", credits="Unlimited", google_resource_id="res-vip")
        workflow = store.create_workflow("vip", "Flow")
        store.save_flow(workflow.id, *graph_builder())
        store.set_publish(workflow.id, True)

        response = await gate.handle_notification("res-vip", None)

        assert response.status_code == 200
        assert response.body["executed"] == 1
        assert store.get_credits("vip")["credits"] == "Unlimited"
        executions, _ = store.query_executions(user_id="vip")
        assert executions[0]["creditsUsed"] == 0

    @pytest.mark.asyncio
    async def test_partial_failures_still_count_as_succeeded(self, gate, poster, configured_workflow):
        poster.post_to_channels.side_effect = RuntimeError("down")
        configured_workflow("Slack")

        response = await gate.handle_notification("res-1", "1")

        assert response.body["succeeded"] == 1
        assert response.body["failed"] == 0

    @pytest.mark.asyncio
    async def test_raising_run_is_counted_as_failed(self, gate, store, user, configured_workflow, coordinator):
        configured_workflow("Discord")
        coordinator.run = AsyncMock(side_effect=RuntimeError("boom"))

        response = await gate.handle_notification("res-1", "1")

        assert response.status_code == 200
        assert response.body["executed"] == 1
        assert response.body["failed"] == 1
        assert store.get_credits(user.clerk_id)["credits"] == "4"

    @pytest.mark.asyncio
    async def test_store_failure_returns_500(self, gate, user, store):
        store.list_published_workflows = MagicMock(side_effect=RuntimeError("db down"))

        response = await gate.handle_notification("res-1", "1")

        assert response.status_code == 500
        assert response.body == {"message": "Internal server error", "error": "db down"}


class TestResume:
    """Tests for the resume callback."""

    @pytest.mark.asyncio
    async def test_missing_flow_id(self, gate):
        response = await gate.resume(None)
        assert response.status_code == 400
        assert response.message == "Missing flow_id"

    @pytest.mark.asyncio
    async def test_unknown_workflow(self, gate):
        response = await gate.resume("nope")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_nothing_pending(self, gate, configured_workflow):
        workflow = configured_workflow("Discord")
        response = await gate.resume(workflow.id)
        assert response.status_code == 200
        assert response.message == "No pending steps to resume"

    @pytest.mark.asyncio
    async def test_resume_runs_remainder_without_charging(
        self, gate, store, user, poster, configured_workflow
    ):
        workflow = configured_workflow("Discord", "Wait", "Slack")
        await gate.handle_notification("res-1", "1")
        assert store.get_credits(user.clerk_id)["credits"] == "4"

        response = await gate.resume(workflow.id)

        assert response.status_code == 200
        assert response.message == "Workflow resumed"
        assert response.body["status"] == "Completed"
        assert response.body["actions"] == [{"action": "TeamChannelPost", "status": "success"}]
        poster.post_to_channels.assert_awaited_once()
        assert store.get_credits(user.clerk_id)["credits"] == "4"
