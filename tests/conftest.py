"""Shared fixtures: a temporary data store, graph builders and fake collaborators."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from driveflow.automation.actions import ActionDispatcher
from driveflow.automation.coordinator import ExecutionCoordinator
from driveflow.core.exceptions import SchedulerRegistrationError
from driveflow.scheduler.base import BaseResumeScheduler
from driveflow.storage import DatabaseManager, WorkflowStore


class RecordingScheduler(BaseResumeScheduler):
    """Resume scheduler double that remembers registrations."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__("http://testserver/api/workflows/resume")
        self.fail = fail
        self.registered: list[tuple[str, float]] = []
        self.cancelled: list[str] = []

    async def register(self, workflow_id: str, delay_seconds: float) -> str:
        if self.fail:
            raise SchedulerRegistrationError("scheduler unavailable", workflow_id=workflow_id)
        self.registered.append((workflow_id, delay_seconds))
        return f"job-{len(self.registered)}"

    async def cancel(self, workflow_id: str) -> None:
        self.cancelled.append(workflow_id)


def build_graph(*kinds: str, edges: list[tuple[str, str]] | None = None) -> tuple[str, str]:
    """Serialize a graph with a trigger node ``t`` and one node per kind.

    Nodes are named ``n1``, ``n2``... in order. Without explicit ``edges`` the
    nodes form a chain starting at the trigger.
    """
    nodes: list[dict[str, Any]] = [
        {"id": "t", "type": "Trigger", "position": {"x": 0, "y": 0}, "data": {"title": "Trigger"}}
    ]
    for index, kind in enumerate(kinds, start=1):
        nodes.append(
            {
                "id": f"n{index}",
                "type": kind,
                "position": {"x": 0, "y": 100 * index},
                "data": {"title": kind},
            }
        )
    if edges is None:
        ids = ["t"] + [f"n{i}" for i in range(1, len(kinds) + 1)]
        edges = list(zip(ids, ids[1:]))
    edge_list = [
        {"id": f"e-{source}-{target}", "source": source, "target": target}
        for source, target in edges
    ]
    return json.dumps(nodes), json.dumps(edge_list)


@pytest.fixture
def graph_builder():
    return build_graph


@pytest.fixture
def database(tmp_path):
    db = DatabaseManager(f"sqlite:///{tmp_path / 'driveflow-test.db'}")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def store(database):
    return WorkflowStore(database)


@pytest.fixture
def user(store):
    return store.create_user(
        "user_1", email="owner@example.com", credits="5", google_resource_id="res-1"
    )


@pytest.fixture
def messenger():
    client = AsyncMock()
    client.send_webhook_message.return_value = {}
    return client


@pytest.fixture
def poster():
    client = AsyncMock()
    client.post_to_channels.return_value = [{"ok": True}]
    return client


@pytest.fixture
def writer():
    client = AsyncMock()
    client.create_record.return_value = {"object": "page"}
    return client


@pytest.fixture
def resume_scheduler():
    return RecordingScheduler()


@pytest.fixture
def dispatcher(messenger, poster, writer, resume_scheduler):
    return ActionDispatcher.create(messenger, poster, writer, resume_scheduler)


@pytest.fixture
def coordinator(store, dispatcher, resume_scheduler):
    return ExecutionCoordinator(
        store, dispatcher, scheduler=resume_scheduler, default_wait_seconds=30.0
    )


@pytest.fixture
def configured_workflow(store, user, graph_builder):
    """Factory creating a workflow whose three delivery kinds are fully configured."""

    def _create(*kinds: str, publish: bool = True, name: str = "Flow", **graph_kwargs: Any):
        workflow = store.create_workflow(user.clerk_id, name)
        nodes, edges = graph_builder(*kinds, **graph_kwargs)
        store.save_flow(workflow.id, nodes, edges)
        store.add_discord_webhook(user.clerk_id, "https://discord.test/api/webhooks/1/abc")
        store.save_template(workflow.id, "MessagingWebhook", "File changed")
        store.save_template(
            workflow.id,
            "TeamChannelPost",
            "File changed",
            channels=["C1"],
            access_token="xoxb-token",
        )
        store.save_template(
            workflow.id,
            "ContentStoreWrite",
            json.dumps({"content": "File changed"}),
            access_token="secret_notion",
            notion_db_id="db-1",
        )
        if publish:
            store.set_publish(workflow.id, True)
        return store.get_workflow(workflow.id)

    return _create
