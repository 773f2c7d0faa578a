"""FastAPI server for drive notifications, resume callbacks and workflow edits."""

from __future__ import annotations

import asyncio
import json
import threading
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import Body, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import EventServerConfig
from .exceptions import GraphInvalidError, WorkflowNotFoundError
from .logger import get_logger

if TYPE_CHECKING:
    from ..automation.gate import EventGate, GateResponse
    from ..storage.repository import WorkflowStore

logger = get_logger("event_server")


class FlowSaveRequest(BaseModel):
    """Body of a flow save: serialized graph plus the editor's flow path."""

    model_config = ConfigDict(populate_by_name=True)

    nodes: str | list[dict[str, Any]]
    edges: str | list[dict[str, Any]]
    flow_path: str | list[str] | None = Field(default=None, alias="flowPath")


class PublishRequest(BaseModel):
    publish: bool


def _as_json(value: str | list[Any]) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _reply(response: GateResponse) -> JSONResponse:
    return JSONResponse(status_code=response.status_code, content=response.body)


class EventServer:
    """Serve notification and workflow endpoints and forward them to the core."""

    def __init__(
        self,
        config: EventServerConfig,
        gate: EventGate,
        store: WorkflowStore,
    ) -> None:
        """Initialize event server.

        Args:
            config: Event server configuration
            gate: Event gate handling notifications and resume callbacks
            store: Workflow store backing the edit and history endpoints
        """
        self._config = config
        self._gate = gate
        self._store = store
        self._app = FastAPI(title="Driveflow")
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

        self._create_routes()

    @property
    def app(self) -> FastAPI:
        return self._app

    # ------------------------------------------------------------------
    # FastAPI setup
    # ------------------------------------------------------------------
    def _create_routes(self) -> None:
        @self._app.get("/healthz")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        @self._app.post(self._config.notification_path)
        async def receive_notification(
            x_goog_resource_id: str | None = Header(default=None),
            x_goog_message_number: str | None = Header(default=None),
        ) -> JSONResponse:
            logger.info(
                "Notification received: resource=%s message=%s",
                x_goog_resource_id,
                x_goog_message_number,
            )
            response = await self._gate.handle_notification(
                x_goog_resource_id, x_goog_message_number
            )
            return _reply(response)

        @self._app.api_route(self._config.resume_path, methods=["GET", "POST"])
        async def resume_workflow(flow_id: str | None = Query(default=None)) -> JSONResponse:
            logger.info("Resume callback received for %s", flow_id)
            return _reply(await self._gate.resume(flow_id))

        @self._app.get("/api/workflow-executions")
        async def list_executions(
            user_id: str | None = Query(default=None, alias="userId"),
            workflow_id: str | None = Query(default=None, alias="workflowId"),
            status: str | None = Query(default=None),
            limit: int = Query(default=50, ge=0, le=500),
            offset: int = Query(default=0, ge=0),
        ) -> dict[str, Any]:
            executions, total = await asyncio.to_thread(
                self._store.query_executions,
                user_id=user_id,
                workflow_id=workflow_id,
                status=status,
                limit=limit,
                offset=offset,
            )
            return {"executions": executions, "total": total, "limit": limit, "offset": offset}

        @self._app.get("/api/user/credits")
        async def user_credits(user_id: str = Query(alias="userId")) -> dict[str, str]:
            credits = await asyncio.to_thread(self._store.get_credits, user_id)
            if credits is None:
                raise HTTPException(status_code=404, detail="User not found")
            return credits

        @self._app.put("/api/workflows/{workflow_id}/flow")
        async def save_flow(workflow_id: str, payload: FlowSaveRequest) -> JSONResponse:
            flow_path = None if payload.flow_path is None else _as_json(payload.flow_path)
            try:
                message = await asyncio.to_thread(
                    self._store.save_flow,
                    workflow_id,
                    _as_json(payload.nodes),
                    _as_json(payload.edges),
                    flow_path,
                )
            except GraphInvalidError as exc:
                return JSONResponse(
                    status_code=422,
                    content={"message": "Invalid workflow graph", "problems": exc.problems},
                )
            except WorkflowNotFoundError:
                return JSONResponse(status_code=404, content={"message": "Workflow not found"})

            workflow = await asyncio.to_thread(self._store.get_workflow, workflow_id)
            stored_path = json.loads(workflow.flow_path) if workflow and workflow.flow_path else []
            return JSONResponse(content={"message": message, "flowPath": stored_path})

        @self._app.post("/api/workflows/{workflow_id}/publish")
        async def publish_workflow(
            workflow_id: str, payload: PublishRequest = Body(...)
        ) -> JSONResponse:
            try:
                message = await asyncio.to_thread(
                    self._store.set_publish, workflow_id, payload.publish
                )
            except WorkflowNotFoundError:
                return JSONResponse(status_code=404, content={"message": "Workflow not found"})
            return JSONResponse(content={"message": message})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._thread or not self._config.enabled:
            return

        config = uvicorn.Config(
            self._app,
            host=self._config.host,
            port=self._config.port,
            log_level="info",
        )
        self._server = uvicorn.Server(config)

        def _run() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            try:
                server = self._server
                if server is None:
                    logger.error("Event server thread started without a uvicorn server instance")
                    return
                loop.run_until_complete(server.serve())
            finally:
                loop.close()

        self._thread = threading.Thread(
            target=_run,
            name="driveflow-event-server",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Driveflow event server listening on http://%s:%s%s",
            self._config.host,
            self._config.port,
            self._config.notification_path,
        )

    def stop(self) -> None:
        if self._server:
            self._server.should_exit = True
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Driveflow event server stopped")

    @property
    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())


__all__ = ["EventServer", "FlowSaveRequest", "PublishRequest"]
