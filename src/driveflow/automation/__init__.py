"""Workflow automation: graph model, compiler, dispatch, coordinator and gate."""

from .graph import ENTRY_KINDS, TRIGGER_KIND, Edge, Graph, Node, NodeData
from .compiler import compile_flow_path, compile_serialized, dump_flow_path
from .kinds import ActionKind
from .actions import (
    ActionContext,
    ActionDispatcher,
    ActionRecord,
    ActionStatus,
    BaseActionExecutor,
)
from .coordinator import ExecutionCoordinator, RunOutcome, RunStatus, parse_flow_path
from .gate import EventGate, GateResponse

__all__ = [
    "ENTRY_KINDS",
    "TRIGGER_KIND",
    "ActionContext",
    "ActionDispatcher",
    "ActionKind",
    "ActionRecord",
    "ActionStatus",
    "BaseActionExecutor",
    "Edge",
    "EventGate",
    "ExecutionCoordinator",
    "GateResponse",
    "Graph",
    "Node",
    "NodeData",
    "RunOutcome",
    "RunStatus",
    "compile_flow_path",
    "compile_serialized",
    "dump_flow_path",
    "parse_flow_path",
]
