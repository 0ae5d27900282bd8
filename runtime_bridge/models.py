"""Canonical runtime event models shared by adapters and the orchestrator."""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

RUNTIME_SCHEMA_VERSION = 1

RuntimeKind = Literal["claude", "pi"]

ToolStatus = Literal["ok", "error"]


class RuntimeEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    schemaVersion: int = RUNTIME_SCHEMA_VERSION
    runtime: RuntimeKind
    agentId: int
    ts: int


# ── Agent lifecycle ────────────────────────────────────────────────

class AgentStartEvent(RuntimeEventBase):
    eventType: Literal["agent_start"] = "agent_start"
    sessionId: Optional[str] = None


class AgentEndEvent(RuntimeEventBase):
    eventType: Literal["agent_end"] = "agent_end"
    reason: Optional[str] = None


# ── Tool lifecycle ─────────────────────────────────────────────────

class ToolStartEvent(RuntimeEventBase):
    eventType: Literal["tool_start"] = "tool_start"
    toolCallId: str
    toolName: str
    argsPreview: Optional[str] = None
    parentToolId: Optional[str] = None


class ToolEndEvent(RuntimeEventBase):
    eventType: Literal["tool_end"] = "tool_end"
    toolCallId: str
    status: Optional[ToolStatus] = None
    error: Optional[str] = None
    parentToolId: Optional[str] = None


class TypingStartEvent(RuntimeEventBase):
    eventType: Literal["typing_start"] = "typing_start"


class TypingEndEvent(RuntimeEventBase):
    eventType: Literal["typing_end"] = "typing_end"


class PermissionWaitStartEvent(RuntimeEventBase):
    eventType: Literal["permission_wait_start"] = "permission_wait_start"
    toolCallId: str
    toolName: str
    isSubagent: Optional[bool] = None
    parentToolId: Optional[str] = None


class PermissionWaitEndEvent(RuntimeEventBase):
    eventType: Literal["permission_wait_end"] = "permission_wait_end"
    toolCallId: str
    isSubagent: Optional[bool] = None
    parentToolId: Optional[str] = None


# ── Sub-agents ─────────────────────────────────────────────────────

class SubagentStartEvent(RuntimeEventBase):
    eventType: Literal["subagent_start"] = "subagent_start"
    subagentId: str
    parentToolId: str
    label: Optional[str] = None


class SubagentEndEvent(RuntimeEventBase):
    eventType: Literal["subagent_end"] = "subagent_end"
    subagentId: str
    parentToolId: str
    reason: Optional[str] = None


RuntimeEvent = Annotated[
    Union[
        AgentStartEvent,
        AgentEndEvent,
        ToolStartEvent,
        ToolEndEvent,
        TypingStartEvent,
        TypingEndEvent,
        PermissionWaitStartEvent,
        PermissionWaitEndEvent,
        SubagentStartEvent,
        SubagentEndEvent,
    ],
    Field(discriminator="eventType"),
]


def dump_event(event: RuntimeEventBase) -> dict:
    return event.model_dump(exclude_none=True)
