"""Pi telemetry records -> canonical runtime events.

Pi's telemetry extension writes flat records discriminated by `type`.
"""
from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from runtime_bridge.adapters.base import BaseAdapter, LenientStr, args_preview, json_truthy
from runtime_bridge.date_utils import resolve_timestamp
from runtime_bridge.models import (
    AgentEndEvent,
    AgentStartEvent,
    PermissionWaitEndEvent,
    PermissionWaitStartEvent,
    RuntimeEvent,
    ToolEndEvent,
    ToolStartEvent,
)

logger = logging.getLogger("runtime_bridge.adapters.pi")

TYPING_TOOL_NAME = "Typing"
TYPING_ARGS_PREVIEW = "Generating response..."

# Pi reports lowercase tool names; match the Claude spelling.
_TOOL_NAME_MAP: dict[str, str] = {
    "read": "Read",
    "write": "Write",
    "edit": "Edit",
    "bash": "Bash",
    "grep": "Grep",
    "find": "Find",
    "ls": "Ls",
}


def normalize_tool_name(name: str) -> str:
    return _TOOL_NAME_MAP.get(name.lower(), name)


def streaming_tool_call_id(agent_id: int) -> str:
    return f"streaming-{agent_id}"


class _PiRecord(BaseModel):
    timestamp: Any = None


class PiAgentStart(_PiRecord):
    type: Literal["agent_start"]
    sessionId: LenientStr = None


class PiAgentEnd(_PiRecord):
    type: Literal["agent_end"]
    reason: LenientStr = None


class PiToolExecutionStart(_PiRecord):
    type: Literal["tool_execution_start"]
    toolCallId: str = Field(min_length=1)
    toolName: LenientStr = None
    args: Any = None
    parentToolId: LenientStr = None


class PiToolExecutionEnd(_PiRecord):
    type: Literal["tool_execution_end"]
    toolCallId: str = Field(min_length=1)
    error: Any = None
    parentToolId: LenientStr = None


class PiPermissionWaitStart(_PiRecord):
    type: Literal["permission_wait_start"]
    toolCallId: str = Field(min_length=1)
    toolName: LenientStr = None
    parentToolId: LenientStr = None


class PiPermissionWaitEnd(_PiRecord):
    type: Literal["permission_wait_end"]
    toolCallId: str = Field(min_length=1)
    parentToolId: LenientStr = None


class PiTurnEnd(_PiRecord):
    type: Literal["turn_end"]


class PiStreamingStart(_PiRecord):
    type: Literal["message_streaming_start"]


class PiStreamingEnd(_PiRecord):
    type: Literal["message_streaming_end"]


class PiPassive(_PiRecord):
    """Known record types that carry nothing for the canonical stream."""

    type: Literal["turn_start", "tool_execution_update", "message_streaming_update"]


PiRecord = Annotated[
    Union[
        PiAgentStart,
        PiAgentEnd,
        PiToolExecutionStart,
        PiToolExecutionEnd,
        PiPermissionWaitStart,
        PiPermissionWaitEnd,
        PiTurnEnd,
        PiStreamingStart,
        PiStreamingEnd,
        PiPassive,
    ],
    Field(discriminator="type"),
]

_record_adapter: TypeAdapter[PiRecord] = TypeAdapter(PiRecord)


def translate_record(agent_id: int, raw: Any) -> list[RuntimeEvent]:
    """Translate one raw Pi telemetry record into canonical events."""
    try:
        record = _record_adapter.validate_python(raw)
    except ValidationError:
        logger.debug(f"Ignoring Pi record for agent {agent_id}: unrecognized shape")
        return []

    ts = resolve_timestamp(record.timestamp)
    base = {"runtime": "pi", "agentId": agent_id, "ts": ts}

    if isinstance(record, PiAgentStart):
        return [AgentStartEvent(**base, sessionId=record.sessionId)]
    if isinstance(record, PiAgentEnd):
        return [AgentEndEvent(**base, reason=record.reason)]
    if isinstance(record, PiToolExecutionStart):
        return [ToolStartEvent(
            **base,
            toolCallId=record.toolCallId,
            toolName=normalize_tool_name(record.toolName or "unknown"),
            argsPreview=args_preview(record.args),
            parentToolId=record.parentToolId,
        )]
    if isinstance(record, PiToolExecutionEnd):
        failed = json_truthy(record.error)
        return [ToolEndEvent(
            **base,
            toolCallId=record.toolCallId,
            status="error" if failed else "ok",
            error=record.error if isinstance(record.error, str) and failed else None,
            parentToolId=record.parentToolId,
        )]
    if isinstance(record, PiPermissionWaitStart):
        return [PermissionWaitStartEvent(
            **base,
            toolCallId=record.toolCallId,
            toolName=normalize_tool_name(record.toolName or "unknown"),
            parentToolId=record.parentToolId,
        )]
    if isinstance(record, PiPermissionWaitEnd):
        return [PermissionWaitEndEvent(**base, toolCallId=record.toolCallId, parentToolId=record.parentToolId)]
    if isinstance(record, PiTurnEnd):
        return [AgentEndEvent(**base, reason="turn_complete")]
    # Text streaming drives the busy indicator through a synthetic tool.
    if isinstance(record, PiStreamingStart):
        return [ToolStartEvent(
            **base,
            toolCallId=streaming_tool_call_id(agent_id),
            toolName=TYPING_TOOL_NAME,
            argsPreview=TYPING_ARGS_PREVIEW,
        )]
    if isinstance(record, PiStreamingEnd):
        return [ToolEndEvent(**base, toolCallId=streaming_tool_call_id(agent_id), status="ok")]
    return []


class PiAdapter(BaseAdapter):
    runtime = "pi"
    translate = staticmethod(translate_record)
