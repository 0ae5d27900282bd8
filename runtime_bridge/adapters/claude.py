"""Claude transcript records -> canonical runtime events.

Claude writes nested transcript entries: tool calls live in
`message.content[]` blocks, and sub-agent activity arrives wrapped in
`progress` frames that carry the parent `Task` tool id.
"""
from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from runtime_bridge.adapters.base import BaseAdapter, LenientStr, args_preview
from runtime_bridge.date_utils import resolve_timestamp
from runtime_bridge.models import (
    AgentEndEvent,
    RuntimeEvent,
    SubagentEndEvent,
    SubagentStartEvent,
    ToolEndEvent,
    ToolStartEvent,
)

logger = logging.getLogger("runtime_bridge.adapters.claude")

_TURN_DURATION_SUBTYPE = "turn_duration"


class _ContentBlock(BaseModel):
    type: LenientStr = None
    id: LenientStr = None
    name: LenientStr = None
    input: Any = None
    tool_use_id: LenientStr = None


class _Message(BaseModel):
    content: list[Any]


class ClaudeAssistantRecord(BaseModel):
    type: Literal["assistant"]
    timestamp: Any = None
    message: _Message


class ClaudeUserRecord(BaseModel):
    type: Literal["user"]
    timestamp: Any = None
    message: _Message


class ClaudeSystemRecord(BaseModel):
    type: Literal["system"]
    timestamp: Any = None
    subtype: LenientStr = None


class _ProgressMessage(BaseModel):
    type: LenientStr = None
    message: _Message


class _ProgressData(BaseModel):
    message: _ProgressMessage


class ClaudeProgressRecord(BaseModel):
    type: Literal["progress"]
    timestamp: Any = None
    parentToolUseID: str = Field(min_length=1)
    data: _ProgressData


ClaudeRecord = Annotated[
    Union[ClaudeAssistantRecord, ClaudeUserRecord, ClaudeSystemRecord, ClaudeProgressRecord],
    Field(discriminator="type"),
]

_record_adapter: TypeAdapter[ClaudeRecord] = TypeAdapter(ClaudeRecord)


def _blocks(content: list[Any], kind: str) -> list[_ContentBlock]:
    """Return content blocks of `kind`, skipping anything that is not a dict."""
    result: list[_ContentBlock] = []
    for raw in content:
        if not isinstance(raw, dict):
            continue
        block = _ContentBlock.model_validate(raw)
        if block.type == kind:
            result.append(block)
    return result


def _tool_starts(agent_id: int, ts: int, content: list[Any]) -> list[RuntimeEvent]:
    events: list[RuntimeEvent] = []
    for block in _blocks(content, "tool_use"):
        if block.id is None:
            continue
        events.append(ToolStartEvent(
            runtime="claude",
            agentId=agent_id,
            ts=ts,
            toolCallId=block.id,
            toolName=block.name or "unknown",
            argsPreview=args_preview(block.input),
        ))
    return events


def _tool_ends(agent_id: int, ts: int, content: list[Any]) -> list[RuntimeEvent]:
    return [
        ToolEndEvent(runtime="claude", agentId=agent_id, ts=ts, toolCallId=block.tool_use_id, status="ok")
        for block in _blocks(content, "tool_result")
        if block.tool_use_id is not None
    ]


def _progress_events(agent_id: int, ts: int, record: ClaudeProgressRecord) -> list[RuntimeEvent]:
    parent_tool_id = record.parentToolUseID
    subagent_id = f"{agent_id}:{parent_tool_id}"
    inner = record.data.message
    events: list[RuntimeEvent] = []

    if inner.type == "assistant":
        for block in _blocks(inner.message.content, "tool_use"):
            if block.id is None:
                continue
            tool_name = block.name or "unknown"
            events.append(SubagentStartEvent(
                runtime="claude",
                agentId=agent_id,
                ts=ts,
                subagentId=subagent_id,
                parentToolId=parent_tool_id,
                label=tool_name,
            ))
            events.append(ToolStartEvent(
                runtime="claude",
                agentId=agent_id,
                ts=ts,
                toolCallId=block.id,
                toolName=tool_name,
                parentToolId=parent_tool_id,
            ))
    elif inner.type == "user":
        for block in _blocks(inner.message.content, "tool_result"):
            if block.tool_use_id is None:
                continue
            events.append(ToolEndEvent(
                runtime="claude",
                agentId=agent_id,
                ts=ts,
                toolCallId=block.tool_use_id,
                status="ok",
                parentToolId=parent_tool_id,
            ))
            events.append(SubagentEndEvent(
                runtime="claude",
                agentId=agent_id,
                ts=ts,
                subagentId=subagent_id,
                parentToolId=parent_tool_id,
                reason="tool_result",
            ))
    return events


def translate_record(agent_id: int, raw: Any) -> list[RuntimeEvent]:
    """Translate one raw Claude transcript record into canonical events.

    Records that do not match a known shape produce an empty list.
    """
    try:
        record = _record_adapter.validate_python(raw)
    except ValidationError:
        logger.debug(f"Ignoring Claude record for agent {agent_id}: unrecognized shape")
        return []

    ts = resolve_timestamp(record.timestamp)

    if isinstance(record, ClaudeAssistantRecord):
        return _tool_starts(agent_id, ts, record.message.content)
    if isinstance(record, ClaudeUserRecord):
        return _tool_ends(agent_id, ts, record.message.content)
    if isinstance(record, ClaudeSystemRecord):
        if record.subtype != _TURN_DURATION_SUBTYPE:
            return []
        return [AgentEndEvent(runtime="claude", agentId=agent_id, ts=ts, reason="turn_complete")]
    return _progress_events(agent_id, ts, record)


class ClaudeAdapter(BaseAdapter):
    runtime = "claude"
    translate = staticmethod(translate_record)
