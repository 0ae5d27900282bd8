"""Runtime orchestrator: authoritative-runtime state machine and event dispatch."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from runtime_bridge import config
from runtime_bridge.models import (
    AgentEndEvent,
    PermissionWaitEndEvent,
    PermissionWaitStartEvent,
    RuntimeEvent,
    SubagentEndEvent,
    SubagentStartEvent,
    ToolEndEvent,
    ToolStartEvent,
    TypingEndEvent,
    TypingStartEvent,
)
from runtime_bridge.sinks import UIMessage, UISink

logger = logging.getLogger("runtime_bridge.orchestrator")

_STATUS_PREVIEW_CHARS = 40


class RuntimeMode(str, Enum):
    CLAUDE_ONLY = "claude-only"
    DUAL_READ_CLAUDE_AUTHORITATIVE = "dual-read-claude-authoritative"
    PI_AUTHORITATIVE = "pi-authoritative"
    PI_DEFAULT = "pi-default"


class RuntimeState(str, Enum):
    IDLE = "Idle"
    ACTIVE_CLAUDE = "ActiveClaude"
    ACTIVE_PI = "ActivePi"
    SWAPPING = "Swapping"
    FAILED_ROLLBACK = "FailedRollback"


_CLAUDE_MODES = {RuntimeMode.CLAUDE_ONLY, RuntimeMode.DUAL_READ_CLAUDE_AUTHORITATIVE}


@dataclass(frozen=True)
class ActiveTool:
    toolName: str
    agentId: int


def default_state_for(mode: RuntimeMode) -> RuntimeState:
    return RuntimeState.ACTIVE_CLAUDE if mode in _CLAUDE_MODES else RuntimeState.ACTIVE_PI


class RuntimeOrchestrator:
    """Owns runtime-mode state, recent event history and the active-tool registry.

    `handle_event` is only called from the event loop's dispatch path, so the
    history and registry need no locking. The swap lock is a logical critical
    section spanning an external multi-step runtime switch; it never blocks.
    """

    def __init__(
        self,
        mode: RuntimeMode | str,
        sink: Optional[UISink] = None,
        capacity: int = config.RECENT_EVENTS_CAPACITY,
    ):
        self._mode = RuntimeMode(mode)
        self._state = default_state_for(self._mode)
        self._swap_locked = False
        self._recent_events: deque[RuntimeEvent] = deque(maxlen=capacity)
        self._active_tools: dict[str, ActiveTool] = {}
        self._sink = sink

    def set_sink(self, sink: Optional[UISink]) -> None:
        self._sink = sink

    def get_state(self) -> RuntimeState:
        return self._state

    def get_mode(self) -> RuntimeMode:
        return self._mode

    def is_swap_locked(self) -> bool:
        return self._swap_locked

    # ── Swap lock ──────────────────────────────────────────────────

    def acquire_swap_lock(self) -> bool:
        """Enter Swapping if no swap is in flight; False leaves state untouched."""
        if self._swap_locked:
            return False
        self._swap_locked = True
        self._state = RuntimeState.SWAPPING
        logger.info("Swap lock acquired")
        return True

    def release_swap_lock(self, next_state: RuntimeState | str | None = None) -> None:
        """Leave Swapping for `next_state` or the mode's default state.

        An unknown state name raises ValueError with the lock still held.
        """
        if next_state is not None:
            target = RuntimeState(next_state)
        else:
            target = default_state_for(self._mode)
        self._swap_locked = False
        self._state = target
        logger.info(f"Swap lock released, state={self._state.value}")

    def mark_failed_rollback(self) -> None:
        self._swap_locked = False
        self._state = RuntimeState.FAILED_ROLLBACK
        logger.error("Runtime swap rollback failed")

    # ── Events ─────────────────────────────────────────────────────

    def handle_event(self, event: RuntimeEvent) -> None:
        self._recent_events.append(event)
        for message in self._project(event):
            self._post(message)

    def get_recent_events(self, limit: int = 20) -> list[RuntimeEvent]:
        if limit <= 0:
            return []
        return list(self._recent_events)[-limit:]

    def get_active_tools(self, agent_id: int | None = None) -> dict[str, ActiveTool]:
        return {
            tool_id: info
            for tool_id, info in self._active_tools.items()
            if agent_id is None or info.agentId == agent_id
        }

    def _project(self, event: RuntimeEvent) -> list[UIMessage]:
        """Update the tool registry for `event` and build its UI projections."""
        agent_id = event.agentId

        if isinstance(event, TypingStartEvent):
            return [{"type": "agentStatus", "id": agent_id, "status": "Working..."}]
        if isinstance(event, TypingEndEvent):
            return [{"type": "agentStatus", "id": agent_id, "status": "active"}]

        if isinstance(event, ToolStartEvent):
            self._active_tools[event.toolCallId] = ActiveTool(toolName=event.toolName, agentId=agent_id)
            status = f"Running {event.toolName}"
            if event.argsPreview:
                status = f"{status} {event.argsPreview[:_STATUS_PREVIEW_CHARS]}"
            return [{"type": "agentToolStart", "id": agent_id, "toolId": event.toolCallId, "status": status}]

        if isinstance(event, ToolEndEvent):
            self._active_tools.pop(event.toolCallId, None)
            return [{"type": "agentToolDone", "id": agent_id, "toolId": event.toolCallId}]

        if isinstance(event, AgentEndEvent):
            messages: list[UIMessage] = []
            for tool_id in [tid for tid, info in self._active_tools.items() if info.agentId == agent_id]:
                del self._active_tools[tool_id]
                messages.append({"type": "agentToolDone", "id": agent_id, "toolId": tool_id})
            messages.append({"type": "agentStatus", "id": agent_id, "status": "waiting"})
            return messages

        if isinstance(event, PermissionWaitStartEvent):
            return [{
                "type": "agentToolPermission",
                "id": agent_id,
                "toolId": event.toolCallId,
                "status": event.toolName,
            }]
        if isinstance(event, PermissionWaitEndEvent):
            return [{"type": "agentToolPermissionClear", "id": agent_id}]

        if isinstance(event, SubagentStartEvent):
            return [{
                "type": "subagentToolStart",
                "id": agent_id,
                "parentToolId": event.parentToolId,
                "status": event.label or "Subtask",
            }]
        if isinstance(event, SubagentEndEvent):
            return [{"type": "subagentToolDone", "id": agent_id, "parentToolId": event.parentToolId}]

        return []

    def _post(self, message: UIMessage) -> None:
        if self._sink is None:
            return
        try:
            self._sink.post_message(message)
        except Exception as e:
            logger.error(f"UI sink failed for {message.get('type')}: {e}")
