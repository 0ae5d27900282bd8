"""Shared adapter plumbing: capability protocols and record field helpers."""
from __future__ import annotations

import json
import logging
from typing import Annotated, Any, Callable, Optional, Protocol, Sequence

from pydantic import BeforeValidator, ValidationError

from runtime_bridge import config
from runtime_bridge.models import RuntimeEvent


class EventHandler(Protocol):
    def handle_event(self, event: RuntimeEvent) -> None: ...


class RecordProcessor(Protocol):
    def process_record(self, agent_id: int, record: Any) -> None: ...


def _string_or_none(value: Any) -> Any:
    return value if isinstance(value, str) else None


# Optional record fields keep strings and drop anything else to None,
# so a stray type on an optional field never rejects the whole record.
LenientStr = Annotated[Optional[str], BeforeValidator(_string_or_none)]


def json_truthy(value: Any) -> bool:
    """Truthiness of a decoded JSON value where empty objects and arrays count as set."""
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == value and value != 0
    return True


def args_preview(value: Any, limit: int = config.ARGS_PREVIEW_MAX_CHARS) -> str | None:
    """Compact JSON preview of tool arguments, truncated to `limit` chars."""
    if not json_truthy(value):
        return None
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return None
    return text[:limit]


class BaseAdapter:
    """Forwards translated events for one runtime into an event handler.

    Subclasses set `translate = staticmethod(<runtime translate_record>)`.
    """

    runtime: str = ""
    translate: Callable[..., list[RuntimeEvent]]

    def __init__(self, handler: EventHandler):
        self._handler = handler
        self._logger = logging.getLogger(f"runtime_bridge.adapters.{self.runtime}")

    def process_record(self, agent_id: int, record: Any) -> None:
        try:
            events: Sequence[RuntimeEvent] = self.translate(agent_id, record)
        except ValidationError as e:
            # Raised while building events, e.g. a non-integer agent id.
            self._logger.warning(f"Dropping {self.runtime} record for agent {agent_id}: {e}")
            return
        for event in events:
            self._handler.handle_event(event)
