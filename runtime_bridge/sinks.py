"""UI sinks that receive orchestrator projections."""
from __future__ import annotations

from collections import deque
from typing import Any, Callable, Protocol

UIMessage = dict[str, Any]


class UISink(Protocol):
    def post_message(self, message: UIMessage) -> None: ...


class CallbackSink:
    """Adapts a plain callable (e.g. a websocket broadcaster) into a sink."""

    def __init__(self, callback: Callable[[UIMessage], None]):
        self._callback = callback

    def post_message(self, message: UIMessage) -> None:
        self._callback(message)


class BufferedSink:
    """Keeps the most recent projections in memory for polling clients."""

    def __init__(self, capacity: int = 500):
        self._messages: deque[UIMessage] = deque(maxlen=max(1, capacity))

    def post_message(self, message: UIMessage) -> None:
        self._messages.append(dict(message))

    def recent(self, limit: int = 50) -> list[UIMessage]:
        if limit <= 0:
            return []
        return list(self._messages)[-limit:]

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
