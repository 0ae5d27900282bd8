"""Producer-side telemetry writer for Pi sessions.

Batches records in memory and appends them to `<dir>/<sessionId>.jsonl` on
a fixed flush interval, one JSON object per line. This is the format the
session tailer consumes.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from runtime_bridge import config
from runtime_bridge.date_utils import now_ms

logger = logging.getLogger("runtime_bridge.telemetry_writer")


class TelemetryWriter:
    def __init__(
        self,
        directory: Optional[Path] = None,
        flush_interval_ms: int = config.TELEMETRY_FLUSH_INTERVAL_MS,
    ):
        self.directory = Path(directory or config.PI_TELEMETRY_DIR).expanduser()
        self._flush_interval = max(1, flush_interval_ms) / 1000.0
        self.session_id: Optional[str] = None
        self.file_path: Optional[Path] = None
        self._queue: list[dict[str, Any]] = []
        self._parent_tool_stack: list[str] = []
        self._flush_task: Optional[asyncio.Task] = None

    def start(self, session_id: str) -> Path:
        self.session_id = session_id
        self.directory.mkdir(parents=True, exist_ok=True)
        self.file_path = self.directory / f"{session_id}.jsonl"
        logger.info(f"Telemetry writer started for session {session_id}")
        return self.file_path

    def run(self) -> None:
        """Start the periodic flush task on the running loop."""
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_loop(), name="telemetry-flush")

    async def stop(self) -> None:
        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None
        self.flush()
        logger.info(f"Telemetry writer stopped for session {self.session_id}")

    def record(self, record_type: str, **fields: Any) -> dict[str, Any]:
        """Build a record stamped with the session id and epoch-millis timestamp."""
        payload: dict[str, Any] = {
            "type": record_type,
            "sessionId": self.session_id or "unknown",
            "timestamp": now_ms(),
        }
        payload.update({key: value for key, value in fields.items() if value is not None})
        return payload

    def enqueue(self, record: dict[str, Any]) -> None:
        if not self.session_id:
            return
        self._queue.append(record)

    def emit(self, record_type: str, **fields: Any) -> None:
        self.enqueue(self.record(record_type, **fields))

    def flush(self) -> int:
        """Append every queued record in a single write; returns the count written."""
        if self.file_path is None or not self._queue:
            return 0
        batch, self._queue = self._queue, []
        payload = "".join(json.dumps(item, separators=(",", ":")) + "\n" for item in batch)
        try:
            with self.file_path.open("a", encoding="utf-8") as fh:
                fh.write(payload)
        except OSError as e:
            logger.error(f"Telemetry write failed for {self.file_path}: {e}")
            return 0
        return len(batch)

    # ── Nested tool tracking ───────────────────────────────────────

    def current_parent_tool_id(self) -> Optional[str]:
        return self._parent_tool_stack[-1] if self._parent_tool_stack else None

    def push_parent_tool(self, tool_call_id: str) -> None:
        self._parent_tool_stack.append(tool_call_id)

    def pop_parent_tool(self) -> Optional[str]:
        return self._parent_tool_stack.pop() if self._parent_tool_stack else None

    def tool_started(self, tool_call_id: str, tool_name: str, args: Any = None) -> None:
        """Record a tool start under the current parent, then make it the parent."""
        self.emit(
            "tool_execution_start",
            toolCallId=tool_call_id,
            toolName=tool_name,
            args=args,
            parentToolId=self.current_parent_tool_id(),
        )
        self.push_parent_tool(tool_call_id)

    def tool_finished(self, tool_call_id: str, error: Optional[str] = None) -> None:
        self.pop_parent_tool()
        self.emit(
            "tool_execution_end",
            toolCallId=tool_call_id,
            status="error" if error else "ok",
            error=error,
            parentToolId=self.current_parent_tool_id(),
        )

    async def _flush_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._flush_interval)
                self.flush()
        except asyncio.CancelledError:
            pass
