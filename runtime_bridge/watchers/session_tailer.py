"""Session tailer: discovers `<sessionId>.jsonl` files and streams complete lines.

Each session file is tailed from byte offset 0 when first discovered. Every
trigger reads only the bytes appended since the stored offset; a trailing
partial line is buffered until a later write completes it. Complete lines
are parsed as JSON and handed to the runtime adapter together with the
agent id registered for the session. Lines from unregistered sessions are
dropped.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from watchfiles import Change

from runtime_bridge import config
from runtime_bridge.adapters.base import RecordProcessor
from runtime_bridge.watchers.resource import Changes, WatchedResource

logger = logging.getLogger("runtime_bridge.tailer")

SESSION_SUFFIX = ".jsonl"


@dataclass
class TailedSession:
    session_id: str
    path: Path
    offset: int = 0
    buffer: bytes = b""
    resource: Optional[WatchedResource] = None
    creation_task: Optional[asyncio.Task] = None

    def close(self) -> None:
        if self.resource is not None:
            self.resource.close()
        if self.creation_task is not None and not self.creation_task.done():
            self.creation_task.cancel()


def _is_session_file(name: str) -> bool:
    return name.endswith(SESSION_SUFFIX) and len(name) > len(SESSION_SUFFIX)


def _session_file_filter(change: Change, path: str) -> bool:
    return change != Change.deleted and _is_session_file(Path(path).name)


class SessionTailer:
    """Tails every session file in one telemetry directory for one runtime."""

    def __init__(
        self,
        adapter: RecordProcessor,
        directory: Optional[Path] = None,
        *,
        runtime: str = "pi",
        poll_interval_ms: int = config.FILE_POLL_INTERVAL_MS,
        creation_poll_interval_ms: int = config.CREATION_POLL_INTERVAL_MS,
        creation_timeout_seconds: float = config.CREATION_POLL_TIMEOUT_SECONDS,
        native_watch: bool = config.NATIVE_WATCH_ENABLED,
    ):
        self.adapter = adapter
        self.directory = Path(directory or config.PI_TELEMETRY_DIR).expanduser()
        self.runtime = runtime
        self._poll_interval_ms = poll_interval_ms
        self._creation_poll_interval = max(1, creation_poll_interval_ms) / 1000.0
        self._creation_timeout = creation_timeout_seconds
        self._native_watch = native_watch

        self._sessions: dict[str, TailedSession] = {}
        self._known_files: set[str] = set()
        self._session_to_agent: dict[str, int] = {}
        self._dir_resource: Optional[WatchedResource] = None
        self._running = False

    # ── Lifecycle ──────────────────────────────────────────────────

    async def start(self) -> None:
        """Begin discovery and tail every session file already present."""
        if self._running:
            logger.warning(f"Session tailer already running for {self.directory}")
            return
        self._running = True
        self._ensure_directory()

        self._dir_resource = WatchedResource(
            name=f"dir:{self.directory}",
            path=self.directory,
            on_trigger=self._on_directory_trigger,
            poll_interval_ms=self._poll_interval_ms,
            native_watch=self._native_watch,
            watch_filter=_session_file_filter,
        )
        self._dir_resource.start()
        self.scan()
        logger.info(f"Session tailer started for {self.runtime} sessions in {self.directory}")

    async def stop(self) -> None:
        """Close every watch and poll handle, then drop all session state."""
        resources: list[WatchedResource] = []
        if self._dir_resource is not None:
            self._dir_resource.close()
            resources.append(self._dir_resource)
            self._dir_resource = None

        creation_tasks: list[asyncio.Task] = []
        for session in self._sessions.values():
            session.close()
            if session.resource is not None:
                resources.append(session.resource)
            if session.creation_task is not None:
                creation_tasks.append(session.creation_task)
        self._sessions.clear()
        self._known_files.clear()

        was_running = self._running
        self._running = False

        for resource in resources:
            await resource.wait_closed()
        if creation_tasks:
            await asyncio.gather(*creation_tasks, return_exceptions=True)
        if was_running:
            logger.info(f"Session tailer stopped for {self.directory}")

    @property
    def is_running(self) -> bool:
        return self._running

    # ── Routing ────────────────────────────────────────────────────

    def register_session(self, session_id: str, agent_id: int) -> None:
        self._session_to_agent[session_id] = agent_id
        logger.info(f"Registered {self.runtime} session {session_id} -> agent {agent_id}")

    def unregister_session(self, session_id: str) -> None:
        self._session_to_agent.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()
            logger.info(f"Stopped tailing {self.runtime} session {session_id}")

    def resolve_agent_id(self, session_id: str) -> Optional[int]:
        return self._session_to_agent.get(session_id)

    # ── Introspection ──────────────────────────────────────────────

    def session_ids(self) -> list[str]:
        return sorted(self._sessions)

    def get_offset(self, session_id: str) -> Optional[int]:
        session = self._sessions.get(session_id)
        return session.offset if session else None

    # ── Discovery ──────────────────────────────────────────────────

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create telemetry dir {self.directory}: {e}")

    def _list_session_files(self) -> list[str]:
        try:
            return sorted(p.name for p in self.directory.iterdir() if _is_session_file(p.name))
        except OSError as e:
            logger.debug(f"Cannot list telemetry dir {self.directory}: {e}")
            return []

    def scan(self) -> list[str]:
        """Start tailing any session file not seen before; returns the new names."""
        started: list[str] = []
        for filename in self._list_session_files():
            if self._discover(filename):
                started.append(filename)
        return started

    def _on_directory_trigger(self, changes: Optional[Changes]) -> None:
        if changes is None:
            self.scan()
            return
        # A notification may name a file that is not flushed to disk yet;
        # tail it anyway and let the creation poll wait for it.
        for name in sorted({Path(raw_path).name for _change, raw_path in changes}):
            if not _is_session_file(name):
                continue
            self._discover(name)
            session = self._sessions.get(name[: -len(SESSION_SUFFIX)])
            if session is not None:
                self.read_new_lines(session)

    def _discover(self, filename: str) -> bool:
        if not self._running or filename in self._known_files:
            return False
        self._known_files.add(filename)
        self._start_session(filename)
        return True

    def _start_session(self, filename: str) -> None:
        session_id = filename[: -len(SESSION_SUFFIX)]
        path = self.directory / filename
        logger.info(f"Tailing {self.runtime} session {session_id}")

        session = TailedSession(session_id=session_id, path=path)
        self._sessions[session_id] = session

        # Per-file resources only poll. Native changes for session files arrive
        # through the single directory watch, which holds one worker thread.
        session.resource = WatchedResource(
            name=f"session:{session_id}",
            path=path,
            on_trigger=lambda _changes: self.read_new_lines(session),
            poll_interval_ms=self._poll_interval_ms,
            native_watch=False,
        )
        session.resource.start()

        if not path.exists():
            session.creation_task = asyncio.create_task(
                self._await_creation(session), name=f"create:{session_id}"
            )

    async def _await_creation(self, session: TailedSession) -> None:
        """Poll quickly for a file that was announced before it hit the disk."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._creation_timeout
        try:
            while loop.time() < deadline:
                if self._sessions.get(session.session_id) is not session:
                    return
                if session.path.exists():
                    self.read_new_lines(session)
                    return
                await asyncio.sleep(self._creation_poll_interval)
            logger.debug(f"Session file {session.path} did not appear within {self._creation_timeout}s")
        except asyncio.CancelledError:
            pass

    # ── Reading ────────────────────────────────────────────────────

    def read_new_lines(self, session: TailedSession) -> int:
        """Read bytes appended since the last trigger; returns lines delivered."""
        if self._sessions.get(session.session_id) is not session:
            return 0
        try:
            size = session.path.stat().st_size
            if size <= session.offset:
                return 0
            with session.path.open("rb") as fh:
                fh.seek(session.offset)
                chunk = fh.read(size - session.offset)
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.warning(f"Read error for {self.runtime} session {session.session_id}: {e}")
            return 0

        session.offset += len(chunk)

        parts = (session.buffer + chunk).split(b"\n")
        session.buffer = parts.pop()

        delivered = 0
        for raw_line in parts:
            line = raw_line.decode("utf-8", errors="replace")
            if not line.strip():
                continue
            self._process_line(session.session_id, line)
            delivered += 1
        return delivered

    def poll_once(self) -> int:
        """Run one discovery pass and one read per live session."""
        self.scan()
        return sum(self.read_new_lines(session) for session in list(self._sessions.values()))

    def _process_line(self, session_id: str, line: str) -> None:
        try:
            record: Any = json.loads(line)
        except ValueError as e:
            logger.warning(f"Failed to parse {self.runtime} telemetry line in {session_id}: {e}")
            return

        agent_id = self.resolve_agent_id(session_id)
        if agent_id is None:
            logger.debug(f"Dropping record from unregistered session {session_id}")
            return

        try:
            self.adapter.process_record(agent_id, record)
        except Exception:
            logger.exception(f"Adapter failed on record from session {session_id}")
