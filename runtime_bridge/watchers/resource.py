"""A watched filesystem resource: native change notifications plus a poll loop.

Native notifications (watchfiles) are best-effort and only reduce latency;
the fixed-interval poll is the authoritative trigger. Both run as tasks on
the current event loop, so triggers for one resource never overlap.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from watchfiles import Change, awatch

logger = logging.getLogger("runtime_bridge.watcher")

Changes = set[tuple[Change, str]]
TriggerCallback = Callable[[Optional[Changes]], None]
WatchFilter = Callable[[Change, str], bool]


class WatchedResource:
    """Runs `on_trigger` on every native change batch and every poll tick.

    `on_trigger` receives the watchfiles change set for native triggers and
    None for poll ticks. Exceptions raised by the callback are logged and the
    resource keeps running.
    """

    def __init__(
        self,
        name: str,
        path: Path,
        on_trigger: TriggerCallback,
        poll_interval_ms: int,
        native_watch: bool = True,
        watch_filter: Optional[WatchFilter] = None,
    ):
        self.name = name
        self.path = path
        self._on_trigger = on_trigger
        self._poll_interval = max(1, poll_interval_ms) / 1000.0
        self._native_watch = native_watch
        self._watch_filter = watch_filter
        self._poll_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._closed = False

    def start(self) -> None:
        """Start polling and, when enabled, the native watch. Needs a running loop.

        Each native watch holds a worker thread for as long as it runs, so
        callers should keep the number of natively watched resources small.
        """
        if self._closed or self._poll_task is not None:
            return
        self._stop_event = asyncio.Event()
        self._poll_task = asyncio.create_task(self._poll_loop(), name=f"poll:{self.name}")
        if self._native_watch:
            self._watch_task = asyncio.create_task(self._watch_loop(), name=f"watch:{self.name}")

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def is_watching(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    def close(self) -> None:
        """Synchronously stop both triggers. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._stop_event is not None:
            self._stop_event.set()
        for task in (self._watch_task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()

    async def wait_closed(self) -> None:
        tasks = [t for t in (self._watch_task, self._poll_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _fire(self, changes: Optional[Changes]) -> None:
        if self._closed:
            return
        try:
            self._on_trigger(changes)
        except Exception:
            logger.exception(f"Trigger failed for {self.name}")

    async def _poll_loop(self) -> None:
        try:
            while not self._closed:
                await asyncio.sleep(self._poll_interval)
                self._fire(None)
        except asyncio.CancelledError:
            pass

    async def _watch_loop(self) -> None:
        try:
            async for changes in awatch(
                self.path,
                watch_filter=self._watch_filter,
                stop_event=self._stop_event,
                debounce=50,
                step=10,
                recursive=False,
            ):
                if self._closed:
                    break
                self._fire(changes)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            # Native watching unavailable (missing path, unsupported fs, ...)
            logger.warning(f"Native watch unavailable for {self.name}, polling only: {e}")
