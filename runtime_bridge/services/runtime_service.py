"""Wires the orchestrator, UI sink and per-runtime session tailers together."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from runtime_bridge import config
from runtime_bridge.adapters.registry import adapter_for
from runtime_bridge.orchestrator import RuntimeMode, RuntimeOrchestrator
from runtime_bridge.sinks import BufferedSink, UISink
from runtime_bridge.watchers.session_tailer import SessionTailer

logger = logging.getLogger("runtime_bridge.service")


class RuntimeService:
    def __init__(
        self,
        mode: RuntimeMode | str = config.RUNTIME_MODE,
        directories: Optional[dict[str, Path]] = None,
        sink: Optional[UISink] = None,
        **tailer_options,
    ):
        self.sink = sink if sink is not None else BufferedSink()
        self.orchestrator = RuntimeOrchestrator(mode, sink=self.sink)
        if directories is None:
            directories = {"pi": config.PI_TELEMETRY_DIR}
            if config.CLAUDE_TELEMETRY_DIR is not None:
                directories["claude"] = config.CLAUDE_TELEMETRY_DIR

        self.tailers: dict[str, SessionTailer] = {}
        for runtime, directory in directories.items():
            self.tailers[runtime] = SessionTailer(
                adapter_for(runtime, self.orchestrator),
                directory,
                runtime=runtime,
                **tailer_options,
            )

    async def start(self) -> None:
        for tailer in self.tailers.values():
            await tailer.start()
        logger.info(
            f"Runtime service started: mode={self.orchestrator.get_mode().value}, "
            f"runtimes={sorted(self.tailers)}"
        )

    async def stop(self) -> None:
        for tailer in self.tailers.values():
            await tailer.stop()

    def tailer(self, runtime: str) -> SessionTailer:
        tailer = self.tailers.get(runtime)
        if tailer is None:
            raise KeyError(runtime)
        return tailer

    def register_session(self, runtime: str, session_id: str, agent_id: int) -> None:
        self.tailer(runtime).register_session(session_id, agent_id)

    def unregister_session(self, runtime: str, session_id: str) -> None:
        self.tailer(runtime).unregister_session(session_id)
