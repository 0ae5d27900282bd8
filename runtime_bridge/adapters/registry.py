"""Adapter registry keyed by runtime kind."""
from __future__ import annotations

from runtime_bridge.adapters.base import BaseAdapter, EventHandler
from runtime_bridge.adapters.claude import ClaudeAdapter
from runtime_bridge.adapters.pi import PiAdapter

_ADAPTERS: dict[str, type[BaseAdapter]] = {
    "claude": ClaudeAdapter,
    "pi": PiAdapter,
}


def adapter_for(runtime: str, handler: EventHandler) -> BaseAdapter:
    """Build the record adapter for `runtime`, emitting into `handler`.

    Additional runtimes can be registered here.
    """
    adapter_cls = _ADAPTERS.get((runtime or "").strip().lower())
    if adapter_cls is None:
        raise ValueError(f"Unknown runtime: {runtime!r}")
    return adapter_cls(handler)
