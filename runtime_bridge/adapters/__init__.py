"""Record adapters for each agent runtime."""

from runtime_bridge.adapters.base import EventHandler, RecordProcessor
from runtime_bridge.adapters.claude import ClaudeAdapter
from runtime_bridge.adapters.pi import PiAdapter
from runtime_bridge.adapters.registry import adapter_for

__all__ = [
    "EventHandler",
    "RecordProcessor",
    "ClaudeAdapter",
    "PiAdapter",
    "adapter_for",
]
