"""Runtime bridge configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str, default: Path | None) -> Path | None:
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    return Path(value).expanduser()


# Telemetry directories (one <sessionId>.jsonl file per session)
PI_TELEMETRY_DIR = _env_path(
    "RUNTIME_BRIDGE_PI_TELEMETRY_DIR",
    Path.home() / ".pi" / "agent" / "pixel-agents",
)
# Claude transcript tailing is opt-in
CLAUDE_TELEMETRY_DIR = _env_path("RUNTIME_BRIDGE_CLAUDE_TELEMETRY_DIR", None)

# Which runtime is authoritative at startup
RUNTIME_MODE = os.getenv("RUNTIME_BRIDGE_MODE", "dual-read-claude-authoritative")

# Tailer tuning
FILE_POLL_INTERVAL_MS = _env_int("RUNTIME_BRIDGE_FILE_POLL_INTERVAL_MS", 50)
CREATION_POLL_INTERVAL_MS = _env_int("RUNTIME_BRIDGE_CREATION_POLL_INTERVAL_MS", 25)
CREATION_POLL_TIMEOUT_SECONDS = _env_int("RUNTIME_BRIDGE_CREATION_POLL_TIMEOUT_SECONDS", 30)
NATIVE_WATCH_ENABLED = _env_bool("RUNTIME_BRIDGE_NATIVE_WATCH_ENABLED", True)

# Orchestrator history
RECENT_EVENTS_CAPACITY = 200
ARGS_PREVIEW_MAX_CHARS = 120

# Producer-side writer
TELEMETRY_FLUSH_INTERVAL_MS = _env_int("RUNTIME_BRIDGE_TELEMETRY_FLUSH_INTERVAL_MS", 100)

# Server settings
HOST = os.getenv("RUNTIME_BRIDGE_HOST", "127.0.0.1")
PORT = _env_int("RUNTIME_BRIDGE_PORT", 8010)
