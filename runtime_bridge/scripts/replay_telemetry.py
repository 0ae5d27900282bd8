#!/usr/bin/env python3
"""Replay a captured Pi telemetry log into the telemetry directory.

Each record is re-stamped with the target session id and written through
the batching TelemetryWriter, so a running bridge tails it like a live
session.

Usage:
  python -m runtime_bridge.scripts.replay_telemetry captured.jsonl --session demo
  python -m runtime_bridge.scripts.replay_telemetry captured.jsonl --session demo --delay-ms 250
"""
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Optional

from runtime_bridge import config
from runtime_bridge.telemetry_writer import TelemetryWriter


async def _run(
    source: Path,
    session_id: str,
    directory: Optional[Path] = None,
    delay_ms: int = 0,
    flush_interval_ms: int = config.TELEMETRY_FLUSH_INTERVAL_MS,
) -> int:
    if not source.is_file():
        print(f"Source log not found: {source}")
        return 1

    writer = TelemetryWriter(directory, flush_interval_ms=flush_interval_ms)
    target = writer.start(session_id)
    writer.run()

    replayed = 0
    skipped = 0
    try:
        with source.open("r", encoding="utf-8") as fh:
            for line in fh:
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except ValueError:
                    skipped += 1
                    continue
                if not isinstance(record, dict):
                    skipped += 1
                    continue
                writer.enqueue({**record, "sessionId": session_id})
                replayed += 1
                if delay_ms > 0:
                    await asyncio.sleep(delay_ms / 1000.0)
    finally:
        await writer.stop()

    print(f"{target}: records_replayed={replayed} lines_skipped={skipped}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay a captured Pi telemetry log")
    parser.add_argument("source", type=Path, help="JSONL file to replay")
    parser.add_argument("--session", required=True, help="Session id to write the replay under")
    parser.add_argument("--dir", type=Path, default=None, help="Telemetry directory (default: RUNTIME_BRIDGE_PI_TELEMETRY_DIR)")
    parser.add_argument("--delay-ms", type=int, default=0, help="Pause between records to mimic a live session")
    args = parser.parse_args()
    return asyncio.run(_run(args.source, args.session, args.dir, args.delay_ms))


if __name__ == "__main__":
    raise SystemExit(main())
