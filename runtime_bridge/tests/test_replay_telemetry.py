import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path

from runtime_bridge.scripts import replay_telemetry
from runtime_bridge.watchers.session_tailer import SessionTailer


class _RecordingAdapter:
    def __init__(self) -> None:
        self.records: list = []

    def process_record(self, agent_id: int, record) -> None:
        self.records.append((agent_id, record))


class ReplayTelemetryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name)
        self.directory = self.root / "pi"
        self.source = self.root / "captured.jsonl"

    async def asyncTearDown(self) -> None:
        self.tmpdir.cleanup()

    async def test_replay_restamps_session_and_skips_bad_lines(self) -> None:
        self.source.write_text(
            '{"type":"agent_start","sessionId":"old","timestamp":1}\n'
            "not json\n"
            "\n"
            "[1, 2]\n"
            '{"type":"turn_end","sessionId":"old","timestamp":2}\n',
            encoding="utf-8",
        )

        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = await replay_telemetry._run(self.source, "demo", self.directory)

        self.assertEqual(code, 0)
        self.assertIn("records_replayed=2 lines_skipped=2", out.getvalue())
        lines = [json.loads(line) for line in (self.directory / "demo.jsonl").read_text(encoding="utf-8").splitlines()]
        self.assertEqual(lines, [
            {"type": "agent_start", "sessionId": "demo", "timestamp": 1},
            {"type": "turn_end", "sessionId": "demo", "timestamp": 2},
        ])

    async def test_replayed_session_is_tailed(self) -> None:
        self.source.write_text('{"type":"agent_start","timestamp":5}\n', encoding="utf-8")
        adapter = _RecordingAdapter()
        tailer = SessionTailer(adapter, self.directory, poll_interval_ms=60_000, native_watch=False)
        tailer.register_session("demo", 9)
        await tailer.start()
        try:
            with contextlib.redirect_stdout(io.StringIO()):
                await replay_telemetry._run(self.source, "demo", self.directory)
            tailer.poll_once()
        finally:
            await tailer.stop()

        self.assertEqual(adapter.records, [(9, {"type": "agent_start", "timestamp": 5, "sessionId": "demo"})])

    async def test_missing_source_returns_error_code(self) -> None:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = await replay_telemetry._run(self.root / "absent.jsonl", "demo", self.directory)

        self.assertEqual(code, 1)
        self.assertIn("Source log not found", out.getvalue())
        self.assertFalse((self.directory / "demo.jsonl").exists())


if __name__ == "__main__":
    unittest.main()
