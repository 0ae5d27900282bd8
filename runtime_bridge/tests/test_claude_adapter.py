import json
import time
import unittest

from runtime_bridge.adapters.claude import ClaudeAdapter, translate_record
from runtime_bridge.models import (
    AgentEndEvent,
    SubagentEndEvent,
    SubagentStartEvent,
    ToolEndEvent,
    ToolStartEvent,
)


class _RecordingHandler:
    def __init__(self) -> None:
        self.events: list = []

    def handle_event(self, event) -> None:
        self.events.append(event)


def _progress(parent_tool_id, inner_type: str, content: list) -> dict:
    return {
        "type": "progress",
        "timestamp": 5000,
        "parentToolUseID": parent_tool_id,
        "data": {
            "type": "agent_progress",
            "message": {"type": inner_type, "message": {"role": inner_type, "content": content}},
        },
    }


class ClaudeAdapterTests(unittest.TestCase):
    def test_assistant_tool_use_blocks_emit_tool_starts(self) -> None:
        record = {
            "type": "assistant",
            "timestamp": 1700,
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Reading the file"},
                    {"type": "tool_use", "id": "toolu_1", "name": "Read", "input": {"file_path": "/tmp/a.py"}},
                    {"type": "tool_use", "id": "toolu_2", "input": {"command": "ls"}},
                ],
            },
        }

        events = translate_record(3, record)

        self.assertEqual(len(events), 2)
        first, second = events
        self.assertIsInstance(first, ToolStartEvent)
        self.assertEqual(first.runtime, "claude")
        self.assertEqual(first.agentId, 3)
        self.assertEqual(first.ts, 1700)
        self.assertEqual(first.toolCallId, "toolu_1")
        self.assertEqual(first.toolName, "Read")
        self.assertEqual(first.argsPreview, '{"file_path":"/tmp/a.py"}')
        self.assertIsNone(first.parentToolId)
        self.assertEqual(second.toolName, "unknown")

    def test_args_preview_is_truncated_to_120_chars(self) -> None:
        long_command = "x" * 500
        record = {
            "type": "assistant",
            "message": {"content": [{"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": long_command}}]},
        }

        event = translate_record(1, record)[0]

        self.assertEqual(len(event.argsPreview), 120)
        self.assertEqual(event.argsPreview, json.dumps({"command": long_command}, separators=(",", ":"))[:120])

    def test_args_preview_for_empty_and_missing_input(self) -> None:
        record = {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "tool_use", "id": "a", "name": "Read", "input": {}},
                    {"type": "tool_use", "id": "b", "name": "Read"},
                    {"type": "tool_use", "id": "c", "name": "Read", "input": ""},
                ]
            },
        }

        previews = [event.argsPreview for event in translate_record(1, record)]

        self.assertEqual(previews, ["{}", None, None])

    def test_tool_use_without_string_id_is_skipped(self) -> None:
        record = {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "tool_use", "id": 42, "name": "Read"},
                    {"type": "tool_use", "name": "Write"},
                    "not-a-block",
                    {"type": "tool_use", "id": "ok", "name": "Edit"},
                ]
            },
        }

        events = translate_record(1, record)

        self.assertEqual([e.toolCallId for e in events], ["ok"])

    def test_user_tool_results_emit_tool_ends(self) -> None:
        record = {
            "type": "user",
            "timestamp": "2026-02-16T10:00:00Z",
            "message": {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "toolu_1", "content": "done"},
                    {"type": "tool_result", "content": "orphan"},
                    {"type": "text", "text": "hello"},
                ],
            },
        }

        events = translate_record(2, record)

        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], ToolEndEvent)
        self.assertEqual(events[0].toolCallId, "toolu_1")
        self.assertEqual(events[0].status, "ok")
        self.assertEqual(events[0].ts, 1771236000000)

    def test_turn_duration_system_record_ends_agent_turn(self) -> None:
        events = translate_record(4, {"type": "system", "subtype": "turn_duration", "timestamp": 9})

        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], AgentEndEvent)
        self.assertEqual(events[0].reason, "turn_complete")
        self.assertEqual(events[0].ts, 9)

    def test_other_system_subtypes_are_ignored(self) -> None:
        self.assertEqual(translate_record(4, {"type": "system", "subtype": "compact_boundary"}), [])

    def test_progress_assistant_emits_subagent_start_then_tool_start(self) -> None:
        record = _progress("toolu_task", "assistant", [
            {"type": "tool_use", "id": "toolu_child", "name": "Grep", "input": {"pattern": "x"}},
        ])

        events = translate_record(7, record)

        self.assertEqual(len(events), 2)
        start, tool = events
        self.assertIsInstance(start, SubagentStartEvent)
        self.assertEqual(start.subagentId, "7:toolu_task")
        self.assertEqual(start.parentToolId, "toolu_task")
        self.assertEqual(start.label, "Grep")
        self.assertIsInstance(tool, ToolStartEvent)
        self.assertEqual(tool.toolCallId, "toolu_child")
        self.assertEqual(tool.parentToolId, "toolu_task")
        self.assertIsNone(tool.argsPreview)

    def test_progress_user_emits_tool_end_then_subagent_end(self) -> None:
        record = _progress("toolu_task", "user", [
            {"type": "tool_result", "tool_use_id": "toolu_child", "content": "3 matches"},
        ])

        events = translate_record(7, record)

        self.assertEqual(len(events), 2)
        end, sub_end = events
        self.assertIsInstance(end, ToolEndEvent)
        self.assertEqual(end.toolCallId, "toolu_child")
        self.assertEqual(end.parentToolId, "toolu_task")
        self.assertIsInstance(sub_end, SubagentEndEvent)
        self.assertEqual(sub_end.subagentId, "7:toolu_task")
        self.assertEqual(sub_end.parentToolId, "toolu_task")
        self.assertEqual(sub_end.reason, "tool_result")

    def test_progress_pairs_stay_interleaved_per_block(self) -> None:
        record = _progress("p1", "assistant", [
            {"type": "tool_use", "id": "a", "name": "Read"},
            {"type": "tool_use", "id": "b", "name": "Bash"},
        ])

        kinds = [(e.eventType, getattr(e, "toolCallId", None)) for e in translate_record(1, record)]

        self.assertEqual(kinds, [
            ("subagent_start", None),
            ("tool_start", "a"),
            ("subagent_start", None),
            ("tool_start", "b"),
        ])

    def test_malformed_progress_records_emit_nothing(self) -> None:
        content = [{"type": "tool_use", "id": "a", "name": "Read"}]
        bad_records = [
            _progress(None, "assistant", content),
            _progress("", "assistant", content),
            _progress(12, "assistant", content),
            {"type": "progress", "parentToolUseID": "p", "data": {"message": {"type": "assistant"}}},
            {"type": "progress", "parentToolUseID": "p", "data": {"message": {"type": "assistant", "message": {"content": "text"}}}},
            {"type": "progress", "parentToolUseID": "p", "data": "hook_progress"},
            _progress("p", "system", content),
        ]
        for record in bad_records:
            self.assertEqual(translate_record(1, record), [], msg=str(record))

    def test_unknown_and_malformed_records_are_ignored(self) -> None:
        for record in [None, "assistant", 12, [], {}, {"type": 5}, {"type": "summary"},
                       {"type": "assistant"}, {"type": "assistant", "message": "hi"},
                       {"type": "user", "message": {"content": None}}]:
            self.assertEqual(translate_record(1, record), [], msg=str(record))

    def test_missing_timestamp_uses_wall_clock(self) -> None:
        before = int(time.time() * 1000)
        events = translate_record(1, {"type": "system", "subtype": "turn_duration"})
        self.assertGreaterEqual(events[0].ts, before)

    def test_adapter_forwards_events_to_handler_in_order(self) -> None:
        handler = _RecordingHandler()
        adapter = ClaudeAdapter(handler)

        adapter.process_record(1, _progress("p", "user", [{"type": "tool_result", "tool_use_id": "c"}]))
        adapter.process_record(1, {"type": "bogus"})

        self.assertEqual([e.eventType for e in handler.events], ["tool_end", "subagent_end"])


if __name__ == "__main__":
    unittest.main()
