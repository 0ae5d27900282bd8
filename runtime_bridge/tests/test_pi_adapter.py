import unittest

from runtime_bridge.adapters.pi import PiAdapter, normalize_tool_name, translate_record
from runtime_bridge.models import (
    AgentEndEvent,
    AgentStartEvent,
    PermissionWaitEndEvent,
    PermissionWaitStartEvent,
    ToolEndEvent,
    ToolStartEvent,
)


class _RecordingHandler:
    def __init__(self) -> None:
        self.events: list = []

    def handle_event(self, event) -> None:
        self.events.append(event)


class PiAdapterTests(unittest.TestCase):
    def test_agent_start_carries_session_id(self) -> None:
        events = translate_record(1, {"type": "agent_start", "sessionId": "abc", "timestamp": 1000})

        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], AgentStartEvent)
        self.assertEqual(events[0].runtime, "pi")
        self.assertEqual(events[0].sessionId, "abc")
        self.assertEqual(events[0].ts, 1000)

    def test_agent_end_passes_reason_through(self) -> None:
        events = translate_record(1, {"type": "agent_end", "reason": "aborted", "timestamp": 5})
        self.assertIsInstance(events[0], AgentEndEvent)
        self.assertEqual(events[0].reason, "aborted")

        events = translate_record(1, {"type": "agent_end", "reason": 3, "timestamp": 5})
        self.assertIsNone(events[0].reason)

    def test_tool_execution_start_normalizes_tool_name(self) -> None:
        events = translate_record(2, {
            "type": "tool_execution_start",
            "toolCallId": "t1",
            "toolName": "bash",
            "args": {"command": "ls -la"},
            "parentToolId": "t0",
            "timestamp": 1001,
        })

        self.assertEqual(len(events), 1)
        event = events[0]
        self.assertIsInstance(event, ToolStartEvent)
        self.assertEqual(event.toolCallId, "t1")
        self.assertEqual(event.toolName, "Bash")
        self.assertEqual(event.argsPreview, '{"command":"ls -la"}')
        self.assertEqual(event.parentToolId, "t0")

    def test_normalize_tool_name_table(self) -> None:
        self.assertEqual(normalize_tool_name("read"), "Read")
        self.assertEqual(normalize_tool_name("LS"), "Ls")
        self.assertEqual(normalize_tool_name("find"), "Find")
        self.assertEqual(normalize_tool_name("web_search"), "web_search")

    def test_tool_execution_start_requires_string_tool_call_id(self) -> None:
        for record in [
            {"type": "tool_execution_start", "toolName": "bash"},
            {"type": "tool_execution_start", "toolCallId": 7, "toolName": "bash"},
            {"type": "tool_execution_start", "toolCallId": "", "toolName": "bash"},
        ]:
            self.assertEqual(translate_record(1, record), [], msg=str(record))

    def test_tool_execution_start_defaults_unknown_tool_name(self) -> None:
        event = translate_record(1, {"type": "tool_execution_start", "toolCallId": "t"})[0]
        self.assertEqual(event.toolName, "unknown")
        self.assertIsNone(event.argsPreview)

    def test_tool_execution_end_status(self) -> None:
        ok = translate_record(1, {"type": "tool_execution_end", "toolCallId": "t1", "status": "ok"})[0]
        self.assertIsInstance(ok, ToolEndEvent)
        self.assertEqual(ok.status, "ok")
        self.assertIsNone(ok.error)

        failed = translate_record(1, {"type": "tool_execution_end", "toolCallId": "t2", "error": "User denied permission"})[0]
        self.assertEqual(failed.status, "error")
        self.assertEqual(failed.error, "User denied permission")

        failed_obj = translate_record(1, {"type": "tool_execution_end", "toolCallId": "t3", "error": {"code": 1}})[0]
        self.assertEqual(failed_obj.status, "error")
        self.assertIsNone(failed_obj.error)

        for empty_container in ({}, []):
            event = translate_record(1, {"type": "tool_execution_end", "toolCallId": "t4", "error": empty_container})[0]
            self.assertEqual(event.status, "error", msg=str(empty_container))

        for unset in (None, False, 0, ""):
            event = translate_record(1, {"type": "tool_execution_end", "toolCallId": "t5", "error": unset})[0]
            self.assertEqual(event.status, "ok", msg=repr(unset))
            self.assertIsNone(event.error)

        self.assertEqual(translate_record(1, {"type": "tool_execution_end"}), [])

    def test_turn_end_maps_to_agent_end(self) -> None:
        events = translate_record(1, {"type": "turn_end", "timestamp": 10})
        self.assertIsInstance(events[0], AgentEndEvent)
        self.assertEqual(events[0].reason, "turn_complete")

    def test_passive_and_unknown_types_emit_nothing(self) -> None:
        for record_type in ["turn_start", "tool_execution_update", "message_streaming_update", "model_change"]:
            self.assertEqual(translate_record(1, {"type": record_type}), [], msg=record_type)
        for record in [None, 3, "agent_start", [], {}, {"type": None}]:
            self.assertEqual(translate_record(1, record), [], msg=str(record))

    def test_message_streaming_emits_paired_typing_tool(self) -> None:
        start = translate_record(4, {"type": "message_streaming_start", "timestamp": 1})[0]
        end = translate_record(4, {"type": "message_streaming_end", "timestamp": 2})[0]

        self.assertIsInstance(start, ToolStartEvent)
        self.assertEqual(start.toolName, "Typing")
        self.assertEqual(start.argsPreview, "Generating response...")
        self.assertIsInstance(end, ToolEndEvent)
        self.assertEqual(end.status, "ok")
        self.assertEqual(start.toolCallId, end.toolCallId)

    def test_permission_wait_records(self) -> None:
        start = translate_record(1, {
            "type": "permission_wait_start",
            "toolCallId": "t9",
            "toolName": "write",
            "timestamp": 3,
        })[0]
        end = translate_record(1, {"type": "permission_wait_end", "toolCallId": "t9", "approved": True})[0]

        self.assertIsInstance(start, PermissionWaitStartEvent)
        self.assertEqual(start.toolName, "Write")
        self.assertIsInstance(end, PermissionWaitEndEvent)
        self.assertEqual(end.toolCallId, "t9")
        self.assertEqual(translate_record(1, {"type": "permission_wait_end"}), [])

    def test_string_timestamp_is_parsed(self) -> None:
        event = translate_record(1, {"type": "turn_end", "timestamp": "2024-01-01T00:00:00Z"})[0]
        self.assertEqual(event.ts, 1704067200000)

    def test_adapter_forwards_to_handler(self) -> None:
        handler = _RecordingHandler()
        adapter = PiAdapter(handler)

        adapter.process_record(9, {"type": "agent_start", "sessionId": "s"})
        adapter.process_record(9, {"type": "nope"})
        adapter.process_record(9, {"type": "turn_end"})

        self.assertEqual([e.eventType for e in handler.events], ["agent_start", "agent_end"])
        self.assertTrue(all(e.agentId == 9 for e in handler.events))


if __name__ == "__main__":
    unittest.main()
