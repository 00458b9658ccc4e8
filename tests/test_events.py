"""Wire event parsing tests.

Test coverage:
- Every event type of the stream-json protocol
- Content part parsing (known, unknown and invalid parts)
- Malformed shapes become MalformedEvent, unknown types are ignored
"""

from __future__ import annotations

from cli_agent_provider.shared.parsers.events import (
    AssistantEvent,
    ErrorEvent,
    MalformedEvent,
    ResultEvent,
    SystemEvent,
    TextContent,
    ToolErrorContent,
    ToolResultContent,
    ToolUseContent,
    UserEvent,
    parse_content,
    parse_event,
)


class TestSystemAndResult:
    """Test system and result events."""

    def test_system_init(self):
        event = parse_event({
            "type": "system",
            "subtype": "init",
            "session_id": "abc",
            "model": "claude-opus",
            "tools": ["Read"],
        })
        assert isinstance(event, SystemEvent)
        assert event.session_id == "abc"
        assert event.model == "claude-opus"

    def test_result_full(self):
        event = parse_event({
            "type": "result",
            "subtype": "success",
            "usage": {
                "input_tokens": 10,
                "output_tokens": 5,
                "cache_read_input_tokens": 3,
            },
            "total_cost_usd": 0.25,
            "duration_ms": 1200,
            "session_id": "abc",
            "result": "done",
        })
        assert isinstance(event, ResultEvent)
        assert event.usage.input_tokens == 10
        assert event.usage.cache_read_input_tokens == 3
        assert event.usage.cache_creation_input_tokens == 0
        assert event.total_cost_usd == 0.25
        assert event.duration_ms == 1200
        assert event.result == "done"

    def test_result_cost_alias(self):
        event = parse_event({"type": "result", "cost_usd": 0.5})
        assert event.total_cost_usd == 0.5
        assert event.usage is None

    def test_result_null_fields_use_defaults(self):
        event = parse_event({
            "type": "result",
            "subtype": None,
            "is_error": None,
            "session_id": "abc",
            "usage": {
                "input_tokens": 10,
                "output_tokens": None,
                "cache_creation_input_tokens": None,
                "cache_read_input_tokens": None,
            },
        })
        assert isinstance(event, ResultEvent)
        assert event.subtype == ""
        assert event.is_error is False
        assert event.usage.input_tokens == 10
        assert event.usage.output_tokens == 0
        assert event.usage.cache_creation_input_tokens == 0
        assert event.session_id == "abc"

    def test_result_wrong_field_type_is_malformed(self):
        event = parse_event({"type": "result", "usage": "lots"})
        assert isinstance(event, MalformedEvent)
        assert "result" in event.reason


class TestMessageEvents:
    """Test assistant and user events."""

    def test_assistant_text_and_tool_use(self):
        event = parse_event({
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": "Let me look."},
                    {"type": "tool_use", "id": "t1", "name": "Read", "input": {"file_path": "a.py"}},
                ]
            },
            "session_id": "s",
        })
        assert isinstance(event, AssistantEvent)
        assert event.session_id == "s"
        assert event.content[0] == TextContent(text="Let me look.")
        assert isinstance(event.content[1], ToolUseContent)
        assert event.content[1].input == {"file_path": "a.py"}

    def test_user_tool_result_and_error(self):
        event = parse_event({
            "type": "user",
            "message": {
                "content": [
                    {"type": "tool_result", "tool_use_id": "t1", "content": "ok"},
                    {"type": "tool_error", "id": "t2", "error": {"message": "denied"}},
                ]
            },
        })
        assert isinstance(event, UserEvent)
        result, error = event.content
        assert isinstance(result, ToolResultContent)
        assert result.tool_use_id == "t1"
        assert result.is_error is False
        assert isinstance(error, ToolErrorContent)
        assert error.tool_use_id == "t2"

    def test_string_content_is_one_text_part(self):
        event = parse_event({"type": "assistant", "message": {"content": "plain"}})
        assert event.content == [TextContent(text="plain")]

    def test_missing_message_is_malformed(self):
        event = parse_event({"type": "assistant"})
        assert isinstance(event, MalformedEvent)
        assert event.raw == {"type": "assistant"}

    def test_content_not_a_list_is_malformed(self):
        event = parse_event({"type": "user", "message": {"content": 42}})
        assert isinstance(event, MalformedEvent)

    def test_tool_use_without_id_or_name(self):
        (part,) = parse_content([{"type": "tool_use", "input": "raw"}])
        assert part.id == ""
        assert part.name is None
        assert part.input == "raw"


class TestParseContent:
    """Test content part filtering."""

    def test_unknown_parts_dropped(self):
        parts = parse_content([
            {"type": "thinking", "thinking": "..."},
            {"type": "text", "text": "kept"},
            "not a dict",
            {"no_type": True},
        ])
        assert parts == [TextContent(text="kept")]

    def test_invalid_part_dropped(self):
        parts = parse_content([
            {"type": "text", "text": ["not", "a", "string"]},
            {"type": "text", "text": "ok"},
        ])
        assert parts == [TextContent(text="ok")]


class TestErrorAndUnknown:
    """Test error events, non-objects and unknown types."""

    def test_error_nested(self):
        event = parse_event({"type": "error", "error": {"message": "Rate limited", "code": 429}})
        assert isinstance(event, ErrorEvent)
        assert event.message == "Rate limited"
        assert event.code == "429"

    def test_error_string(self):
        event = parse_event({"type": "error", "error": "boom"})
        assert event.message == "boom"
        assert event.code is None

    def test_error_flat(self):
        event = parse_event({"type": "error", "message": "flat", "code": "E1"})
        assert event.message == "flat"
        assert event.code == "E1"

    def test_error_without_message(self):
        event = parse_event({"type": "error"})
        assert event.message == "Unknown error"

    def test_unknown_type_ignored(self):
        assert parse_event({"type": "stream_event", "event": {}}) is None
        assert parse_event({"no_type": 1}) is None

    def test_non_object_is_malformed(self):
        event = parse_event(["a", "list"])
        assert isinstance(event, MalformedEvent)
        assert "list" in event.reason
