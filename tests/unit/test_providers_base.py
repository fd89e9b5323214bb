"""Tests for provider data classes and capability checks."""

from __future__ import annotations

import pytest

from kubeai.providers.base import (
    ChatMessage,
    ModelProvider,
    StreamChunk,
    ToolCall,
    ToolCallingProvider,
    supports_tools,
)
from tests.fixtures.providers import PlainProvider, ScriptedProvider


class TestToolCall:
    def test_parsed_arguments(self):
        assert ToolCall("c1", "kubectl", '{"command": "get pods"}').parsed_arguments() == {
            "command": "get pods"
        }

    def test_empty_arguments(self):
        assert ToolCall("c1", "kubectl", "  ").parsed_arguments() == {}

    def test_non_object_rejected(self):
        with pytest.raises(ValueError, match="must be a JSON object"):
            ToolCall("c1", "kubectl", "[1]").parsed_arguments()

    def test_invalid_json_is_value_error(self):
        with pytest.raises(ValueError):
            ToolCall("c1", "kubectl", '{"a":').parsed_arguments()

    def test_to_dict(self):
        assert ToolCall("c1", "kubectl", "{}").to_dict() == {
            "id": "c1",
            "type": "function",
            "function": {"name": "kubectl", "arguments": "{}"},
        }


class TestChatMessage:
    def test_plain(self):
        assert ChatMessage("user", "hi").to_dict() == {"role": "user", "content": "hi"}

    def test_assistant_with_calls(self):
        msg = ChatMessage("assistant", "", tool_calls=[ToolCall("c1", "bash", "{}")])
        assert msg.to_dict()["tool_calls"][0]["id"] == "c1"

    def test_tool_result(self):
        assert ChatMessage("tool", "out", tool_call_id="c1").to_dict() == {
            "role": "tool",
            "content": "out",
            "tool_call_id": "c1",
        }


class TestCapabilities:
    def test_stream_chunk_defaults(self):
        chunk = StreamChunk()
        assert chunk.text == ""
        assert chunk.tool_calls == ()
        assert chunk.finish_reason is None

    def test_protocols(self):
        assert isinstance(PlainProvider(), ModelProvider)
        assert not isinstance(PlainProvider(), ToolCallingProvider)
        assert isinstance(ScriptedProvider(), ToolCallingProvider)

    def test_supports_tools(self):
        assert supports_tools(ScriptedProvider()) is True
        assert supports_tools(PlainProvider()) is False

    def test_flag_overrides_shape(self):
        provider = ScriptedProvider()
        provider.tool_calling = False  # type: ignore[attr-defined]
        assert supports_tools(provider) is False
