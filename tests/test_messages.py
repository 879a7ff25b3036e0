import pytest

from context_engine.domain.exceptions import MessageDecodeError
from context_engine.domain.models.messages import (
    Message,
    MessageRole,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    decode_messages,
    encode_messages,
)


class TestMessageCodec:
    """Wire decoding and encoding of provider messages"""

    def test_decode_camel_case_parts(self):
        messages = decode_messages(
            [
                {"role": "user", "content": "hi"},
                {
                    "role": "assistant",
                    "content": [
                        {"type": "text", "text": "looking"},
                        {"type": "tool-call", "toolCallId": "c1", "toolName": "cms_getPage", "args": {"id": "p1"}},
                    ],
                },
                {
                    "role": "tool",
                    "content": [
                        {"type": "tool-result", "toolCallId": "c1", "toolName": "cms_getPage", "output": {"id": "p1"}}
                    ],
                },
            ]
        )

        assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT, MessageRole.TOOL]
        assert isinstance(messages[1].parts()[0], TextPart)
        assert messages[1].tool_call_ids() == {"c1"}
        assert messages[2].tool_results()[0].output == {"id": "p1"}

    def test_decode_accepts_snake_case(self):
        (message,) = decode_messages(
            [{"role": "tool", "content": [{"type": "tool-result", "tool_call_id": "c1", "tool_name": "t"}]}]
        )
        assert message.tool_result_ids() == {"c1"}

    def test_decode_reports_location(self):
        with pytest.raises(MessageDecodeError) as exc_info:
            decode_messages([{"role": "user", "content": "ok"}, {"role": "wizard", "content": "hi"}])

        error = exc_info.value
        assert error.code == "INVALID_MESSAGES"
        assert error.errors[0]["loc"][0] == 1

    def test_unknown_part_type(self):
        with pytest.raises(MessageDecodeError):
            decode_messages([{"role": "assistant", "content": [{"type": "image", "url": "x"}]}])

    def test_encode_uses_camel_case(self):
        encoded = encode_messages(
            [
                Message.assistant(tool_calls=[ToolCallPart(tool_call_id="c1", tool_name="t")]),
                Message.tool([ToolResultPart(tool_call_id="c1", tool_name="t", output="ok")]),
            ]
        )

        assert encoded[0] == {
            "role": "assistant",
            "content": [{"type": "tool-call", "toolCallId": "c1", "toolName": "t", "args": {}}],
        }
        assert encoded[1]["content"][0] == {
            "type": "tool-result",
            "toolCallId": "c1",
            "toolName": "t",
            "output": "ok",
            "isError": False,
        }

    def test_text_of_string_and_parts(self):
        assert Message.user("plain").text() == "plain"
        assert Message.user("").parts() == []
        assert Message.assistant("note", tool_calls=[ToolCallPart(tool_call_id="c1", tool_name="t")]).text() == "note"
