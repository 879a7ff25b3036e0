# Builders for message histories used across the test suite

from typing import Any, List, Optional

from context_engine.domain.models.messages import Message, ToolCallPart, ToolResultPart


def user(text: str = "hello") -> Message:
    return Message.user(text)


def reply(text: str = "done") -> Message:
    return Message.assistant(text)


def calls(*call_ids: str, tool: str = "cms_getPage", text: str = "") -> Message:
    return Message.assistant(
        text,
        tool_calls=[ToolCallPart(tool_call_id=call_id, tool_name=tool, args={"id": call_id}) for call_id in call_ids],
    )


def results(*call_ids: str, tool: str = "cms_getPage", output: Any = None) -> Message:
    return Message.tool(
        [
            ToolResultPart(tool_call_id=call_id, tool_name=tool, output=output if output is not None else {"ok": True})
            for call_id in call_ids
        ]
    )


def tool_turn(index: int, tool: Optional[str] = None, output: Any = None) -> List[Message]:
    """user, assistant with one call, tool result, assistant text: 4 messages"""
    tool = tool or f"tool_{index}"
    call_id = f"c{index}"
    return [
        user(f"question {index}"),
        calls(call_id, tool=tool),
        results(call_id, tool=tool, output=output),
        reply(f"answer {index}"),
    ]


def history(turns: int, system: bool = True, **kwargs) -> List[Message]:
    messages: List[Message] = [Message.system("You are a helpful assistant.")] if system else []
    for index in range(turns):
        messages.extend(tool_turn(index, **kwargs))
    return messages
