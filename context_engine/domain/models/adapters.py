"""
Conversion between LangChain message objects and the engine's typed messages.

LangChain emits one ToolMessage per tool result; the engine groups every result
answering one assistant message into a single tool message.
"""

from typing import Any, Dict, List
import json

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from context_engine.domain.exceptions import MessageDecodeError
from .messages import Message, MessageRole, ToolCallPart, ToolResultPart


def _content_text(content: Any) -> str:
    """Flatten LangChain content (string or content blocks) to text"""
    if isinstance(content, str):
        return content
    pieces = []
    for block in content or []:
        if isinstance(block, str):
            pieces.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            pieces.append(block.get("text", ""))
    return "".join(pieces)


def from_langchain(messages: List[BaseMessage]) -> List[Message]:
    """Decode LangChain messages into engine messages"""

    converted: List[Message] = []
    call_names: Dict[str, str] = {}
    previous_was_tool = False

    for index, msg in enumerate(messages):
        if isinstance(msg, SystemMessage):
            converted.append(Message.system(_content_text(msg.content)))
            previous_was_tool = False

        elif isinstance(msg, HumanMessage):
            converted.append(Message.user(_content_text(msg.content)))
            previous_was_tool = False

        elif isinstance(msg, AIMessage):
            calls = []
            for call in msg.tool_calls:
                if not call.get("id"):
                    raise MessageDecodeError(
                        f"Tool call {call.get('name')!r} has no id",
                        errors=[{"loc": [index, "tool_calls"], "msg": "tool call id is required", "type": "missing"}],
                    )
                calls.append(
                    ToolCallPart(
                        tool_call_id=call["id"],
                        tool_name=call["name"],
                        args=call.get("args") or {},
                    )
                )
            for call in calls:
                call_names[call.tool_call_id] = call.tool_name
            converted.append(Message.assistant(_content_text(msg.content), tool_calls=calls))
            previous_was_tool = False

        elif isinstance(msg, ToolMessage):
            result = ToolResultPart(
                tool_call_id=msg.tool_call_id,
                tool_name=msg.name or call_names.get(msg.tool_call_id, ""),
                output=msg.content,
                is_error=getattr(msg, "status", "success") == "error",
            )
            # Consecutive tool messages answer the same assistant message
            if previous_was_tool:
                converted[-1] = Message.tool(converted[-1].tool_results() + [result])
            else:
                converted.append(Message.tool([result]))
            previous_was_tool = True

        else:
            raise MessageDecodeError(
                f"Unsupported LangChain message type: {msg.type}",
                errors=[{"loc": [index], "msg": "unsupported message type", "type": msg.type}],
            )

    return converted


def _output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)


def to_langchain(messages: List[Message]) -> List[BaseMessage]:
    """Encode engine messages as LangChain messages"""

    converted: List[BaseMessage] = []

    for msg in messages:
        if msg.role == MessageRole.SYSTEM:
            converted.append(SystemMessage(content=msg.text()))
        elif msg.role == MessageRole.USER:
            converted.append(HumanMessage(content=msg.text()))
        elif msg.role == MessageRole.ASSISTANT:
            converted.append(
                AIMessage(
                    content=msg.text(),
                    tool_calls=[
                        {"name": call.tool_name, "args": call.args, "id": call.tool_call_id, "type": "tool_call"}
                        for call in msg.tool_calls()
                    ],
                )
            )
        else:
            for result in msg.tool_results():
                converted.append(
                    ToolMessage(
                        content=_output_text(result.output),
                        tool_call_id=result.tool_call_id,
                        name=result.tool_name,
                        status="error" if result.is_error else "success",
                    )
                )

    return converted
