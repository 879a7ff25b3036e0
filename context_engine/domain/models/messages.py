from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Set, Union
from enum import Enum

from pydantic import Field, TypeAdapter, ValidationError

from context_engine.domain.exceptions import MessageDecodeError
from .base import WireModel


PRUNED_OUTPUT_PLACEHOLDER = "[Tool output cleared - see conversation summary]"


class MessageRole(str, Enum):
    """Provider message roles"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class TextPart(WireModel):
    """Plain text content"""
    type: Literal["text"] = "text"
    text: str


class ToolCallPart(WireModel):
    """Request for a tool invocation, emitted by the assistant"""
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str = Field(description="Unique id pairing this call with its result")
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(WireModel):
    """Outcome of a tool invocation, carried by a tool message"""
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str = Field(description="Id of the tool call this result answers")
    tool_name: str
    output: Any = None
    is_error: bool = False
    compacted_at: Optional[int] = Field(None, description="Epoch ms when the output was cleared")

    @property
    def is_compacted(self) -> bool:
        return self.compacted_at is not None


MessagePart = Annotated[
    Union[TextPart, ToolCallPart, ToolResultPart],
    Field(discriminator="type"),
]


class Message(WireModel):
    """A single provider message: plain text or a list of typed parts"""
    role: MessageRole
    content: Union[str, List[MessagePart]] = ""

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=text)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=MessageRole.USER, content=text)

    @classmethod
    def assistant(cls, text: str = "", tool_calls: Optional[List[ToolCallPart]] = None) -> "Message":
        if not tool_calls:
            return cls(role=MessageRole.ASSISTANT, content=text)
        parts: List[Any] = [TextPart(text=text)] if text else []
        parts.extend(tool_calls)
        return cls(role=MessageRole.ASSISTANT, content=parts)

    @classmethod
    def tool(cls, results: List[ToolResultPart]) -> "Message":
        return cls(role=MessageRole.TOOL, content=list(results))

    def parts(self) -> List[Any]:
        """Content as a list of parts (plain strings become one text part)"""
        if isinstance(self.content, str):
            return [TextPart(text=self.content)] if self.content else []
        return list(self.content)

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if isinstance(p, TextPart))

    def tool_calls(self) -> List[ToolCallPart]:
        return [p for p in self.parts() if isinstance(p, ToolCallPart)]

    def tool_results(self) -> List[ToolResultPart]:
        return [p for p in self.parts() if isinstance(p, ToolResultPart)]

    def tool_call_ids(self) -> Set[str]:
        return {p.tool_call_id for p in self.tool_calls()}

    def tool_result_ids(self) -> Set[str]:
        return {p.tool_call_id for p in self.tool_results()}

    def tool_call_names(self) -> List[str]:
        return [p.tool_name for p in self.tool_calls()]


_MESSAGE_LIST = TypeAdapter(List[Message])


def decode_messages(raw: Iterable[Any]) -> List[Message]:
    """Validate raw message payloads into typed messages"""
    try:
        return _MESSAGE_LIST.validate_python(list(raw))
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise MessageDecodeError(
            f"Invalid message payload ({exc.error_count()} error(s))",
            errors=[{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in errors],
        ) from exc


def encode_messages(messages: Iterable[Message]) -> List[Dict[str, Any]]:
    """Dump typed messages back to camelCase dicts"""
    return [m.to_wire() for m in messages]
