from typing import List, Optional, Set

from pydantic import BaseModel, Field

from .messages import Message


class ContextManagerConfig(BaseModel):
    """Budget policy for turn-based trimming"""
    max_messages: int = Field(default=20, ge=1, description="Soft ceiling on emitted messages")
    min_turns_to_keep: int = Field(default=2, ge=0, description="Most recent valid turns always kept intact")


class AssistantExchange(BaseModel):
    """One assistant message plus the tool message answering its tool calls"""
    assistant_message: Message
    tool_message: Optional[Message] = None

    @property
    def tool_call_ids(self) -> Set[str]:
        return self.assistant_message.tool_call_ids()

    @property
    def tool_result_ids(self) -> Set[str]:
        if self.tool_message is None:
            return set()
        return self.tool_message.tool_result_ids()

    @property
    def message_count(self) -> int:
        return 1 if self.tool_message is None else 2

    def messages(self) -> List[Message]:
        if self.tool_message is None:
            return [self.assistant_message]
        return [self.assistant_message, self.tool_message]

    def tool_names(self) -> List[str]:
        return self.assistant_message.tool_call_names()


class ConversationTurn(BaseModel):
    """A user message and all assistant activity up to the next user message"""
    user_message: Optional[Message] = Field(None, description="None only for a preamble before the first user message")
    exchanges: List[AssistantExchange] = Field(default_factory=list)
    is_valid: bool = True

    @property
    def message_count(self) -> int:
        own = 1 if self.user_message is not None else 0
        return own + sum(e.message_count for e in self.exchanges)

    def messages(self) -> List[Message]:
        """Flatten back to messages in original order"""
        flat: List[Message] = []
        if self.user_message is not None:
            flat.append(self.user_message)
        for exchange in self.exchanges:
            flat.extend(exchange.messages())
        return flat

    def tool_names(self) -> Set[str]:
        return {name for exchange in self.exchanges for name in exchange.tool_names()}


class ParseResult(BaseModel):
    """Flat history split into system message, turns and orphans"""
    system_message: Optional[Message] = None
    turns: List[ConversationTurn] = Field(default_factory=list)
    orphaned_messages: List[Message] = Field(default_factory=list)

    @property
    def message_count(self) -> int:
        system = 1 if self.system_message is not None else 0
        return system + len(self.orphaned_messages) + sum(t.message_count for t in self.turns)


class ValidationResult(BaseModel):
    """Tool-call/tool-result pairing check for a turn or exchange"""
    is_valid: bool
    issues: List[str] = Field(default_factory=list)


class TrimResult(BaseModel):
    """Reduced, still-valid history plus the tools it no longer references"""
    messages: List[Message]
    removed_tools: List[str] = Field(default_factory=list)
    active_tools: List[str] = Field(default_factory=list)
    messages_removed: int = 0
    turns_removed: int = 0
    invalid_turns_removed: int = 0

    @property
    def changed(self) -> bool:
        return self.messages_removed > 0 or self.invalid_turns_removed > 0
