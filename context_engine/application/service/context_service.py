from typing import Any, Dict, Iterable, List, Optional
import time

import structlog
from langchain_core.messages import BaseMessage
from pydantic import BaseModel

from context_engine.domain.exceptions import SessionNotFoundError
from context_engine.domain.models.messages import Message, MessageRole, decode_messages
from context_engine.domain.models.adapters import from_langchain, to_langchain
from context_engine.domain.models.conversation import ContextManagerConfig, TrimResult, ValidationResult
from context_engine.domain.models.context_stats import CompactionResult, ContextStats
from context_engine.domain.context.compaction_policy import CompactionPolicy
from context_engine.domain.context.context_manager import ContextManager
from context_engine.domain.context.memory.session_repository import SessionRepository
from context_engine.domain.context.memory.working_memory import WorkingMemoryTracker
from context_engine.domain.context.state.state_manager import StateManager
from context_engine.infrastructure.observability.logging import ContextLogger, MetricsCollector, metrics
from context_engine.infrastructure.prompts.prompt_file import PromptBuilder

logger = structlog.get_logger(__name__)


def _decode_incoming(raw_messages: Iterable[Any]) -> List[Message]:
    """Typed messages from wire dicts or LangChain message objects"""
    raw = list(raw_messages)
    if raw and all(isinstance(msg, BaseMessage) for msg in raw):
        return from_langchain(raw)
    return decode_messages(raw)


class PreparedContext(BaseModel):
    """History ready to send to the provider"""
    messages: List[Message]
    trim: TrimResult

    def to_langchain(self) -> List[BaseMessage]:
        return to_langchain(self.messages)


class AppendResult(BaseModel):
    """Outcome of appending messages to a session"""
    message_count: int
    validation: ValidationResult


class ContextService:
    """Session-level context operations; every collaborator is injected"""

    def __init__(
        self,
        repository: SessionRepository,
        policy: CompactionPolicy,
        config: Optional[ContextManagerConfig] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        default_model_id: str = "openai/gpt-4o-mini",
        state_manager: Optional[StateManager] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self.repository = repository
        self.policy = policy
        self.config = config or ContextManagerConfig()
        self.context_manager = ContextManager(self.config)
        self.prompt_builder = prompt_builder
        self.default_model_id = default_model_id
        self.state_manager = state_manager or StateManager()
        self.metrics = metrics_collector or metrics
        self.context_logger = ContextLogger(__name__)

    async def get_context_stats(self, session_id: str, model_id: Optional[str] = None) -> ContextStats:
        """Token usage of the stored history"""

        with structlog.contextvars.bound_contextvars(session_id=session_id):
            snapshot = await self.repository.load(session_id)
            return self.policy.compute_stats(snapshot.messages, model_id or self.default_model_id)

    async def compact(self, session_id: str, model_id: Optional[str] = None, force: bool = False) -> CompactionResult:
        """Compact the stored history; saves only when something changed"""

        model_id = model_id or self.default_model_id

        with structlog.contextvars.bound_contextvars(session_id=session_id):
            async with self.state_manager.session(session_id):
                started = time.perf_counter()
                snapshot = await self.repository.load(session_id)
                working_memory = WorkingMemoryTracker.from_state(snapshot.working_memory)

                outcome = self.policy.compact(snapshot.messages, working_memory, self.config, model_id, force=force)

                if outcome.result.compacted:
                    await self.repository.save(session_id, outcome.messages, outcome.working_memory.to_state())

                duration_ms = (time.perf_counter() - started) * 1000
                self.context_logger.log_compaction(session_id, model_id, outcome.result, forced=force, duration_ms=duration_ms)
                self.metrics.record_latency("compaction", duration_ms, tags={"model_id": model_id})
                self.metrics.increment_counter("compaction.compacted" if outcome.result.compacted else "compaction.skipped")

                return outcome.result

    async def prepare_context(self, session_id: str) -> PreparedContext:
        """
        Trim the stored history to the message budget and build the outgoing messages.

        The trimmed history is saved when anything was dropped. With a prompt builder the
        built system message replaces any stored leading system message.
        """


        with structlog.contextvars.bound_contextvars(session_id=session_id):
            async with self.state_manager.session(session_id):
                snapshot = await self.repository.load(session_id)
                working_memory = WorkingMemoryTracker.from_state(snapshot.working_memory)

                trim = self.context_manager.trim_context(snapshot.messages, working_memory)
                if trim.changed:
                    await self.repository.save(session_id, trim.messages, working_memory.to_state())
                    self.context_logger.log_trim(session_id, trim, messages_before=len(snapshot.messages))

                messages = list(trim.messages)
                if self.prompt_builder is not None:
                    if messages and messages[0].role == MessageRole.SYSTEM:
                        messages = messages[1:]
                    messages.insert(0, self.prompt_builder.build_system_message(working_memory))

                return PreparedContext(messages=messages, trim=trim)

    async def append_messages(self, session_id: str, raw_messages: Iterable[Any]) -> AppendResult:
        """Decode and append wire or LangChain messages, folding tool results into working memory"""

        new_messages = _decode_incoming(raw_messages)

        with structlog.contextvars.bound_contextvars(session_id=session_id):
            async with self.state_manager.session(session_id):
                try:
                    snapshot = await self.repository.load(session_id)
                    history = snapshot.messages
                    working_memory = WorkingMemoryTracker.from_state(snapshot.working_memory)
                except SessionNotFoundError:
                    history = []
                    working_memory = WorkingMemoryTracker()

                self.context_manager.observe_tool_results(new_messages, working_memory)
                history = history + new_messages
                await self.repository.save(session_id, history, working_memory.to_state())

                validation = self.context_manager.validate_messages(history)
                self.context_logger.log_context_update(
                    session_id,
                    context_type="messages",
                    action="append",
                    details={"appended": len(new_messages), "total": len(history), "valid": validation.is_valid},
                )
                return AppendResult(message_count=len(history), validation=validation)

    async def get_working_memory(self, session_id: str) -> Dict[str, Any]:
        snapshot = await self.repository.load(session_id)
        return snapshot.working_memory.to_wire()
