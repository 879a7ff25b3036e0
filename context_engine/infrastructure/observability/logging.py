import structlog
import logging
import sys
from typing import Dict, Any, Optional
from datetime import datetime, timezone
import os

from context_engine.domain.models.conversation import TrimResult
from context_engine.domain.models.context_stats import CompactionResult


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "context-engine"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add session context to all log entries"""

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id and "session_id" not in event_dict:
        event_dict["session_id"] = session_id

    return event_dict


class ContextLogger:
    """Structured events for context maintenance"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_trim(self, session_id: str, result: TrimResult, messages_before: int):
        """Log a trim of a session's history"""

        self.logger.info(
            "context_trim",
            session_id=session_id,
            messages_before=messages_before,
            messages_after=len(result.messages),
            turns_removed=result.turns_removed,
            invalid_turns_removed=result.invalid_turns_removed,
            removed_tools=result.removed_tools,
        )

    def log_compaction(
        self,
        session_id: str,
        model_id: str,
        result: CompactionResult,
        forced: bool = False,
        duration_ms: Optional[float] = None
    ):
        """Log a compaction request and its outcome"""

        self.logger.info(
            "context_compaction",
            session_id=session_id,
            model_id=model_id,
            forced=forced,
            compacted=result.compacted,
            reason=result.reason,
            tokens_before=result.tokens_before,
            tokens_after=result.tokens_after,
            tokens_saved=result.tokens_saved,
            pruned_outputs=result.pruned_outputs,
            removed_tools=result.removed_tools,
            duration_ms=duration_ms
        )

    def log_context_update(
        self,
        session_id: str,
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log context updates"""

        self.logger.info(
            "context_update",
            session_id=session_id,
            context_type=context_type,
            action=action,
            details=details or {}
        )


context_logger = ContextLogger("context_engine")


class MetricsCollector:
    """Collect metrics and log each sample"""

    def __init__(self):
        self.metrics: Dict[str, Any] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record operation latency"""

        key = f"latency.{operation}"
        if key not in self.metrics:
            self.metrics[key] = {
                "count": 0,
                "sum": 0,
                "min": float('inf'),
                "max": 0
            }

        self.metrics[key]["count"] += 1
        self.metrics[key]["sum"] += duration_ms
        self.metrics[key]["min"] = min(self.metrics[key]["min"], duration_ms)
        self.metrics[key]["max"] = max(self.metrics[key]["max"], duration_ms)

        context_logger.logger.info(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=duration_ms,
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric"""

        self.metrics[name] = self.metrics.get(name, 0) + value

        context_logger.logger.info(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )


metrics = MetricsCollector()
