from typing import Any, Dict, List, Optional


class ContextEngineError(Exception):
    """Base error for the context engine"""

    code = "CONTEXT_ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ContextEngineError):
    """Invalid or inconsistent configuration"""

    code = "INVALID_CONFIGURATION"


class MessageDecodeError(ContextEngineError):
    """Raw message payload failed schema validation"""

    code = "INVALID_MESSAGES"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, details={"errors": errors or []})
        self.errors = errors or []


class EstimationError(ContextEngineError):
    """Token estimation collaborator failed"""

    code = "ESTIMATION_FAILED"

    def __init__(self, message: str, model_id: Optional[str] = None):
        super().__init__(message, details={"model_id": model_id})
        self.model_id = model_id


class PersistenceError(ContextEngineError):
    """Session storage collaborator failed"""

    code = "PERSISTENCE_FAILED"

    def __init__(self, message: str, session_id: Optional[str] = None):
        super().__init__(message, details={"session_id": session_id})
        self.session_id = session_id


class SessionNotFoundError(PersistenceError):
    """No stored history for the requested session"""

    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", session_id=session_id)


class PromptFileError(ContextEngineError):
    """Prompt file missing or unreadable"""

    code = "PROMPT_FILE_ERROR"
