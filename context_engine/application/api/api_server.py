from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from context_engine.domain.exceptions import (
    ContextEngineError,
    EstimationError,
    MessageDecodeError,
    PersistenceError,
    SessionNotFoundError,
)
from context_engine.domain.context.memory.runtime_memory import InMemorySessionRepository
from context_engine.application.service.context_service import ContextService
from context_engine.infrastructure.config.settings import ContextSettings
from context_engine.infrastructure.prompts.prompt_file import CachedPromptFile, PromptBuilder
from .route.context import router as context_router

logger = structlog.get_logger(__name__)

# Most specific first: SessionNotFoundError is a PersistenceError
ERROR_STATUS = (
    (SessionNotFoundError, 404),
    (MessageDecodeError, 422),
    (EstimationError, 502),
    (PersistenceError, 503),
)


def _error_response(exc: ContextEngineError) -> JSONResponse:
    status_code = next((status for kind, status in ERROR_STATUS if isinstance(exc, kind)), 500)
    body = {"error": {"code": exc.code, "message": exc.message}}
    if isinstance(exc, MessageDecodeError):
        body["error"]["details"] = exc.errors
    return JSONResponse(status_code=status_code, content=body)


def create_app(service: ContextService) -> FastAPI:
    """HTTP surface over an already wired ContextService"""

    app = FastAPI(title="Context Engine", version="0.1.0")
    app.state.context_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ContextEngineError)
    async def context_engine_error_handler(request: Request, exc: ContextEngineError):
        logger.warning("Request failed", path=request.url.path, code=exc.code, error=exc.message)
        return _error_response(exc)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(context_router)
    return app


def build_service(settings: ContextSettings) -> ContextService:
    prompt_builder: Optional[PromptBuilder] = None
    if settings.system_prompt_path is not None:
        prompt_builder = PromptBuilder(CachedPromptFile(settings.system_prompt_path))

    return ContextService(
        repository=InMemorySessionRepository(),
        policy=settings.build_policy(),
        config=settings.to_context_config(),
        prompt_builder=prompt_builder,
        default_model_id=settings.default_model_id,
    )


def create_app_from_settings(settings: Optional[ContextSettings] = None) -> FastAPI:
    settings = settings or ContextSettings()
    app = create_app(build_service(settings))
    logger.info(
        "Context engine configured",
        max_messages=settings.max_messages,
        min_turns_to_keep=settings.min_turns_to_keep,
        tokenizer=settings.tokenizer,
        default_model_id=settings.default_model_id,
    )
    return app
