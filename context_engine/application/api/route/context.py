from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field

from context_engine.domain.models.base import WireModel
from context_engine.application.service.context_service import ContextService

router = APIRouter(prefix="/api/v1/sessions/{session_id}", tags=["context"])


class CompactRequest(WireModel):
    model_id: Optional[str] = None
    force: bool = False


class AppendMessagesRequest(WireModel):
    messages: List[Dict[str, Any]] = Field(default_factory=list)


def get_context_service(request: Request) -> ContextService:
    return request.app.state.context_service


@router.get("/context-stats")
async def context_stats(
    session_id: str,
    service: Annotated[ContextService, Depends(get_context_service)],
    model_id: Annotated[Optional[str], Query(alias="modelId")] = None,
):
    stats = await service.get_context_stats(session_id, model_id)
    return stats.to_wire()


@router.post("/compact")
async def compact(
    session_id: str,
    service: Annotated[ContextService, Depends(get_context_service)],
    body: Optional[CompactRequest] = None,
):
    body = body or CompactRequest()
    result = await service.compact(session_id, model_id=body.model_id, force=body.force)
    return result.to_wire()


@router.get("/working-memory")
async def working_memory(
    session_id: str,
    service: Annotated[ContextService, Depends(get_context_service)],
):
    return await service.get_working_memory(session_id)


@router.post("/messages")
async def append_messages(
    session_id: str,
    body: AppendMessagesRequest,
    service: Annotated[ContextService, Depends(get_context_service)],
):
    result = await service.append_messages(session_id, body.messages)
    return {
        "messageCount": result.message_count,
        "isValid": result.validation.is_valid,
        "issues": result.validation.issues,
    }
