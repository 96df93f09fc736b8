from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.config import settings
from pm_assistant.db.session import get_db
from pm_assistant.deps import Principal, get_principal
from pm_assistant.errors import ChatError, GenerationTimeoutError, InvalidInputError, NotFoundError
from pm_assistant.schemas.chat import (
    ChatQueryRequest,
    ChatResponse,
    ChatSessionDetail,
    ChatSessionSummary,
    StyleProfileOut,
    StyleProfileUpdate,
)
from pm_assistant.services import chat_service

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _http_error(exc: ChatError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, GenerationTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="An error occurred")


@router.post("/query", response_model=ChatResponse)
async def send_query(
    request: ChatQueryRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
) -> ChatResponse:
    try:
        chat_session = await chat_service.submit_query(session, request, principal.tenant_id, principal.user_id)
    except ChatError as exc:
        raise _http_error(exc) from exc
    return chat_service.to_response(chat_session)


@router.get("/history", response_model=list[ChatSessionSummary])
async def get_history(
    project_id: UUID | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    limit: int = Query(default=settings.history_default_limit, ge=1, le=200),
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
) -> list[ChatSessionSummary]:
    return await chat_service.list_history(
        session,
        principal.tenant_id,
        principal.user_id,
        project_id=str(project_id) if project_id else None,
        date_from=date_from,
        limit=limit,
    )


@router.get("/history/{session_id}", response_model=ChatSessionDetail)
async def get_session(
    session_id: UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
) -> ChatSessionDetail:
    try:
        return await chat_service.get_session(session, principal.tenant_id, principal.user_id, str(session_id))
    except ChatError as exc:
        raise _http_error(exc) from exc


@router.delete("/history/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: UUID,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
) -> Response:
    try:
        await chat_service.delete_session(session, principal.tenant_id, principal.user_id, str(session_id))
    except ChatError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/style-profile", response_model=StyleProfileOut)
async def get_style_profile(
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
) -> StyleProfileOut:
    try:
        profile = await chat_service.get_style_profile(session, principal.tenant_id, principal.user_id)
    except ChatError as exc:
        raise _http_error(exc) from exc
    return StyleProfileOut.model_validate(profile)


@router.put("/style-profile", response_model=StyleProfileOut)
async def update_style_profile(
    patch: StyleProfileUpdate,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
) -> StyleProfileOut:
    try:
        profile = await chat_service.update_style_profile(session, principal.tenant_id, principal.user_id, patch)
    except ChatError as exc:
        raise _http_error(exc) from exc
    return StyleProfileOut.model_validate(profile)
