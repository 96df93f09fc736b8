"""Conversational query pipeline.

``submit_query`` checks ownership, builds the context, assembles the prompt,
calls the generation backend and persists one ``ChatSession``. Nothing is
written for the session until generation has returned, so a failed precondition,
a timeout or a cancellation leaves no partial record behind.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.config import settings
from pm_assistant.db import models
from pm_assistant.db.repository import TenantRepository
from pm_assistant.errors import GenerationTimeoutError, InvalidInputError, NotFoundError
from pm_assistant.schemas.chat import (
    ChatQueryRequest,
    ChatResponse,
    ChatSessionDetail,
    ChatSessionSummary,
    StyleProfileUpdate,
)
from pm_assistant.services import conversations
from pm_assistant.services.audit import log_action
from pm_assistant.services.context_builder import build_context, extract_sources
from pm_assistant.services.generation import Generator, default_options, get_generator
from pm_assistant.services.prompts import PromptLimits, assemble_prompt
from pm_assistant.services.style_profiles import apply_profile_patch, get_or_create_profile

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "Chat session not found"


def _validate_question(question: str) -> None:
    if not question or not question.strip():
        raise InvalidInputError("Question is required")
    if len(question) > settings.max_question_length:
        raise InvalidInputError(f"Question must not exceed {settings.max_question_length} characters")


async def _require_user(session: AsyncSession, user_id: str, tenant_id: str) -> None:
    if not await TenantRepository(session, models.User).exists(user_id, tenant_id):
        raise NotFoundError("User not found")


async def _require_owned_session(
    session: AsyncSession,
    session_id: str,
    user_id: str,
    tenant_id: str,
    message: str = SESSION_NOT_FOUND,
) -> models.ChatSession:
    chat_session = await conversations.get_owned_session(session, session_id, user_id, tenant_id)
    if chat_session is None:
        raise NotFoundError(message)
    return chat_session


async def submit_query(
    session: AsyncSession,
    request: ChatQueryRequest,
    tenant_id: str,
    user_id: str,
    generator: Generator | None = None,
) -> models.ChatSession:
    _validate_question(request.question)
    project_id = str(request.project_id) if request.project_id else None
    parent_id = str(request.parent_session_id) if request.parent_session_id else None

    await _require_user(session, user_id, tenant_id)
    if project_id and not await TenantRepository(session, models.Project).exists(project_id, tenant_id):
        raise NotFoundError(f"Project with ID {project_id} not found")
    parent = None
    if parent_id:
        parent = await _require_owned_session(
            session, parent_id, user_id, tenant_id, f"Parent chat session with ID {parent_id} not found"
        )

    profile = await get_or_create_profile(session, user_id, tenant_id)

    started = time.perf_counter()
    bundle = await build_context(session, tenant_id, project_id)
    history: Sequence[models.ChatSession] = ()
    if parent is None and request.include_history:
        history = await conversations.recent_root_sessions(
            session, user_id, tenant_id, limit=settings.prompt_max_history
        )
    prompt = assemble_prompt(
        request.question,
        bundle,
        profile,
        include_history=request.include_history,
        parent=parent,
        history=history,
        limits=PromptLimits.from_settings(settings),
    )

    generator = generator or get_generator()
    options = default_options(prompt.system_instructions, bundle.facts)
    try:
        result = await asyncio.wait_for(
            generator.generate(prompt.user_content, options),
            timeout=settings.generation_timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        logger.warning("Generation timed out", extra={"user_id": user_id, "tenant_id": tenant_id})
        raise GenerationTimeoutError("The assistant took too long to respond. Please try again.") from exc
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    sources = extract_sources(bundle, settings.source_max_projects, settings.source_max_tasks)
    chat_session = models.ChatSession(
        id=models.new_id(),
        tenant_id=tenant_id,
        user_id=user_id,
        project_id=project_id,
        question=request.question,
        response=result.content,
        confidence=result.confidence,
        sources=conversations.serialize_sources(sources),
        parent_session_id=parent_id,
        model=result.model_id,
        token_count=result.token_count,
        response_time_ms=elapsed_ms,
    )
    # The audit row rides on the same commit as the session.
    await log_action(
        session,
        actor=f"user:{user_id}",
        action="chat_answered",
        tenant_id=tenant_id,
        entity_type="chat_session",
        entity_id=chat_session.id,
        details={
            "project_id": project_id,
            "parent_session_id": parent_id,
            "model": result.model_id,
            "token_count": result.token_count,
            "response_time_ms": elapsed_ms,
            "status": "success" if result.confidence > 0 else "degraded",
        },
        commit=False,
    )
    chat_session = await conversations.add_session(session, chat_session)

    logger.info(
        "Chat query answered",
        extra={
            "session_id": chat_session.id,
            "model": result.model_id,
            "confidence": result.confidence,
            "response_time_ms": elapsed_ms,
        },
    )
    return chat_session


def to_response(chat_session: models.ChatSession) -> ChatResponse:
    return ChatResponse(
        session_id=chat_session.id,
        response=chat_session.response or "",
        confidence=chat_session.confidence,
        sources=conversations.deserialize_sources(chat_session.sources, chat_session.id),
        model=chat_session.model,
        token_count=chat_session.token_count,
        response_time_ms=chat_session.response_time_ms,
    )


def _summary_fields(chat_session: models.ChatSession, names: dict[str, str]) -> dict:
    return {
        "id": chat_session.id,
        "project_id": chat_session.project_id,
        "project_name": names.get(chat_session.project_id) if chat_session.project_id else None,
        "question": chat_session.question,
        "response": chat_session.response,
        "confidence": chat_session.confidence,
        "sources": conversations.deserialize_sources(chat_session.sources, chat_session.id),
        "parent_session_id": chat_session.parent_session_id,
        "created_at": chat_session.created_at,
        "model": chat_session.model,
    }


async def list_history(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
    project_id: str | None = None,
    date_from: datetime | None = None,
    limit: int | None = None,
) -> list[ChatSessionSummary]:
    rows = await conversations.list_root_sessions(
        session,
        user_id,
        tenant_id,
        project_id=project_id,
        date_from=date_from,
        limit=limit or settings.history_default_limit,
    )
    names = await conversations.project_names(session, tenant_id, {r.project_id for r in rows if r.project_id})
    return [ChatSessionSummary(**_summary_fields(row, names)) for row in rows]


async def get_session(session: AsyncSession, tenant_id: str, user_id: str, session_id: str) -> ChatSessionDetail:
    chat_session = await _require_owned_session(session, session_id, user_id, tenant_id)
    names = await conversations.project_names(
        session, tenant_id, {chat_session.project_id} if chat_session.project_id else set()
    )
    follow_ups = await conversations.list_follow_ups(session, chat_session.id, tenant_id)
    return ChatSessionDetail(
        **_summary_fields(chat_session, names),
        follow_up_ids=[f.id for f in follow_ups if f.user_id == user_id],
    )


async def delete_session(session: AsyncSession, tenant_id: str, user_id: str, session_id: str) -> None:
    chat_session = await _require_owned_session(session, session_id, user_id, tenant_id)
    await conversations.delete_session(session, chat_session)
    await log_action(
        session,
        actor=f"user:{user_id}",
        action="chat_session_deleted",
        tenant_id=tenant_id,
        entity_type="chat_session",
        entity_id=session_id,
    )


async def get_style_profile(session: AsyncSession, tenant_id: str, user_id: str) -> models.StyleProfile:
    await _require_user(session, user_id, tenant_id)
    return await get_or_create_profile(session, user_id, tenant_id)


async def update_style_profile(
    session: AsyncSession,
    tenant_id: str,
    user_id: str,
    patch: StyleProfileUpdate,
) -> models.StyleProfile:
    await _require_user(session, user_id, tenant_id)
    profile = await get_or_create_profile(session, user_id, tenant_id)
    changed = apply_profile_patch(profile, patch)
    if not changed:
        return profile
    profile = await TenantRepository(session, models.StyleProfile).update(profile)
    await log_action(
        session,
        actor=f"user:{user_id}",
        action="style_profile_updated",
        tenant_id=tenant_id,
        entity_type="style_profile",
        entity_id=profile.id,
        details={"fields": changed},
    )
    return profile
