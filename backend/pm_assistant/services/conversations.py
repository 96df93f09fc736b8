from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.db import models
from pm_assistant.db.repository import TenantRepository
from pm_assistant.schemas.chat import Source

logger = logging.getLogger(__name__)

_SOURCES = TypeAdapter(list[Source])


def serialize_sources(sources: Sequence[Source]) -> str:
    return _SOURCES.dump_json(list(sources)).decode("utf-8")


def deserialize_sources(raw: str | None, session_id: str | None = None) -> list[Source]:
    if not raw:
        return []
    try:
        return _SOURCES.validate_json(raw)
    except (ValidationError, ValueError) as exc:
        logger.warning("Stored sources could not be decoded", extra={"session_id": session_id, "error": str(exc)})
        return []


def _repo(session: AsyncSession) -> TenantRepository[models.ChatSession]:
    return TenantRepository(session, models.ChatSession)


async def add_session(session: AsyncSession, chat_session: models.ChatSession) -> models.ChatSession:
    return await _repo(session).add(chat_session)


async def get_owned_session(
    session: AsyncSession,
    session_id: str,
    user_id: str,
    tenant_id: str,
) -> models.ChatSession | None:
    chat_session = await _repo(session).get_by_id(session_id, tenant_id)
    if chat_session is None or chat_session.user_id != user_id:
        return None
    return chat_session


async def list_root_sessions(
    session: AsyncSession,
    user_id: str,
    tenant_id: str,
    project_id: str | None = None,
    date_from: datetime | None = None,
    limit: int = 50,
) -> Sequence[models.ChatSession]:
    criteria = [
        models.ChatSession.user_id == user_id,
        models.ChatSession.parent_session_id.is_(None),
    ]
    if project_id is not None:
        criteria.append(models.ChatSession.project_id == project_id)
    if date_from is not None:
        criteria.append(models.ChatSession.created_at >= date_from)
    return await _repo(session).find(
        tenant_id,
        *criteria,
        order_by=(models.ChatSession.created_at.desc(), models.ChatSession.id.desc()),
        limit=limit,
    )


async def recent_root_sessions(
    session: AsyncSession,
    user_id: str,
    tenant_id: str,
    limit: int,
) -> Sequence[models.ChatSession]:
    return await list_root_sessions(session, user_id, tenant_id, limit=limit)


async def list_follow_ups(session: AsyncSession, session_id: str, tenant_id: str) -> Sequence[models.ChatSession]:
    return await _repo(session).find(
        tenant_id,
        models.ChatSession.parent_session_id == session_id,
        order_by=(models.ChatSession.created_at, models.ChatSession.id),
    )


async def delete_session(session: AsyncSession, chat_session: models.ChatSession) -> None:
    # Follow-ups survive their parent as root sessions.
    await session.execute(
        update(models.ChatSession)
        .where(
            models.ChatSession.tenant_id == chat_session.tenant_id,
            models.ChatSession.parent_session_id == chat_session.id,
        )
        .values(parent_session_id=None)
        .execution_options(synchronize_session="fetch")
    )
    await _repo(session).delete(chat_session)


async def project_names(session: AsyncSession, tenant_id: str, project_ids: set[str]) -> dict[str, str]:
    if not project_ids:
        return {}
    result = await session.execute(
        select(models.Project.id, models.Project.name).where(
            models.Project.tenant_id == tenant_id,
            models.Project.id.in_(sorted(project_ids)),
        )
    )
    return {row.id: row.name for row in result.all()}
