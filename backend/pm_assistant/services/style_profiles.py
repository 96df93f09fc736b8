import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.db import models
from pm_assistant.schemas.chat import StyleProfileUpdate

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = {
    "tone": "Direct",
    "prefer_bullets": True,
    "include_risks_by_default": True,
    "auto_create_tasks": False,
}


def _insert_for(session: AsyncSession):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def get_or_create_profile(session: AsyncSession, user_id: str, tenant_id: str) -> models.StyleProfile:
    """Return the user's profile, inserting the defaults on first access.

    The insert is an upsert keyed on (user_id, tenant_id), so concurrent first
    requests for the same user still leave exactly one row.
    """
    stmt = select(models.StyleProfile).where(
        models.StyleProfile.user_id == user_id,
        models.StyleProfile.tenant_id == tenant_id,
    )
    existing = (await session.execute(stmt)).scalar_one_or_none()
    if existing is not None:
        return existing

    now = datetime.now(timezone.utc)
    insert = _insert_for(session)
    await session.execute(
        insert(models.StyleProfile)
        .values(
            id=models.new_id(),
            user_id=user_id,
            tenant_id=tenant_id,
            created_at=now,
            updated_at=now,
            **DEFAULT_PROFILE,
        )
        .on_conflict_do_nothing(index_elements=["user_id", "tenant_id"])
    )
    await session.commit()
    logger.info("Default style profile created", extra={"user_id": user_id, "tenant_id": tenant_id})
    return (await session.execute(stmt)).scalar_one()


def apply_profile_patch(profile: models.StyleProfile, patch: StyleProfileUpdate) -> list[str]:
    changed: list[str] = []
    for field, value in patch.model_dump(exclude_none=True, mode="json").items():
        setattr(profile, field, value)
        changed.append(field)
    if changed:
        profile.updated_at = datetime.now(timezone.utc)
    return changed
