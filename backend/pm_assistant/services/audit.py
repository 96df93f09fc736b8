from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.db import models


async def log_action(
    session: AsyncSession,
    actor: str,
    action: str,
    tenant_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
    commit: bool = True,
) -> None:
    entry = models.AuditLog(
        tenant_id=tenant_id,
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    session.add(entry)
    if commit:
        await session.commit()
