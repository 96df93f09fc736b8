"""Point-in-time snapshot of tenant project data for a single query.

Projects and tasks are read in two separate statements, so the snapshot is
not transactionally consistent across them. Bounding what reaches the model
happens later, in ``prompts``; this module always loads the full tenant view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from pm_assistant.db import models
from pm_assistant.db.repository import TenantRepository
from pm_assistant.schemas.chat import Source


@dataclass
class ContextBundle:
    projects: list[models.Project] = field(default_factory=list)
    tasks: list[models.Task] = field(default_factory=list)
    facts: dict[str, Any] = field(default_factory=dict)


async def build_context(session: AsyncSession, tenant_id: str, project_id: str | None = None) -> ContextBundle:
    projects = list(await TenantRepository(session, models.Project).get_all(tenant_id))
    tasks = list(await TenantRepository(session, models.Task).get_all(tenant_id))
    return ContextBundle(projects=projects, tasks=tasks, facts=summarize(projects, tasks, project_id))


def summarize(
    projects: list[models.Project],
    tasks: list[models.Task],
    project_id: str | None = None,
) -> dict[str, Any]:
    facts: dict[str, Any] = {}
    if project_id is not None:
        project = next((p for p in projects if p.id == project_id), None)
        if project is not None:
            facts["project_name"] = project.name
            facts["project_status"] = project.status
            facts["project_description"] = project.description or ""

        project_tasks = [t for t in tasks if t.project_id == project_id]
        facts["project_task_count"] = len(project_tasks)
        facts["project_tasks"] = [
            {"title": t.title, "status": t.status, "priority": t.priority} for t in project_tasks
        ]

    facts["total_projects"] = len(projects)
    facts["total_tasks"] = len(tasks)
    facts["active_projects"] = sum(1 for p in projects if p.status == "Active")
    return facts


def extract_sources(bundle: ContextBundle, max_projects: int = 5, max_tasks: int = 5) -> list[Source]:
    sources = [
        Source(type="Project", id=p.id, name=p.name, description=p.description)
        for p in bundle.projects[:max_projects]
    ]
    sources.extend(
        Source(type="Task", id=t.id, name=t.title, description=t.description)
        for t in bundle.tasks[:max_tasks]
    )
    return sources
