from pm_assistant.db import models
from pm_assistant.services.context_builder import build_context, extract_sources


async def test_build_context_without_project_has_aggregates_only(db_session, tenant, project, tasks):
    bundle = await build_context(db_session, tenant.id)

    assert [p.id for p in bundle.projects] == [project.id]
    assert [t.title for t in bundle.tasks] == ["Task 0", "Task 1", "Task 2"]
    assert bundle.facts == {"total_projects": 1, "total_tasks": 3, "active_projects": 1}


async def test_build_context_with_project_adds_focused_facts(db_session, tenant, project, tasks):
    bundle = await build_context(db_session, tenant.id, project.id)

    assert bundle.facts["project_name"] == "Website Redesign"
    assert bundle.facts["project_status"] == "Active"
    assert bundle.facts["project_description"] == "Refresh the marketing site"
    assert bundle.facts["project_task_count"] == 3
    assert bundle.facts["project_tasks"][0] == {"title": "Task 0", "status": "Done", "priority": "High"}
    assert list(bundle.facts)[-3:] == ["total_projects", "total_tasks", "active_projects"]


async def test_build_context_counts_only_active_projects(db_session, tenant, project):
    db_session.add(models.Project(tenant_id=tenant.id, name="Old", status="Archived"))
    await db_session.commit()

    bundle = await build_context(db_session, tenant.id)

    assert bundle.facts["total_projects"] == 2
    assert bundle.facts["active_projects"] == 1


async def test_build_context_is_tenant_scoped(db_session, tenant, other_tenant, project, tasks):
    db_session.add(models.Project(tenant_id=other_tenant.id, name="Foreign", status="Active"))
    await db_session.commit()

    own = await build_context(db_session, tenant.id)
    foreign = await build_context(db_session, other_tenant.id)

    assert [p.name for p in own.projects] == ["Website Redesign"]
    assert [p.name for p in foreign.projects] == ["Foreign"]
    assert foreign.tasks == []


async def test_build_context_is_idempotent(db_session, tenant, project, tasks):
    first = await build_context(db_session, tenant.id, project.id)
    second = await build_context(db_session, tenant.id, project.id)

    assert first.facts == second.facts
    assert [t.id for t in first.tasks] == [t.id for t in second.tasks]


async def test_extract_sources_lists_projects_then_tasks(db_session, tenant, project, tasks):
    bundle = await build_context(db_session, tenant.id)

    sources = extract_sources(bundle, max_projects=5, max_tasks=2)

    assert [(s.type, s.name) for s in sources] == [
        ("Project", "Website Redesign"),
        ("Task", "Task 0"),
        ("Task", "Task 1"),
    ]
    assert sources[0].id == project.id
    assert sources[1].description == "Details 0"
