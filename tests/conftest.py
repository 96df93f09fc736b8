"""
Shared fixtures: in-memory SQLite database, seeded tenant data, fake generators.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["OPENAI_API_KEY"] = ""

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from pm_assistant.db import models  # noqa: E402
from pm_assistant.services.generation import GenerationOptions, GenerationResult  # noqa: E402


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def tenant(db_session: AsyncSession) -> models.Tenant:
    record = models.Tenant(name="Acme", subdomain="acme")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def other_tenant(db_session: AsyncSession) -> models.Tenant:
    record = models.Tenant(name="Globex", subdomain="globex")
    db_session.add(record)
    await db_session.commit()
    return record


async def make_user(session: AsyncSession, tenant_id: str, email: str) -> models.User:
    user = models.User(tenant_id=tenant_id, email=email, first_name="Pat", last_name="Lee")
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def user(db_session: AsyncSession, tenant: models.Tenant) -> models.User:
    return await make_user(db_session, tenant.id, "pat@acme.test")


@pytest.fixture
async def other_user(db_session: AsyncSession, tenant: models.Tenant) -> models.User:
    return await make_user(db_session, tenant.id, "sam@acme.test")


@pytest.fixture
async def project(db_session: AsyncSession, tenant: models.Tenant, user: models.User) -> models.Project:
    record = models.Project(
        tenant_id=tenant.id,
        owner_id=user.id,
        name="Website Redesign",
        description="Refresh the marketing site",
        status="Active",
    )
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def tasks(db_session: AsyncSession, tenant: models.Tenant, project: models.Project) -> list[models.Task]:
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    records = [
        models.Task(
            tenant_id=tenant.id,
            project_id=project.id,
            title=f"Task {i}",
            description=f"Details {i}",
            status="Todo" if i % 2 else "Done",
            priority="High",
            created_at=base + timedelta(minutes=i),
        )
        for i in range(3)
    ]
    db_session.add_all(records)
    await db_session.commit()
    return records


async def add_chat_session(
    session: AsyncSession,
    user: models.User,
    question: str = "What is late?",
    response: str | None = "Nothing is late.",
    created_at: datetime | None = None,
    **fields,
) -> models.ChatSession:
    record = models.ChatSession(
        tenant_id=user.tenant_id,
        user_id=user.id,
        question=question,
        response=response,
        sources="[]",
        created_at=created_at or datetime.now(timezone.utc),
        **fields,
    )
    session.add(record)
    await session.commit()
    return record


class RecordingGenerator:
    """Generator double that records the prompt it was given."""

    def __init__(self, content: str = "Here is your answer.", confidence: float = 0.95) -> None:
        self.content = content
        self.confidence = confidence
        self.calls: list[tuple[str, GenerationOptions]] = []

    async def generate(self, user_content: str, options: GenerationOptions) -> GenerationResult:
        self.calls.append((user_content, options))
        return GenerationResult(
            content=self.content,
            token_count=42,
            model_id="test-model",
            latency_ms=5,
            confidence=self.confidence,
        )


@pytest.fixture
def recording_generator() -> RecordingGenerator:
    return RecordingGenerator()
