import asyncio

from pm_assistant.db.models import Base
from pm_assistant.db.session import engine


async def create_all() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print(f"Created {len(Base.metadata.tables)} tables.")


def main() -> None:
    asyncio.run(create_all())


if __name__ == "__main__":
    main()
