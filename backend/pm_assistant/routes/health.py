from fastapi import APIRouter

from pm_assistant.config import settings

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "mock_mode": settings.mock_mode}
