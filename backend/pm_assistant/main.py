import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pm_assistant.config import settings
from pm_assistant.logging_config import setup_logging
from pm_assistant.routes import chat, health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging(settings.log_level)
    if settings.mock_mode:
        logger.warning("OPENAI_API_KEY not set; assistant answers come from the offline mock")
    yield


app = FastAPI(title="PM Assistant", lifespan=lifespan)


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"detail": "An error occurred while processing your request."},
    )


app.include_router(health.router)
app.include_router(chat.router)
