import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import ensure_dev_database_schema, settings
from app.db import session as db_session
from app.modules.session.registry import get_session_registry
from app.modules.session.router import router as session_router
from app.modules.story.router import router as story_router
from app.modules.telemetry.router import router as telemetry_router

logging.basicConfig(
    level=getattr(logging, str(settings.log_level or "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    if settings.env == "dev":
        ensure_dev_database_schema(str(db_session.engine.url))
    yield
    get_session_registry().reset()


app = FastAPI(title="Story Pages Backend", lifespan=_lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(story_router)
app.include_router(session_router)
app.include_router(telemetry_router)
