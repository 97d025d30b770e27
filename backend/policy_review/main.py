from contextlib import asynccontextmanager

from fastapi import FastAPI

from policy_review.api.v1.api import api_router
from policy_review.core.config import settings
from policy_review.core.logging import configure_logging
from policy_review.db.session import init_db

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def root_health() -> dict[str, str]:
    """Basic health endpoint."""
    return {"status": "ok"}


app.include_router(api_router, prefix="/api/v1")
