"""FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from docsum.api.routes.documents import router as documents_router
from docsum.api.routes.health import router as health_router
from docsum.api.routes.metrics import router as metrics_router
from docsum.api.routes.models import router as models_router
from docsum.config import get_settings
from docsum.db.engine import get_async_engine
from docsum.db.models import Base


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables on SQLite; other databases are migrated with Alembic."""
    if get_settings().database_url.startswith("sqlite"):
        async with get_async_engine().begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(title="Document Summarizer API", version="0.1.0", lifespan=lifespan)

# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(models_router)
app.include_router(documents_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Document Summarizer API", "version": "0.1.0"}
