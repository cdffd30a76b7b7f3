"""FastAPI dependencies shared by the routes."""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from docsum.config import Settings, get_settings
from docsum.db.engine import get_session
from docsum.db.repositories import DocumentRepository
from docsum.db.sql_repositories import SqlDocumentRepository
from docsum.llm.client import ModelClient, build_model_client
from docsum.pipeline.orchestrator import DocumentPipeline


async def get_document_repository(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DocumentRepository:
    """Repository bound to the request's database session."""
    return SqlDocumentRepository(session)


async def get_model_client(
    settings: Annotated[Settings, Depends(get_settings)],
    x_model_api_key: Annotated[str | None, Header()] = None,
) -> ModelClient:
    """Model client for this request.

    A key in the `X-Model-Api-Key` header overrides the configured key;
    it is used for this request only and never stored.
    """
    return build_model_client(settings, api_key=x_model_api_key)


async def get_pipeline(
    repo: Annotated[DocumentRepository, Depends(get_document_repository)],
    client: Annotated[ModelClient, Depends(get_model_client)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> DocumentPipeline:
    """Pipeline wired to the request's repository and model client."""
    return DocumentPipeline(repo, client, settings)
