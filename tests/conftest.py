"""Shared pytest fixtures for all test suites."""

import json
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from docsum.config import Settings
from docsum.db.inmemory import InMemoryDocumentRepository
from docsum.db.models import Base
from docsum.llm.catalog import ModelInfo
from docsum.llm.client import FinishReason, GenerationRequest, GenerationResult

Scripted = GenerationResult | Exception | str


class ScriptedModelClient:
    """Model client returning scripted responses per task.

    Each task ("structure", "continuation", "summary") has its own queue.
    Strings are returned as complete responses, exceptions are raised.
    An exhausted summary queue falls back to `default_summary`.
    """

    def __init__(
        self,
        responses: dict[str, list[Scripted]] | None = None,
        *,
        models: list[ModelInfo] | Exception | None = None,
        default_summary: str | None = None,
    ) -> None:
        self.responses = {task: list(queue) for task, queue in (responses or {}).items()}
        self.models = models if models is not None else []
        self.default_summary = default_summary
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        queue = self.responses.get(request.task, [])
        if not queue:
            if request.task == "summary" and self.default_summary is not None:
                return GenerationResult(text=self.default_summary, finish_reason=FinishReason.stop)
            raise AssertionError(f"No scripted response left for task {request.task!r}")

        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, str):
            return GenerationResult(text=item, finish_reason=FinishReason.stop)
        return item

    async def list_models(self) -> list[ModelInfo]:
        if isinstance(self.models, Exception):
            raise self.models
        return self.models

    def tasks(self) -> list[str]:
        return [request.task for request in self.requests]


def outline_json(*sections: tuple[str, int, int]) -> str:
    """JSON outline text for (title, start_page, end_page) tuples."""
    return json.dumps(
        [{"title": title, "start_page": start, "end_page": end} for title, start, end in sections]
    )


def bullets(count: int, prefix: str = "Point") -> str:
    return "\n".join(f"• {prefix} {i}" for i in range(1, count + 1))


@pytest.fixture
def make_client() -> Callable[..., ScriptedModelClient]:
    """Factory for scripted model clients."""
    return ScriptedModelClient


@pytest.fixture
def make_outline() -> Callable[..., str]:
    return outline_json


@pytest.fixture
def make_bullets() -> Callable[..., str]:
    return bullets


@pytest.fixture
def settings() -> Settings:
    """Settings with small, fast defaults for pipeline tests."""
    return Settings(
        model_api_key="",
        summary_bullet_points=3,
        section_delay_seconds=2.0,
        model_rate_limit_enabled=False,
    )


@pytest.fixture
def repo() -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository()


class SleepRecorder:
    """Records requested sleeps instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine shared across sessions, with tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sqlite_session(sqlite_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSession(sqlite_engine, expire_on_commit=False) as session:
        yield session