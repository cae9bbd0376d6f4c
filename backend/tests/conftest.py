"""Shared test fixtures for the product copy backend test suite.

Tests run against an in-memory SQLite database and fake LLM clients, so no
PostgreSQL instance or provider API key is needed.
"""

from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator, Callable
from typing import Any

# Must be set before app modules build the engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import Base, get_db
from app.main import app
from app.modules.catalog.models import Product, ProductVariant  # noqa: F401
from app.modules.documents.models import Document, DocumentVersion  # noqa: F401
from app.modules.documents.router import get_pipeline
from app.modules.extraction.agents.base import LLMClient
from app.modules.extraction.agents.judge import JudgeAgent
from app.modules.extraction.agents.language import LanguageDetectorAgent
from app.modules.extraction.agents.structurer import StructuringAgent
from app.modules.extraction.consensus import ConsensusValidator
from app.modules.extraction.pipeline import DocumentPipeline


# ---------------------------------------------------------------------------
# Fake LLM capability
# ---------------------------------------------------------------------------


class FakeLLMClient(LLMClient):
    """Replays canned replies in order.

    A reply may be a dict (sent as JSON), a raw string, or an exception
    instance (raised from the provider call). The last reply repeats.
    """

    provider = "fake"

    def __init__(self, *replies: Any, model: str = "fake-model") -> None:
        super().__init__(model=model)
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    async def _complete(self, system_prompt: str, user_content: str) -> str | None:
        self.calls.append((system_prompt, user_content))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, str) or reply is None:
            return reply
        return json.dumps(reply, ensure_ascii=False)


def judge_reply(confidence: float, issues: list[str] | None = None, **criteria: bool) -> dict:
    """A well-formed judge reply; every criterion defaults to True."""
    scores = {
        "field_names_english": True,
        "content_language_preserved": True,
        "superscripts_correct": True,
        "completeness": True,
        "legal_refs_match": True,
    }
    scores.update(criteria)
    return {
        "reasoning": "Checked every rule.",
        "criteria_scores": scores,
        "overall_confidence": confidence,
        "issues_found": issues or [],
    }


WIDGET_EXTRACTION = {
    "ProductCopy": [
        {
            "ProductName": "Widget",
            "Headlines": ["The only widget you need"],
            "AdvertisingCopy": "Widget sells great{{sup:1}}.",
            "KeyFeatureBullets": ["Fast", "Durable"],
            "LegalReferences": ["{{sup:1}} Guarantee void outside US."],
        }
    ]
}


def make_pipeline(
    structured: Any = None,
    language: Any = None,
    primary: Any = None,
    secondary: Any = None,
) -> DocumentPipeline:
    """Pipeline wired to fake clients; defaults describe a clean, passing run."""
    return DocumentPipeline(
        structurer=StructuringAgent(
            FakeLLMClient(WIDGET_EXTRACTION if structured is None else structured)
        ),
        language_detector=LanguageDetectorAgent(
            FakeLLMClient({"language": "English"} if language is None else language)
        ),
        validator=ConsensusValidator(
            primary=JudgeAgent(
                FakeLLMClient(judge_reply(0.95) if primary is None else primary),
                label="judge-a",
            ),
            secondary=JudgeAgent(
                FakeLLMClient(judge_reply(0.9) if secondary is None else secondary),
                label="judge-b",
            ),
            timeout_seconds=5,
        ),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch) -> str:
    path = str(tmp_path / "uploads")
    monkeypatch.setattr(settings, "upload_dir", path)
    return path


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def pipeline_factory() -> dict[str, Callable[[], DocumentPipeline]]:
    """Mutable holder so a test can swap the pipeline used by the app."""
    return {"build": make_pipeline}


@pytest.fixture
async def client(session_factory, pipeline_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client talking directly to the FastAPI ASGI app.

    The app's session dependency is bound to the per-test database and the
    pipeline dependency to fake LLM clients.
    """

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_pipeline] = lambda: pipeline_factory["build"]()

    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_pipeline, None)
