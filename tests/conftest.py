"""
Pytest Configuration and Fixtures

Unit and service tests run offline against in-memory SQLite (aiosqlite)
with fake embedding backends and LLM providers. Tests marked ``live``
need a running stack and are skipped unless it answers.
"""

import os

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Test environment defaults — MUST be before any inquiry_memory imports.
#
# 1. Load .env first so that local credentials are available.
# 2. setdefault fills in anything still missing (CI runners, fresh clones
#    without a .env file) so that pydantic Settings validation doesn't crash.
# ---------------------------------------------------------------------------
load_dotenv()  # .env → os.environ (no-op if file is missing)

_test_env = {
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "OPENAI_API_KEY": "mock",
    "METADATA_REFRESH_ENABLED": "false",
    "LOG_LEVEL": "WARNING",
}
for _key, _value in _test_env.items():
    os.environ.setdefault(_key, _value)

# ---------------------------------------------------------------------------
# Imports (safe now that env vars are set)
# ---------------------------------------------------------------------------
import time  # noqa: E402
from collections.abc import AsyncGenerator, Generator, Sequence  # noqa: E402
from datetime import UTC, datetime, timedelta  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)

from inquiry_memory.core.database import build_engine, create_tables  # noqa: E402
from inquiry_memory.models.orm import (  # noqa: E402
    MessageRecord,
    SessionRecord,
    SourceType,
)
from inquiry_memory.models.schemas import EmbeddingResult  # noqa: E402
from inquiry_memory.repositories.embeddings import embedding_repository  # noqa: E402
from inquiry_memory.services.embeddings import (  # noqa: E402
    EmbeddingBackend,
    EmbeddingGateway,
)
from inquiry_memory.services.llm import LLMProvider, ProviderChain  # noqa: E402

BASE_URL = os.environ.get("INQUIRY_MEMORY_URL", "http://localhost:8002")

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingBackend(EmbeddingBackend):
    """
    Deterministic backend: known texts map to fixed vectors.

    Unknown texts get ``default`` or, when it is None, raise like a
    failing provider would.
    """

    name = "fake"

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        model: str = "fake-embed",
        configured: bool = True,
    ) -> None:
        super().__init__(model)
        self.vectors = dict(vectors or {})
        self.default = default
        self.configured = configured
        self.calls: list[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.vectors:
            return self.vectors[text]
        if self.default is not None:
            return self.default
        raise RuntimeError(f"no vector for {text!r}")


class FakeProvider(LLMProvider):
    """LLM provider returning canned text and recording prompts."""

    def __init__(
        self,
        name: str = "fake",
        reply: str = "",
        available: bool = True,
        error: Exception | None = None,
    ) -> None:
        super().__init__(utility_model=f"{name}-model")
        self.name = name
        self.reply = reply
        self.available = available
        self.error = error
        self.prompts: list[str] = []

    async def is_available(self) -> bool:
        return self.available

    async def _complete(self, prompt, *, model, temperature, max_tokens) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def make_chain(*providers: FakeProvider) -> ProviderChain:
    by_name = {p.name: p for p in providers}
    return ProviderChain(list(by_name), lambda name: by_name[name])


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database with all tables."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Embedding / provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeEmbeddingBackend:
    return FakeEmbeddingBackend(default=[1.0, 0.0, 0.0])


@pytest.fixture
def gateway(backend: FakeEmbeddingBackend) -> EmbeddingGateway:
    return EmbeddingGateway([backend])


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


async def seed_session(
    db: AsyncSession,
    session_id: str,
    *,
    title: str | None = "Session",
    last_active_at: datetime = NOW - timedelta(hours=2),
    imported: bool = False,
    project_id: str | None = None,
    messages: Sequence[tuple[str, str]] = (),
) -> SessionRecord:
    """Insert a session and its messages (one second apart)."""
    record = SessionRecord(
        id=session_id,
        title=title,
        project_id=project_id,
        imported=imported,
        created_at=last_active_at - timedelta(hours=1),
        last_active_at=last_active_at,
    )
    db.add(record)
    for i, (role, content) in enumerate(messages):
        db.add(
            MessageRecord(
                id=f"{session_id}_m{i:02d}",
                session_id=session_id,
                role=role,
                content=content,
                created_at=record.created_at + timedelta(seconds=i),
            )
        )
    await db.commit()
    return record


async def store_vector(
    db: AsyncSession,
    source_id: str,
    vector: list[float],
    *,
    source_type: SourceType = SourceType.SESSION_SUMMARY,
    model: str = "fake-embed",
) -> None:
    await embedding_repository.store(
        db,
        source_type,
        source_id,
        EmbeddingResult(vector=vector, dimension=len(vector), model=model),
    )


# ---------------------------------------------------------------------------
# Live stack fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def wait_for_api():
    """
    Block until the API is ready, or skip when it never answers.

    Polls /health with 1s intervals for up to 10s.
    """
    url = f"{BASE_URL}/health"
    timeout = 10
    start = time.time()

    while time.time() - start < timeout:
        try:
            res = httpx.get(url, timeout=1.0)
            if res.status_code == 200:
                return
        except httpx.RequestError:
            time.sleep(1)

    pytest.skip(f"API unreachable at {BASE_URL}")


@pytest.fixture(scope="session")
def api_client(wait_for_api) -> Generator[httpx.Client, None, None]:
    """HTTP client against /api/v1 of a running instance."""
    with httpx.Client(base_url=f"{BASE_URL}/api/v1", timeout=30.0) as client:
        yield client
