import json
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient
from openai import APIConnectionError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dealcall.api.v1.calls import get_call_analyzer
from dealcall.core.database import Base, get_db
from dealcall.integrations.vapi.webhook import get_event_processor
from dealcall.main import app
from dealcall.services.call_analyzer import CallAnalyzer
from dealcall.services.call_events import CallEventProcessor
from dealcall.services.db_service import DBService

BASE_URL = "http://testserver"

PRODUCTIVE_ANALYSIS = {
    "outcome": "productive",
    "summary": "The founder is open to a sale within two years and wants to understand valuation ranges.",
    "interestLevel": 70,
    "keyPoints": [
        "Founder considering retirement",
        "Wants valuation benchmarks",
        "Open to a follow-up meeting",
    ],
}


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeLLMClient:
    """Stands in for AsyncOpenAI: client.chat.completions.create(...)"""

    def __init__(self, content=None, error=None):
        self.completions = FakeCompletions(content, error)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


def llm_returning(payload) -> FakeLLMClient:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return FakeLLMClient(content=content)


def llm_failing() -> FakeLLMClient:
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    return FakeLLMClient(error=APIConnectionError(request=request))


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded(session_factory):
    """A banker and the seller company they own"""
    async with session_factory() as session:
        db_service = DBService(session)
        banker = await db_service.create_banker({"name": "Alex Morgan", "email": "alex@example.com"})
        company = await db_service.create_company(
            {
                "name": "Nordlicht Logistics",
                "industry": "Logistics Software",
                "geography": "Germany",
                "revenue": 12_500_000,
                "ebitda": 2_100_000,
                "headcount": 85,
                "estimated_deal_size": 30_000_000,
                "likelihood_to_sell": 40,
                "deal_stage": "automated_outreach",
                "owner_banker_id": banker.id,
            }
        )
        return SimpleNamespace(banker_id=str(banker.id), company_id=str(company.id))


@pytest.fixture
def llm_client():
    return llm_returning(PRODUCTIVE_ANALYSIS)


@pytest.fixture
def analyzer(llm_client):
    return CallAnalyzer(client=llm_client, model="test-model")


@pytest_asyncio.fixture
async def client(session_factory, analyzer):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    def override_event_processor(db: AsyncSession = Depends(get_db)):
        return CallEventProcessor(db, analyzer=analyzer)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_processor] = override_event_processor
    app.dependency_overrides[get_call_analyzer] = lambda: analyzer

    async with AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL) as ac:
        yield ac

    app.dependency_overrides.clear()
