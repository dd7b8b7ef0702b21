import asyncio
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conftest import PRODUCTIVE_ANALYSIS, llm_failing, llm_returning
from dealcall.core.database import Base
from dealcall.core.errors import PersistenceError
from dealcall.models import MessageRole
from dealcall.services import call_lifecycle
from dealcall.services.call_analyzer import CallAnalyzer
from dealcall.services.db_service import DBService


async def _call_with_transcript(session, seeded):
    call_id = await call_lifecycle.create_call(session, seeded.company_id, seeded.banker_id)
    start = datetime(2025, 11, 3, 10, 0, 0)
    await call_lifecycle.create_message(
        session, call_id, MessageRole.assistant, "Hi, I'm calling on behalf of Alex Morgan.", start
    )
    await call_lifecycle.create_message(
        session, call_id, MessageRole.user, "Sure, I have a few minutes.", start + timedelta(seconds=4)
    )
    return call_id


@pytest.mark.asyncio
async def test_create_call_starts_with_zero_duration(session, seeded):
    call_id = await call_lifecycle.create_call(session, seeded.company_id, seeded.banker_id)

    call = await DBService(session).get_call(call_id)
    assert call is not None
    assert call.duration == 0
    assert call.analysis_status == "pending"
    assert call.outcome is None
    assert call.external_call_id is None


@pytest.mark.asyncio
async def test_create_call_for_missing_company_persists_nothing(session, seeded):
    with pytest.raises(PersistenceError):
        await call_lifecycle.create_call(session, str(uuid.uuid4()), seeded.banker_id)

    assert await DBService(session).get_company_calls(seeded.company_id) == []


@pytest.mark.asyncio
async def test_create_call_for_missing_banker(session, seeded):
    with pytest.raises(PersistenceError):
        await call_lifecycle.create_call(session, seeded.company_id, str(uuid.uuid4()))


@pytest.mark.asyncio
async def test_messages_are_listed_in_conversation_order(session, seeded):
    call_id = await call_lifecycle.create_call(session, seeded.company_id, seeded.banker_id)
    t0 = datetime(2025, 11, 3, 10, 0, 0)

    await call_lifecycle.create_message(session, call_id, MessageRole.user, "third", t0 + timedelta(seconds=1))
    await call_lifecycle.create_message(session, call_id, MessageRole.assistant, "first", t0)
    await call_lifecycle.create_message(session, call_id, MessageRole.user, "second", t0)

    messages = await call_lifecycle.list_messages(session, call_id)
    assert [m.transcript for m in messages] == ["first", "second", "third"]
    assert [m.sequence for m in messages] == [2, 3, 1]


@pytest.mark.asyncio
async def test_create_message_for_unknown_call_does_not_raise(session):
    result = await call_lifecycle.create_message(
        session, str(uuid.uuid4()), MessageRole.user, "hello"
    )
    assert result["success"] is False
    assert "not found" in result["error"]


@pytest.mark.parametrize(
    "minutes, expected",
    [(0, 0), (0.4, 0), (0.5, 1), (1.49, 1), (2.5, 3), (14.99, 15)],
)
def test_round_half_up(minutes, expected):
    assert call_lifecycle.round_half_up(minutes) == expected


@pytest.mark.asyncio
async def test_finalize_stores_analysis(session, seeded):
    call_id = await _call_with_transcript(session, seeded)
    analyzer = CallAnalyzer(client=llm_returning(PRODUCTIVE_ANALYSIS))

    result = await call_lifecycle.finalize_call(session, call_id, 2.4, analyzer=analyzer)

    assert result["success"] is True
    assert result["analysis"]["outcome"] == "productive"
    call = await DBService(session).get_call(call_id)
    assert call.duration == 2
    assert call.finalized_at is not None
    assert call.outcome == "productive"
    assert call.analysis_status == "completed"
    assert call.notes.startswith("Interest Level: 70%\n\nKey Points:\n- Founder considering retirement")


@pytest.mark.asyncio
async def test_finalize_keeps_duration_when_analysis_fails(session, seeded):
    call_id = await _call_with_transcript(session, seeded)
    analyzer = CallAnalyzer(client=llm_failing())

    result = await call_lifecycle.finalize_call(session, call_id, 2.5, analyzer=analyzer)

    assert result["success"] is True
    assert "analysisError" in result
    call = await DBService(session).get_call(call_id)
    assert call.duration == 3
    assert call.outcome is None
    assert call.analysis_status == "failed"
    assert call.analysis_error


@pytest.mark.asyncio
async def test_finalize_without_transcript_reports_analysis_error(session, seeded):
    call_id = await call_lifecycle.create_call(session, seeded.company_id, seeded.banker_id)
    llm = llm_returning(PRODUCTIVE_ANALYSIS)

    result = await call_lifecycle.finalize_call(session, call_id, 1, analyzer=CallAnalyzer(client=llm))

    assert result["success"] is True
    assert "No messages" in result["analysisError"]
    assert llm.calls == []
    call = await DBService(session).get_call(call_id)
    assert call.duration == 1


@pytest.mark.asyncio
async def test_second_finalize_overwrites_duration_and_skips_analysis(session, seeded):
    call_id = await _call_with_transcript(session, seeded)
    llm = llm_returning(PRODUCTIVE_ANALYSIS)
    analyzer = CallAnalyzer(client=llm)

    await call_lifecycle.finalize_call(session, call_id, 3, analyzer=analyzer)
    second = await call_lifecycle.finalize_call(session, call_id, 5, analyzer=analyzer)

    assert second == {"success": True, "analysisSkipped": True}
    assert len(llm.calls) == 1
    call = await DBService(session).get_call(call_id)
    assert call.duration == 5


@pytest.mark.asyncio
async def test_finalize_unknown_call(session):
    result = await call_lifecycle.finalize_call(session, str(uuid.uuid4()), 1)
    assert result["success"] is False
    assert result["error"]


@pytest.mark.asyncio
async def test_delete_call_removes_messages(session, seeded):
    call_id = await _call_with_transcript(session, seeded)

    assert await call_lifecycle.delete_call(session, call_id) is True

    db_service = DBService(session)
    assert await db_service.get_call(call_id) is None
    assert await db_service.get_call_messages(call_id) == []
    assert await call_lifecycle.delete_call(session, call_id) is False


@pytest.mark.asyncio
async def test_unanalyzed_calls_exclude_completed(session, seeded):
    analyzed = await _call_with_transcript(session, seeded)
    pending = await call_lifecycle.create_call(session, seeded.company_id, seeded.banker_id)
    await call_lifecycle.finalize_call(
        session, analyzed, 2, analyzer=CallAnalyzer(client=llm_returning(PRODUCTIVE_ANALYSIS))
    )

    calls = await call_lifecycle.get_unanalyzed_calls(session, seeded.company_id)
    assert [str(c.id) for c in calls] == [pending]


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on separate connections to one database file"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'calls.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_messages_get_distinct_sequences(file_session_factory):
    async with file_session_factory() as session:
        db_service = DBService(session)
        banker = await db_service.create_banker({"name": "Alex Morgan"})
        company = await db_service.create_company(
            {"name": "Nordlicht Logistics", "industry": "Logistics Software", "owner_banker_id": banker.id}
        )
        call_id = await call_lifecycle.create_call(session, str(company.id), str(banker.id))

    t0 = datetime(2025, 11, 3, 10, 0, 0)

    async def save(i):
        async with file_session_factory() as session:
            return await call_lifecycle.create_message(
                session, call_id, MessageRole.user, f"turn {i}", t0 + timedelta(seconds=i)
            )

    results = await asyncio.gather(*(save(i) for i in range(8)))

    assert all(r["success"] for r in results), results
    async with file_session_factory() as session:
        messages = await call_lifecycle.list_messages(session, call_id)
        call = await DBService(session).get_call(call_id)
    assert len(messages) == 8
    assert sorted(m.sequence for m in messages) == list(range(1, 9))
    assert call.message_count == 8


@pytest.mark.asyncio
async def test_finalize_reports_database_error_during_analysis(session, seeded, monkeypatch):
    call_id = await _call_with_transcript(session, seeded)
    llm = llm_returning(PRODUCTIVE_ANALYSIS)

    async def broken_messages(self, call_id):
        raise OperationalError("SELECT messages", {}, Exception("disk I/O error"))

    monkeypatch.setattr(DBService, "get_call_messages", broken_messages)

    result = await call_lifecycle.finalize_call(session, call_id, 2.4, analyzer=CallAnalyzer(client=llm))

    assert result["success"] is True
    assert "disk I/O error" in result["analysisError"]
    assert llm.calls == []
    call = await DBService(session).get_call(call_id)
    assert call.duration == 2
    assert call.analysis_status == "failed"
    assert "disk I/O error" in call.analysis_error
