"""
Call lifecycle: create a Call before dialing, append transcript Messages as
they arrive, and finalize (duration + analysis) when the call ends.

Shared by the browser (WebRTC) path and the server-initiated phone path.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core.errors import DealCallError, PersistenceError
from dealcall.models import AnalysisStatus, Message, MessageRole
from dealcall.services.call_analyzer import CallAnalyzer, call_analyzer
from dealcall.services.db_service import DBService

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


async def create_call(session: AsyncSession, seller_company_id: str, banker_id: str) -> str:
    """Insert a Call with duration 0 and return its id.

    Must run before the voice session starts so that asynchronous events
    have a stable id to correlate against.
    """
    db_service = DBService(session)
    company = await db_service.get_company(seller_company_id)
    if not company:
        raise PersistenceError(f"Seller company {seller_company_id} does not exist")
    banker = await db_service.get_banker(banker_id)
    if not banker:
        raise PersistenceError(f"Banker {banker_id} does not exist")

    try:
        call = await db_service.create_call(
            {
                "seller_company_id": company.id,
                "banker_id": banker.id,
                "call_date": datetime.utcnow(),
                "duration": 0,
                "analysis_status": AnalysisStatus.pending.value,
            }
        )
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError(f"Failed to create call: {e}") from e

    logger.info("Created call", extra={"call_id": str(call.id), "company_id": str(company.id)})
    return str(call.id)


async def confirm_external_call(session: AsyncSession, call_id: str, external_call_id: str) -> None:
    """Record the voice platform's call id so webhook events can find this Call."""
    db_service = DBService(session)
    try:
        call = await db_service.update_call(call_id, {"external_call_id": external_call_id})
    except SQLAlchemyError as e:
        await session.rollback()
        raise PersistenceError(f"Failed to store external call id for {call_id}: {e}") from e
    if not call:
        raise PersistenceError(f"Call {call_id} does not exist")


async def delete_call(session: AsyncSession, call_id: str) -> bool:
    """Compensating delete for a Call whose voice session never started."""
    db_service = DBService(session)
    try:
        deleted = await db_service.delete_call(call_id)
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Failed to delete orphaned call", extra={"call_id": str(call_id)})
        return False
    if deleted:
        logger.info("Deleted orphaned call", extra={"call_id": str(call_id)})
    return deleted


async def create_message(
    session: AsyncSession,
    call_id: str,
    role: MessageRole,
    transcript: str,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Append one transcript turn to a Call.

    Never raises: losing a transcript line must not abort a live call.
    """
    db_service = DBService(session)
    try:
        call = await db_service.get_call(call_id)
        if not call:
            logger.error("Cannot save message for unknown call", extra={"call_id": str(call_id)})
            return {"success": False, "error": f"Call {call_id} not found"}

        message = await db_service.create_message(
            {
                "call_id": call.id,
                "role": MessageRole(role).value,
                "transcript": transcript,
                "timestamp": timestamp or datetime.utcnow(),
            }
        )
    except (SQLAlchemyError, ValueError) as e:
        await session.rollback()
        logger.exception("Error creating message", extra={"call_id": str(call_id)})
        return {"success": False, "error": str(e)}

    logger.debug("Created message", extra={"call_id": str(call_id), "role": message.role})
    return {"success": True, "message_id": str(message.id)}


async def list_messages(session: AsyncSession, call_id: str) -> List[Message]:
    return await DBService(session).get_call_messages(call_id)


async def finalize_call(
    session: AsyncSession,
    call_id: str,
    duration_minutes: float,
    analyzer: Optional[CallAnalyzer] = None,
) -> Dict[str, Any]:
    """Persist the call duration, then run post-call analysis.

    The duration write is committed first and on its own; an analysis
    failure is reported under "analysisError" and the call is flagged so
    analysis can be retried later.
    """
    analyzer = analyzer or call_analyzer
    db_service = DBService(session)

    try:
        call = await db_service.get_call(call_id)
        if not call:
            logger.error("Cannot finalize unknown call", extra={"call_id": str(call_id)})
            return {"success": False, "error": f"Call {call_id} not found"}

        already_analyzed = call.analysis_status == AnalysisStatus.completed.value
        duration = round_half_up(duration_minutes or 0)
        await db_service.update_call(
            call.id,
            {"duration": duration, "finalized_at": datetime.utcnow()},
        )
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Error finalizing call", extra={"call_id": str(call_id)})
        return {"success": False, "error": str(e)}

    logger.info("Finalized call", extra={"call_id": str(call_id), "duration_minutes": duration})

    if already_analyzed:
        logger.info("Call already analyzed; skipping re-analysis", extra={"call_id": str(call_id)})
        return {"success": True, "analysisSkipped": True}

    try:
        analysis = await analyzer.analyze_call(session, call_id)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.exception("Call saved but analysis hit a database error", extra={"call_id": str(call_id)})
        await _mark_analysis_failed(session, call_id, str(e))
        return {"success": True, "analysisError": str(e)}
    except DealCallError as e:
        logger.warning("Call saved but analysis failed", extra={"call_id": str(call_id), "error": str(e)})
        await _mark_analysis_failed(session, call_id, str(e))
        return {"success": True, "analysisError": str(e)}

    return {"success": True, "analysis": analysis}


async def _mark_analysis_failed(session: AsyncSession, call_id: str, error: str) -> None:
    try:
        await DBService(session).update_call(
            call_id,
            {"analysis_status": AnalysisStatus.failed.value, "analysis_error": error},
        )
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Failed to flag analysis failure", extra={"call_id": str(call_id)})


async def get_unanalyzed_calls(session: AsyncSession, seller_company_id: str):
    return await DBService(session).get_unanalyzed_calls(seller_company_id)
