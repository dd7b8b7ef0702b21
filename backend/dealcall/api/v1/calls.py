from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core import config
from dealcall.core.database import get_db
from dealcall.core.errors import (
    EmptyTranscriptError,
    ExternalApiError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from dealcall.integrations.vapi.client import VapiClient, vapi_client
from dealcall.integrations.vapi.prompts import build_assistant, build_outbound_payload
from dealcall.services import call_lifecycle
from dealcall.services.call_analyzer import CallAnalyzer, call_analyzer
from dealcall.services.call_events import CallEventProcessor, normalize_event
from dealcall.services.db_service import DBService

logger = logging.getLogger(__name__)

router = APIRouter()

E164_PATTERN = re.compile(r"^\+\d{10,15}$")


def get_vapi_client() -> VapiClient:
    return vapi_client


def get_call_analyzer() -> CallAnalyzer:
    return call_analyzer


class OutboundCallRequest(BaseModel):
    company_id: Optional[str] = Field(None, alias="companyId")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")


class WebCallRequest(BaseModel):
    company_id: str = Field(..., alias="companyId")


class FinalizeCallRequest(BaseModel):
    duration_minutes: float = Field(0, alias="durationMinutes", ge=0)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _serialize_message(message) -> Dict[str, Any]:
    return {
        "id": str(message.id),
        "callId": str(message.call_id),
        "role": message.role,
        "transcript": message.transcript,
        "timestamp": _iso(message.timestamp),
        "sequence": message.sequence,
    }


def _serialize_call(call, messages: Optional[List[Any]] = None) -> Dict[str, Any]:
    data = {
        "id": str(call.id),
        "sellerCompanyId": str(call.seller_company_id),
        "bankerId": str(call.banker_id),
        "callDate": _iso(call.call_date),
        "duration": call.duration,
        "outcome": call.outcome,
        "summary": call.summary,
        "notes": call.notes,
        "analysisStatus": call.analysis_status,
        "externalCallId": call.external_call_id,
    }
    if messages is not None:
        data["messages"] = [_serialize_message(m) for m in messages]
    return data


@router.post("/calls/outbound")
async def create_outbound_call(
    payload: OutboundCallRequest,
    db: AsyncSession = Depends(get_db),
    vapi: VapiClient = Depends(get_vapi_client),
):
    """Dial a seller company through Vapi.

    The Call row is created before dialing so webhook events can be
    correlated; it is deleted again if Vapi rejects the call.
    """

    if not payload.company_id or not payload.phone_number:
        raise HTTPException(status_code=400, detail="Missing required fields: companyId and phoneNumber")

    if not E164_PATTERN.match(payload.phone_number):
        raise HTTPException(status_code=400, detail="Invalid phone number format. Use E.164 format: +13243244444")

    if not vapi.api_key:
        raise HTTPException(status_code=500, detail="VAPI_PRIVATE_API_KEY not configured")
    if not vapi.phone_number_id:
        raise HTTPException(status_code=500, detail="VAPI_PHONE_NUMBER_ID not configured")

    db_service = DBService(db)
    company = await db_service.get_company(payload.company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")

    previous_summaries = await db_service.get_previous_call_summaries(company.id)

    try:
        call_id = await call_lifecycle.create_call(db, company.id, company.owner_banker_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    assistant = build_assistant(company, previous_summaries)
    vapi_payload = build_outbound_payload(vapi.phone_number_id, payload.phone_number, assistant)

    logger.info(
        "Initiating outbound call",
        extra={"call_id": call_id, "company_id": str(company.id)},
    )

    try:
        vapi_call = await vapi.create_call(vapi_payload)
    except ExternalApiError as e:
        await call_lifecycle.delete_call(db, call_id)
        raise HTTPException(status_code=e.status_code or 502, detail=str(e))

    try:
        await _confirm_with_retry(db, call_id, vapi_call["id"])
    except PersistenceError as e:
        # Vapi is already dialing; the webhook cannot be matched to this Call
        logger.error(
            f"Call {call_id} is live as Vapi call {vapi_call['id']} but the id could not be stored: {e}",
            extra={"call_id": call_id, "vapi_call_id": vapi_call["id"]},
        )
        raise HTTPException(
            status_code=500,
            detail=f"Call started as Vapi call {vapi_call['id']} but could not be recorded: {e}",
        )

    logger.info(
        "Call initiated successfully",
        extra={"call_id": call_id, "vapi_call_id": vapi_call["id"]},
    )

    return {
        "success": True,
        "callId": call_id,
        "vapiCallId": vapi_call["id"],
        "phoneNumber": payload.phone_number,
        "message": "Call initiated successfully",
        "webhookNote": f"Configure webhook URL in Vapi dashboard: {config.PUBLIC_APP_URL.rstrip('/')}/vapi/webhook",
    }


async def _confirm_with_retry(db: AsyncSession, call_id: str, external_call_id: str, attempts: int = 2) -> None:
    for attempt in range(1, attempts + 1):
        try:
            await call_lifecycle.confirm_external_call(db, call_id, external_call_id)
            return
        except PersistenceError as e:
            if attempt == attempts:
                raise
            logger.warning(
                f"Retrying external call id for {call_id}: {e}",
                extra={"call_id": call_id, "vapi_call_id": external_call_id},
            )


@router.post("/calls")
async def create_web_call(payload: WebCallRequest, db: AsyncSession = Depends(get_db)):
    """Create a Call for an in-browser (WebRTC) session and return the assistant to start it with."""

    db_service = DBService(db)
    company = await db_service.get_company(payload.company_id)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")

    previous_summaries = await db_service.get_previous_call_summaries(company.id)
    try:
        call_id = await call_lifecycle.create_call(db, company.id, company.owner_banker_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "success": True,
        "callId": call_id,
        "assistant": build_assistant(company, previous_summaries),
        "publicKey": config.VAPI_PUBLIC_API_KEY,
    }


@router.get("/calls/{call_id}")
async def get_call(call_id: str, db: AsyncSession = Depends(get_db)):
    """Get a call with its transcript"""
    db_service = DBService(db)
    call = await db_service.get_call(call_id)
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    messages = await db_service.get_call_messages(call.id)
    return _serialize_call(call, messages)


@router.post("/calls/{call_id}/events")
async def receive_browser_event(
    call_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    analyzer: CallAnalyzer = Depends(get_call_analyzer),
):
    """Browser SDK events (transcript, tool-calls, call-end, ...) for a web call.

    Returns tool results so the browser can send them back into the session.
    """

    try:
        body = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Event must be a JSON object")

    call = await DBService(db).get_call(call_id)
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")

    processor = CallEventProcessor(db, analyzer=analyzer)
    outcome = await processor.apply(str(call.id), normalize_event(body))
    return {"received": True, **outcome}


@router.post("/calls/{call_id}/finalize")
async def finalize_call(
    call_id: str,
    payload: FinalizeCallRequest,
    db: AsyncSession = Depends(get_db),
    analyzer: CallAnalyzer = Depends(get_call_analyzer),
):
    """Record duration and run analysis for a finished call"""
    result = await call_lifecycle.finalize_call(db, call_id, payload.duration_minutes, analyzer=analyzer)
    if not result["success"]:
        raise HTTPException(status_code=404, detail=result.get("error") or "Failed to finalize call")
    return result


@router.post("/calls/{call_id}/analyze")
async def analyze_call(
    call_id: str,
    db: AsyncSession = Depends(get_db),
    analyzer: CallAnalyzer = Depends(get_call_analyzer),
):
    """(Re-)run post-call analysis"""
    try:
        analysis = await analyzer.analyze_call(db, call_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (EmptyTranscriptError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExternalApiError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True, "analysis": analysis}


@router.get("/companies/{company_id}/calls")
async def get_company_calls(
    company_id: str,
    limit: int = 20,
    db: AsyncSession = Depends(get_db)
):
    """Get recent calls for a seller company"""
    db_service = DBService(db)
    calls = await db_service.get_company_calls(company_id, limit)

    return {
        "company_id": company_id,
        "total": len(calls),
        "calls": [
            {**_serialize_call(call), "bankerName": call.banker.name if call.banker else None}
            for call in calls
        ],
    }


@router.post("/companies/{company_id}/calls/analyze")
async def analyze_company_calls(
    company_id: str,
    db: AsyncSession = Depends(get_db),
    analyzer: CallAnalyzer = Depends(get_call_analyzer),
):
    """Analyze every call of a company whose analysis has not completed"""
    calls = await call_lifecycle.get_unanalyzed_calls(db, company_id)
    return await analyzer.analyze_calls_batch(db, [str(call.id) for call in calls])
