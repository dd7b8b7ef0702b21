from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core.database import get_db
from dealcall.services.call_events import (
    TOOL_CALLS,
    CallEventProcessor,
    extract_external_call_id,
    normalize_event,
)
from dealcall.services.db_service import DBService

logger = logging.getLogger("vapi_webhook")

router = APIRouter()


def get_event_processor(db: AsyncSession = Depends(get_db)) -> CallEventProcessor:
    return CallEventProcessor(db)


@router.post("/webhook")
async def vapi_webhook(
    request: Request,
    processor: CallEventProcessor = Depends(get_event_processor),
):
    """Server URL endpoint for Vapi phone-call events.

    Always answers 200 {"received": true}: Vapi retries on anything else
    and these events are not safe to replay.
    """

    try:
        payload: Dict[str, Any] = await request.json()
    except Exception:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    response: Dict[str, Any] = {"received": True}

    try:
        vapi_call_id: Optional[str] = extract_external_call_id(payload)
        if not vapi_call_id:
            logger.error("Missing Vapi call ID in webhook payload")
            return response

        call = await DBService(processor.session).get_call_by_external_id(vapi_call_id)
        if not call:
            logger.error("No call found for Vapi call ID", extra={"vapi_call_id": vapi_call_id})
            return response

        event = normalize_event(payload)
        logger.info(
            "Received webhook event",
            extra={"call_id": str(call.id), "vapi_call_id": vapi_call_id, "type": event.type},
        )

        outcome = await processor.apply(str(call.id), event)
        if event.type == TOOL_CALLS:
            response["results"] = outcome.get("results", [])
    except Exception as ex:
        logger.exception("Error processing webhook")
        response["error"] = str(ex) or "Internal error"

    return response


@router.get("/webhook")
async def vapi_webhook_health():
    """Health check"""
    return {
        "status": "ok",
        "message": "Vapi webhook endpoint is ready",
    }
