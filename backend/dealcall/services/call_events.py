"""
Normalizes voice-platform events and applies them to a Call.

Both the server webhook and the in-browser SDK deliver the same event
kinds in slightly different envelopes; `normalize_event` flattens either
into a `CallEvent` and `CallEventProcessor` applies it, so both call modes
end up with the same persisted state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core.errors import DealCallError
from dealcall.models import MessageRole
from dealcall.services import call_lifecycle
from dealcall.services.call_analyzer import CallAnalyzer
from dealcall.tools.tool_router import (
    ToolRouter,
    build_tool_context,
    tool_call_name,
    tool_result,
    tool_router as default_tool_router,
)

logger = logging.getLogger(__name__)

TRANSCRIPT = "transcript"
TOOL_CALLS = "tool-calls"
END_OF_CALL_REPORT = "end-of-call-report"
CALL_END = "call-end"
INFORMATIONAL = {"status-update", "hang", "speech-update", "call-start", "volume-level", "error"}


@dataclass
class CallEvent:
    type: Optional[str]
    role: Optional[str] = None
    transcript: Optional[str] = None
    transcript_type: Optional[str] = None
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    duration_seconds: Optional[float] = None
    ended_reason: Optional[str] = None
    status: Optional[str] = None
    timestamp: Optional[datetime] = None

    @property
    def is_final_transcript(self) -> bool:
        return self.type == TRANSCRIPT and self.transcript_type == "final" and bool(self.transcript)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    # Vapi sends epoch milliseconds; accept ISO strings too
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    return None


def _parse_duration(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_event(body: Dict[str, Any]) -> CallEvent:
    """Flatten `{message: {type, ...}}` and flat `{type, ...}` payloads."""
    message = body.get("message")
    if not isinstance(message, dict):
        message = {}

    def pick(*keys: str) -> Any:
        for key in keys:
            if message.get(key) is not None:
                return message[key]
            if body.get(key) is not None:
                return body[key]
        return None

    tool_calls = pick("toolCallList", "toolCalls") or []
    if not isinstance(tool_calls, list):
        tool_calls = []

    return CallEvent(
        type=pick("type"),
        role=pick("role"),
        transcript=pick("transcript"),
        transcript_type=pick("transcriptType"),
        tool_calls=[tc for tc in tool_calls if isinstance(tc, dict)],
        duration_seconds=_parse_duration(pick("duration", "durationSeconds")),
        ended_reason=pick("endedReason"),
        status=pick("status"),
        timestamp=_parse_timestamp(pick("timestamp")),
    )


def extract_external_call_id(body: Dict[str, Any]) -> Optional[str]:
    """The platform's call id, from `{call: {id}}`, `{callId}` or `{message: {call: {id}}}`."""
    call = body.get("call")
    if isinstance(call, dict) and call.get("id"):
        return str(call["id"])
    if body.get("callId"):
        return str(body["callId"])
    message = body.get("message")
    if isinstance(message, dict):
        nested = message.get("call")
        if isinstance(nested, dict) and nested.get("id"):
            return str(nested["id"])
    return None


def map_role(role: Optional[str]) -> MessageRole:
    if role == "assistant":
        return MessageRole.assistant
    if role == "system":
        return MessageRole.system
    return MessageRole.user


class CallEventProcessor:
    """Applies normalized events for one Call against the database."""

    def __init__(
        self,
        session: AsyncSession,
        router: Optional[ToolRouter] = None,
        analyzer: Optional[CallAnalyzer] = None,
    ):
        self.session = session
        self.router = router or default_tool_router
        self.analyzer = analyzer

    async def apply(self, call_id: str, event: CallEvent) -> Dict[str, Any]:
        if event.type == TRANSCRIPT:
            return await self._handle_transcript(call_id, event)
        if event.type == TOOL_CALLS:
            return await self._handle_tool_calls(call_id, event)
        if event.type in (END_OF_CALL_REPORT, CALL_END):
            return await self._handle_end(call_id, event)
        if event.type in INFORMATIONAL:
            logger.info(
                "Call event",
                extra={"call_id": str(call_id), "type": event.type, "status": event.status},
            )
            return {"handled": event.type}

        logger.info("Unhandled event type", extra={"call_id": str(call_id), "type": event.type})
        return {"handled": None}

    async def _handle_transcript(self, call_id: str, event: CallEvent) -> Dict[str, Any]:
        # Partial transcripts are superseded by the final one
        if not event.is_final_transcript:
            return {"handled": TRANSCRIPT, "saved": False}

        result = await call_lifecycle.create_message(
            self.session,
            call_id,
            map_role(event.role),
            event.transcript,
            event.timestamp or datetime.utcnow(),
        )
        return {"handled": TRANSCRIPT, "saved": result["success"]}

    async def _handle_tool_calls(self, call_id: str, event: CallEvent) -> Dict[str, Any]:
        if not event.tool_calls:
            return {"handled": TOOL_CALLS, "results": []}

        try:
            context = await build_tool_context(self.session, call_id)
        except DealCallError:
            logger.exception("Cannot build tool context", extra={"call_id": str(call_id)})
            return {"handled": TOOL_CALLS, "results": []}

        logger.info(
            "Processing tool calls",
            extra={"call_id": str(call_id), "tool_count": len(event.tool_calls)},
        )

        results: List[Dict[str, Any]] = []
        for tool_call in event.tool_calls:
            try:
                outcome = await self.router.handle_tool_call(tool_call, context)
                if outcome is None:
                    outcome = {"error": "unknown_tool"}
            except Exception as ex:  # isolate per tool call
                logger.exception(
                    "Tool execution failed",
                    extra={"call_id": str(call_id), "tool": tool_call_name(tool_call)},
                )
                outcome = {"error": str(ex)}
            results.append(tool_result(tool_call, outcome))

        return {"handled": TOOL_CALLS, "results": results}

    async def _handle_end(self, call_id: str, event: CallEvent) -> Dict[str, Any]:
        duration_minutes = event.duration_seconds / 60 if event.duration_seconds else 0
        logger.info(
            "Call ended, finalizing",
            extra={
                "call_id": str(call_id),
                "ended_reason": event.ended_reason,
                "duration_seconds": event.duration_seconds,
            },
        )

        result = await call_lifecycle.finalize_call(
            self.session, call_id, duration_minutes, analyzer=self.analyzer
        )
        if not result["success"]:
            logger.error("Failed to finalize call", extra={"call_id": str(call_id), "error": result.get("error")})
        elif result.get("analysisError"):
            logger.warning(
                "Call saved but analysis failed",
                extra={"call_id": str(call_id), "error": result["analysisError"]},
            )
        return {"handled": event.type, "finalize": result}
