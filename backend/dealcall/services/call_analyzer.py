from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, APIStatusError, OpenAIError
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dealcall.core import config
from dealcall.core.errors import (
    DealCallError,
    EmptyTranscriptError,
    ExternalApiError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from dealcall.models import AnalysisStatus, CallOutcome
from dealcall.services.db_service import DBService

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 5


class CallAnalysis(BaseModel):
    """Structured result requested from the LLM."""

    outcome: CallOutcome
    summary: str = Field(..., min_length=1)
    interest_level: int = Field(..., alias="interestLevel", ge=0, le=100)
    key_points: List[str] = Field(..., alias="keyPoints", min_length=1, max_length=MAX_KEY_POINTS)

    class Config:
        extra = "ignore"
        populate_by_name = True

    @field_validator("summary", mode="before")
    @classmethod
    def _strip_summary(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("interest_level", mode="before")
    @classmethod
    def _round_interest(cls, value: Any) -> Any:
        if isinstance(value, float):
            return int(round(value))
        return value

    @field_validator("key_points", mode="before")
    @classmethod
    def _clean_key_points(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        cleaned = [str(p).strip() for p in value if str(p).strip()]
        return cleaned[:MAX_KEY_POINTS]


OUTCOME_GUIDE = """   - productive: Had a meaningful conversation about selling
   - no_answer: Nobody answered the call
   - voicemail: Left a voicemail message
   - scheduled_meeting: Successfully scheduled a follow-up meeting
   - not_interested: Seller explicitly declined interest"""


def format_notes(analysis: CallAnalysis) -> str:
    points = "\n".join(f"- {p}" for p in analysis.key_points)
    return f"Interest Level: {analysis.interest_level}%\n\nKey Points:\n{points}"


def build_analysis_prompt(call, messages) -> str:
    transcript = "\n\n".join(f"{m.role}: {m.transcript}" for m in messages)
    company = call.seller_company
    banker = call.banker

    return f"""You are analyzing a call between an M&A advisor (banker) and a potential seller company.
The advisor is trying to gauge the seller's interest in potentially selling their company.

Company Context:
- Company Name: {company.name}
- Industry: {company.industry}
- Revenue: ${company.revenue or 0:,.0f}
- Current Deal Stage: {company.deal_stage}
- Banker: {banker.name}

Call Transcript:
{transcript}

Based on this conversation, analyze:
1. Call Outcome: What was the result of the call?
{OUTCOME_GUIDE}

2. Summary: A concise 2-3 sentence summary focusing on the seller's interest level, key concerns or motivations, and next steps if any

3. Interest Level: How interested does the seller seem in selling (0-100)?

4. Key Points: 3-5 important takeaways from the conversation

Respond with a JSON object with exactly these keys:
"outcome" (one of productive, no_answer, voicemail, scheduled_meeting, not_interested),
"summary" (string), "interestLevel" (integer 0-100), "keyPoints" (array of strings)."""


class CallAnalyzer:
    """Classifies a finished call and writes the outcome back onto it."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or config.ANALYSIS_MODEL

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not config.OPENROUTER_API_KEY:
                raise ExternalApiError("OPENROUTER_API_KEY is not configured")
            self._client = AsyncOpenAI(
                api_key=config.OPENROUTER_API_KEY,
                base_url=config.OPENROUTER_BASE_URL,
            )
        return self._client

    async def _request_analysis(self, prompt: str) -> CallAnalysis:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You return only valid JSON."},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0.2,
            )
        except APIStatusError as e:
            raise ExternalApiError(
                f"Analysis model returned {e.status_code}",
                status_code=e.status_code,
                body=str(e),
            ) from e
        except OpenAIError as e:
            raise ExternalApiError(f"Analysis request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValidationError("Analysis model returned an empty response")

        try:
            return CallAnalysis.model_validate_json(content)
        except PydanticValidationError as e:
            raise ValidationError(f"Analysis model returned an invalid object: {e}") from e

    async def analyze_call(self, session: AsyncSession, call_id: str) -> Dict[str, Any]:
        """
        Analyze a call's transcript and persist outcome, summary and notes.

        Returns:
            {"outcome": ..., "summary": ..., "interestLevel": ..., "keyPoints": [...]}

        Raises NotFoundError / EmptyTranscriptError before any write, and
        ExternalApiError / ValidationError when the model call fails.
        """
        db_service = DBService(session)
        try:
            call = await db_service.get_call_with_context(call_id)
            messages = await db_service.get_call_messages(call.id) if call else []
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceError(f"Failed to load transcript for call {call_id}: {e}") from e

        if not call:
            raise NotFoundError(f"Call {call_id} not found")
        if not messages:
            raise EmptyTranscriptError(f"No messages found for call {call_id}")

        prompt = build_analysis_prompt(call, messages)
        analysis = await self._request_analysis(prompt)

        try:
            await db_service.update_call(
                call.id,
                {
                    "outcome": analysis.outcome.value,
                    "summary": analysis.summary,
                    "notes": format_notes(analysis),
                    "analysis_status": AnalysisStatus.completed.value,
                    "analysis_error": None,
                },
            )
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceError(f"Failed to store analysis for call {call_id}: {e}") from e

        logger.info(
            "Analyzed call",
            extra={"call_id": str(call.id), "outcome": analysis.outcome.value},
        )
        return analysis.model_dump(by_alias=True, mode="json")

    async def analyze_calls_batch(self, session: AsyncSession, call_ids: List[str]) -> Dict[str, Any]:
        """Analyze several calls one after another; failures don't stop the batch."""
        results: List[Dict[str, Any]] = []
        for call_id in call_ids:
            try:
                analysis = await self.analyze_call(session, call_id)
                results.append({"callId": str(call_id), "success": True, "analysis": analysis})
            except DealCallError as e:
                logger.warning("Batch analysis failed", extra={"call_id": str(call_id), "error": str(e)})
                results.append({"callId": str(call_id), "success": False, "error": str(e)})

        successful = sum(1 for r in results if r["success"])
        return {
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }


# Create singleton instance
call_analyzer = CallAnalyzer()
