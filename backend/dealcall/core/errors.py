"""Error taxonomy shared by the call lifecycle, tool dispatch and analysis."""

from __future__ import annotations

from typing import Optional


class DealCallError(Exception):
    """Base class for errors raised by this service."""


class ValidationError(DealCallError):
    """Malformed tool arguments, webhook fields or LLM output."""


class NotFoundError(DealCallError):
    """A referenced Call, SellerCompany or Banker does not exist."""


class EmptyTranscriptError(DealCallError):
    """A call has no transcript messages to analyze."""


class ExternalApiError(DealCallError):
    """A third-party provider (voice, LLM, calendar) failed or answered non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PersistenceError(DealCallError):
    """A database write failed or referenced missing rows."""
