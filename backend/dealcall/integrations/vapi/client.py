from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from dealcall.core import config
from dealcall.core.errors import ExternalApiError

logger = logging.getLogger(__name__)


class VapiClient:
    """Thin async wrapper around the Vapi REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else config.VAPI_PRIVATE_API_KEY
        self.phone_number_id = phone_number_id if phone_number_id is not None else config.VAPI_PHONE_NUMBER_ID
        self.base_url = (base_url or config.VAPI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def create_call(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Start an outbound phone call; returns the platform's call object."""
        if not self.api_key:
            raise ExternalApiError("VAPI_PRIVATE_API_KEY not configured", status_code=500)

        url = f"{self.base_url}/call"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ExternalApiError(f"Vapi request failed: {e}", status_code=502) from e

        if resp.status_code >= 400:
            logger.error(
                "Vapi API error",
                extra={"status_code": resp.status_code, "body": resp.text},
            )
            raise ExternalApiError(
                f"Failed to initiate call: {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise ExternalApiError("Vapi returned a non-JSON body", status_code=502, body=resp.text) from e

        if not isinstance(body, dict) or not body.get("id"):
            raise ExternalApiError("Vapi response is missing the call id", status_code=502, body=resp.text)
        return body


vapi_client = VapiClient()
