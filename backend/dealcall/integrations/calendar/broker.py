"""Metorial MCP broker client for the banker's Google Calendar"""

import json
import logging
import re
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncContextManager, AsyncIterator, Callable, List, Optional

import httpx
from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError

from dealcall.core import config
from dealcall.core.errors import ExternalApiError
from dealcall.integrations.calendar.models import BusyPeriod

logger = logging.getLogger(__name__)

# "    2025-11-04T11:00:00Z - 2025-11-04T12:00:00Z"
BUSY_INTERVAL_RE = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z)\s*-\s*(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z)"
)


def result_text(result: Any) -> str:
    """First text block of an MCP tool result"""
    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list) and content:
            first = content[0] or {}
            if isinstance(first, dict):
                return first.get("text") or ""
    return ""


def result_object(result: Any) -> dict:
    """Structured payload of a tool result: the result itself, or its text block as JSON"""
    if not isinstance(result, dict):
        return {}
    if "content" not in result:
        return result
    try:
        parsed = json.loads(result_text(result))
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_busy_periods(result: Any) -> List[BusyPeriod]:
    """Busy intervals from a get_freebusy result.

    The broker answers with text content listing ISO8601 interval pairs;
    a raw Google freebusy object is accepted as well.
    """
    text = result_text(result)
    if text:
        return [
            BusyPeriod(start=start, end=end)
            for start, end in BUSY_INTERVAL_RE.findall(text)
        ]

    busy = (
        ((result or {}).get("calendars") or {}).get("primary") or {}
    ).get("busy") if isinstance(result, dict) else None
    return [BusyPeriod(**period) for period in busy or []]


class MetorialCalendarBroker:
    """Calls calendar tools on an OAuth-scoped Metorial server deployment"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        mcp_url: Optional[str] = None,
        deployment_id: Optional[str] = None,
        oauth_session_id: Optional[str] = None,
        timeout: float = 20.0,
        connect: Optional[Callable[[], AsyncContextManager[Any]]] = None,
    ):
        self.api_key = api_key if api_key is not None else config.METORIAL_API_KEY
        self.mcp_url = (mcp_url or config.METORIAL_MCP_URL).rstrip("/")
        self.deployment_id = deployment_id if deployment_id is not None else config.METORIAL_GCALENDAR_ID
        self.oauth_session_id = oauth_session_id if oauth_session_id is not None else config.METORIAL_OAUTH_SESSION_ID
        self.timeout = timeout
        self.connect = connect or self._open_session

        if not all([self.api_key, self.deployment_id]):
            logger.warning("Metorial calendar broker credentials not configured")

    @property
    def session_url(self) -> str:
        url = httpx.URL(
            f"{self.mcp_url}/mcp",
            params={
                "serverDeploymentId": self.deployment_id,
                "oauthSessionId": self.oauth_session_id,
            },
        )
        return str(url)

    @asynccontextmanager
    async def _open_session(self) -> AsyncIterator[ClientSession]:
        """Initialized MCP session over streamable HTTP"""
        timeout = timedelta(seconds=self.timeout)
        async with streamablehttp_client(
            self.session_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=timeout,
        ) as (read_stream, write_stream, _):
            async with ClientSession(read_stream, write_stream, read_timeout_seconds=timeout) as session:
                await session.initialize()
                yield session

    async def call_tool(self, name: str, arguments: dict) -> dict:
        """
        Invoke an MCP tool (get_freebusy, create_event, list_events)

        Returns:
            The tool result as a plain dict: {"content": [...], "isError": False, ...}
        """
        if not self.oauth_session_id:
            raise ExternalApiError("No calendar connection found. Please connect your calendar first.")
        if not self.api_key or not self.deployment_id:
            raise ExternalApiError("Metorial calendar broker is not configured")

        try:
            async with self.connect() as session:
                result = await session.call_tool(name, arguments)
        except ExceptionGroup as group:
            raise _broker_error(name, _first_leaf(group)) from group
        except (McpError, httpx.HTTPError, ValueError) as e:
            raise _broker_error(name, e) from e

        data = result.model_dump(mode="json", by_alias=True, exclude_none=True)
        if data.get("isError"):
            raise ExternalApiError(f"Calendar tool {name} failed: {result_text(data)}")
        return data


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    error: BaseException = group
    while isinstance(error, BaseExceptionGroup) and error.exceptions:
        error = error.exceptions[0]
    return error


def _broker_error(name: str, error: BaseException) -> ExternalApiError:
    """Map transport and protocol failures of a tool call to ExternalApiError"""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        body = error.response.text
        logger.error(f"Calendar tool {name} failed: {status} {body}")
        return ExternalApiError(f"Calendar tool {name} returned {status}", status_code=status, body=body)
    if isinstance(error, McpError):
        return ExternalApiError(f"Calendar tool {name} failed: {error.error.message}")
    logger.error(f"Calendar tool {name} failed: {error!r}")
    return ExternalApiError(f"Calendar broker request failed: {error}")


calendar_broker = MetorialCalendarBroker()
