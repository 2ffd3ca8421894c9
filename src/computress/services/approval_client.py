from __future__ import annotations

import asyncio
import os
from typing import Any, Callable

import aiohttp

from computress.config import APP_NAME, APP_VERSION
from computress.errors import ApiError, ConfigurationError, TransportError
from computress.models import Decision, NameRequest

TOKEN_ENV_NAME = "OFAPI_TOKEN"
REQUEST_TIMEOUT_SEC = 10
HTTP_ALREADY_REPORTED = 208
USER_AGENT = f"{APP_NAME}/{APP_VERSION}"


def get_token() -> str:
    token = os.environ.get(TOKEN_ENV_NAME, "").strip()
    if not token:
        raise ConfigurationError(f"{TOKEN_ENV_NAME} environment variable missing")
    return token


class ApprovalClient:
    """Client for the remote name-request API. The API, not this bot, records decisions."""

    def __init__(
        self,
        host: str,
        *,
        session_factory: Callable[..., aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self.host = host.strip().rstrip("/")
        self._session_factory = session_factory

    @property
    def endpoint(self) -> str:
        return f"https://{self.host}/namereq"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {get_token()}",
            "User-Agent": USER_AGENT,
        }

    async def fetch_outstanding(self) -> list[NameRequest]:
        endpoint = self.endpoint
        headers = self._headers()
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SEC)
        try:
            async with self._session_factory(timeout=timeout) as session:
                async with session.get(endpoint, headers=headers) as response:
                    if not 200 <= response.status < 300:
                        raise ApiError(endpoint, response.status)
                    try:
                        data: Any = await response.json(content_type=None)
                    except ValueError as exc:
                        raise ApiError(endpoint, response.status, f"response is not JSON: {exc}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(endpoint, f"{type(exc).__name__}: {exc}") from exc
        if not isinstance(data, list):
            raise ApiError(endpoint, 200, "expected a list of name requests")
        try:
            return [NameRequest.from_record(row) for row in data]
        except (KeyError, TypeError, ValueError) as exc:
            raise ApiError(endpoint, 200, f"bad name request record: {exc}") from exc

    async def submit_decision(self, request: NameRequest, decision: Decision, by: str) -> bool:
        """
        Record a decision for `request`.

        Returns False when the API answers 208 Already Reported, meaning a decision for this
        request already exists and nothing changed.
        """

        endpoint = self.endpoint
        headers = self._headers()
        payload = {
            "player_uid": request.player_uid,
            "requested_name": request.requested_name,
            "decision": Decision(decision).value,
            "by": by,
        }
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SEC)
        try:
            async with self._session_factory(timeout=timeout) as session:
                async with session.post(endpoint, headers=headers, json=payload) as response:
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(endpoint, f"{type(exc).__name__}: {exc}") from exc
        if status == HTTP_ALREADY_REPORTED:
            return False
        if not 200 <= status < 300:
            raise ApiError(endpoint, status)
        return True
