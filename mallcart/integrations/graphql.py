"""Minimal GraphQL-over-HTTP client used for the directory and every shop."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from mallcart.core.constants import API_TIMEOUT_SECONDS
from mallcart.core.exceptions import RemoteCallException, ShopUnavailableException

logger = logging.getLogger(__name__)


class GraphQLClient:
    """
    POSTs a document plus variables and returns the `data` member.

    Transport failures and timeouts raise ShopUnavailableException tagged
    with `name`; GraphQL `errors` without data raise RemoteCallException.
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = API_TIMEOUT_SECONDS,
        name: str | None = None,
    ):
        self.url = url
        self.name = name or url
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(headers=self._headers, timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> GraphQLClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        try:
            session = await self._get_session()
            async with session.post(self.url, json=payload) as response:
                if response.status >= 400:
                    raise ShopUnavailableException(self.name, f"HTTP {response.status}")
                try:
                    body = await response.json(content_type=None)
                except ValueError as exc:
                    # Password pages and maintenance screens answer 200 with HTML
                    logger.warning("Non-JSON response from %s", self.name)
                    raise ShopUnavailableException(self.name, "invalid JSON response") from exc
        except asyncio.TimeoutError as exc:
            raise ShopUnavailableException(self.name, f"timed out after {self._timeout}s") from exc
        except aiohttp.ClientError as exc:
            raise ShopUnavailableException(self.name, str(exc)) from exc

        if not isinstance(body, dict):
            raise RemoteCallException(f"Unexpected GraphQL response from {self.name}")

        errors = body.get("errors") or []
        data = body.get("data")
        if errors and not data:
            message = "; ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            )
            raise RemoteCallException(f"GraphQL error from {self.name}: {message}", errors)
        if errors:
            logger.warning("Partial GraphQL errors from %s: %s", self.name, errors)
        return data or {}
