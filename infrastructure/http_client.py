"""Shared async HTTP client for outbound provider calls."""

from typing import Any, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient.

    One instance per external provider keeps timeouts and default headers
    independently configurable.
    """

    def __init__(
        self, timeout: float = 5.0, headers: Optional[dict[str, str]] = None
    ) -> None:
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers)

    async def post_json(
        self, url: str, payload: dict, headers: Optional[dict[str, str]] = None
    ) -> httpx.Response:
        return await self._client.post(url, json=payload, headers=headers)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()
