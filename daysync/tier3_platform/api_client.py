"""
daysync.tier3_platform.api_client
──────────────────────────────────
Async HTTP client for the time authority. Maps every outbound failure onto
the daysync error taxonomy so callers branch on error type, never on
httpx exceptions or raw status codes.

Credential attachment stays with the host application: pass a
headers_provider callable and its headers are merged into every request.

Backed by: httpx (async HTTP).
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

import httpx

from daysync.tier0_core.errors import (
    NetworkUnavailableError,
    SyncTimeoutError,
    UpstreamError,
)
from daysync.tier0_core.http import HTTP, error_for_status, is_success
from daysync.tier0_core.redact import scrub_string

HeadersProvider = Callable[[], dict[str, str]]


class TimeApiClient:
    """
    Async HTTP client for the time authority endpoints.

    Usage::

        client = TimeApiClient(base_url="https://api.example.com/api")
        body = await client.get_json("/time/current", timeout=10.0)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        headers_provider: HeadersProvider | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers_provider = headers_provider
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._headers_provider is not None:
            headers.update(self._headers_provider())
        return headers

    async def get_json(self, path: str, *, timeout: float | None = None) -> Any:
        return self._decode(await self._request("GET", path, timeout=timeout))

    async def post_json(
        self, path: str, json: Any = None, *, timeout: float | None = None
    ) -> Any:
        return self._decode(await self._request("POST", path, json=json, timeout=timeout))

    async def delete(self, path: str, *, timeout: float | None = None) -> Any:
        return self._decode(await self._request("DELETE", path, timeout=timeout))

    async def head(self, url: str, *, timeout: float | None = None) -> int:
        """Return the status of HEAD *url*; raises only on transport failure."""
        response = await self._send("HEAD", url, timeout=timeout)
        return response.status_code

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, timeout: float | None = None, **kwargs: Any
    ) -> httpx.Response:
        response = await self._send(method, path, timeout=timeout, **kwargs)
        if not is_success(response.status_code):
            raise error_for_status(
                response.status_code, url=str(response.request.url), body=response.text[:500]
            )
        return response

    async def _send(
        self, method: str, path: str, *, timeout: float | None = None, **kwargs: Any
    ) -> httpx.Response:
        limit = timeout if timeout is not None else self._timeout
        try:
            return await asyncio.wait_for(
                self._client.request(
                    method, path, headers=self._build_headers(), timeout=limit, **kwargs
                ),
                timeout=limit,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise SyncTimeoutError(
                user_message="Time authority did not answer in time.",
                detail=f"{method} {path} timed out after {limit}s",
                url=path,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkUnavailableError(
                user_message="Time authority is unreachable.",
                detail=scrub_string(f"{method} {path} failed: {exc}"),
                url=path,
            ) from exc
        except httpx.HTTPError as exc:
            # undecodable bodies, redirect loops
            raise UpstreamError(
                user_message="Time authority returned an unusable response.",
                detail=scrub_string(f"{method} {path} failed: {exc}"),
                url=path,
            ) from exc

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code == HTTP.NO_CONTENT or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                user_message="Time authority returned a non-JSON body.",
                detail=f"non-JSON body from {response.request.url}",
                body=response.text[:500],
            ) from exc


__all__ = ["TimeApiClient", "HeadersProvider"]
