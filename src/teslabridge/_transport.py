"""HTTP transport for the token and vehicle endpoints."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from teslabridge.exceptions import TransportError

_logger = logging.getLogger(__name__)

USER_AGENT = "teslabridge"


@dataclass(frozen=True)
class HttpResponse:
    """Status and body of a completed HTTP exchange."""

    status: int
    text: str


class Transport(Protocol):
    """Structural transport interface used by the token manager and fetcher.

    Implementations return every completed response regardless of status;
    status classification is left to the caller. Network-level failures
    raise :class:`TransportError`.
    """

    async def get(self, url: str, *, headers: Mapping[str, str] | None = None) -> HttpResponse:
        ...

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> HttpResponse:
        ...


class HttpTransport:
    """aiohttp implementation of :class:`Transport`."""

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float = 30.0) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def get(self, url: str, *, headers: Mapping[str, str] | None = None) -> HttpResponse:
        return await self._request("GET", url, headers=headers)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> HttpResponse:
        return await self._request("POST", url, json=dict(payload))

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> HttpResponse:
        request_headers: dict[str, str] = {"user-agent": USER_AGENT}
        if headers:
            request_headers.update(headers)

        _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(
                method,
                url,
                headers=request_headers,
                json=json,
                timeout=self._timeout,
            ) as resp:
                try:
                    text = await resp.text()
                except UnicodeDecodeError as exc:
                    raise TransportError(
                        f"{method} {url} returned an undecodable body",
                        status_code=resp.status,
                        url=url,
                    ) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc
        except TimeoutError as exc:
            raise TransportError(f"{method} {url} timed out", url=url) from exc

        _logger.debug("%s %s -> HTTP %s", method, url, resp.status)
        return HttpResponse(status=resp.status, text=text)
