from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import aiohttp

from quote_router.common import log_event, preview, sanitize_url

from .types import EndpointUnavailableError, InvalidResponseError, RateLimitedError

DEFAULT_USER_AGENT = "quote-router/1.0"


def _parse_retry_after_seconds(raw: str | None) -> float | None:
    if raw is None:
        return None

    value = raw.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        return None

    return seconds if seconds > 0 else None


@dataclass(slots=True, frozen=True)
class TransportResponse:
    status: int
    url: str
    body: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except json.JSONDecodeError as error:
            raise InvalidResponseError(
                f"non-JSON body from {sanitize_url(self.url)}: status={self.status} "
                f"body={preview(self.body, limit=120)!r}"
            ) from error


class FailoverTransport:
    """Issue one request against an ordered list of equivalent endpoints.

    A 2xx answer is returned at once. A 429 or a transport-level failure
    (timeout, connection reset, DNS) moves on to the next URL. Any other
    status is the backend's own answer and is handed back without trying
    further endpoints.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        session: aiohttp.ClientSession | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._logger = logger
        self._session = session
        self._owns_session = session is None
        self._user_agent = user_agent

    async def connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _build_headers(self, headers: dict[str, str] | None, *, has_body: bool) -> dict[str, str]:
        merged = {
            "Accept": "application/json",
            "User-Agent": self._user_agent,
        }
        if has_body:
            merged["Content-Type"] = "application/json"
        if headers:
            merged.update(headers)
        return merged

    async def _request_once(
        self,
        url: str,
        *,
        method: str,
        params: dict[str, str] | None,
        json_body: Any,
        headers: dict[str, str],
        timeout_seconds: float,
    ) -> TransportResponse:
        if self._session is None:
            await self.connect()
        if self._session is None:
            raise RuntimeError("Transport HTTP session is not initialized.")

        timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        async with self._session.request(
            method,
            url,
            params=params,
            json=json_body,
            headers=headers,
            timeout=timeout,
        ) as response:
            body = await response.text()
            return TransportResponse(
                status=response.status,
                url=url,
                body=body,
                headers={key.lower(): value for key, value in response.headers.items()},
            )

    async def attempt(
        self,
        urls: Sequence[str],
        *,
        method: str = "GET",
        params: dict[str, str] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        timeout_seconds: float = 8.0,
    ) -> TransportResponse:
        endpoints = tuple(urls)
        if not endpoints:
            raise EndpointUnavailableError("no endpoints configured", urls=endpoints)

        request_headers = self._build_headers(headers, has_body=json_body is not None)
        rate_limited = False
        last_error: Exception | None = None

        for index, url in enumerate(endpoints, start=1):
            try:
                response = await self._request_once(
                    url,
                    method=method,
                    params=params,
                    json_body=json_body,
                    headers=request_headers,
                    timeout_seconds=timeout_seconds,
                )
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError) as error:
                last_error = error
                log_event(
                    self._logger,
                    level="warning",
                    event="transport_endpoint_failed",
                    message="Endpoint request failed; trying next endpoint",
                    endpoint=sanitize_url(url),
                    attempt=index,
                    endpoint_total=len(endpoints),
                    error=str(error) or type(error).__name__,
                    error_type=type(error).__name__,
                )
                continue

            if response.ok:
                if index > 1:
                    log_event(
                        self._logger,
                        level="info",
                        event="transport_failover_succeeded",
                        message="Request succeeded on a fallback endpoint",
                        endpoint=sanitize_url(url),
                        attempt=index,
                        endpoint_total=len(endpoints),
                    )
                return response

            if response.status == 429:
                rate_limited = True
                rate_limit_error = RateLimitedError(
                    f"rate limited by {sanitize_url(url)}",
                    url=url,
                    retry_after_seconds=_parse_retry_after_seconds(response.headers.get("retry-after")),
                )
                last_error = rate_limit_error
                log_event(
                    self._logger,
                    level="warning",
                    event="transport_rate_limited",
                    message="Endpoint rate limited the request; trying next endpoint",
                    endpoint=sanitize_url(url),
                    attempt=index,
                    endpoint_total=len(endpoints),
                    retry_after_seconds=rate_limit_error.retry_after_seconds,
                )
                continue

            log_event(
                self._logger,
                level="info",
                event="transport_backend_error",
                message="Endpoint returned an authoritative error status",
                endpoint=sanitize_url(url),
                status=response.status,
                body_preview=preview(response.body, limit=200),
            )
            return response

        raise EndpointUnavailableError(
            f"all {len(endpoints)} endpoint(s) exhausted: {last_error}",
            urls=endpoints,
            rate_limited=rate_limited,
        )
