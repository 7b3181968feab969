from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Callable, Protocol

from redis import asyncio as redis
from redis.asyncio.client import Redis
from redis.exceptions import RedisError

from quote_router.common import log_event

from .types import Quote, SwapParams

# OSError covers socket-level ConnectionError and TimeoutError.
CACHE_BACKEND_ERRORS = (RedisError, OSError)


def quote_fingerprint(params: SwapParams) -> str:
    return f"{params.input_mint}:{params.output_mint}:{params.amount}:{params.slippage_bps}"


class QuoteCache(Protocol):
    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def get(self, fingerprint: str) -> Quote | None:
        ...

    async def put(self, fingerprint: str, quote: Quote, ttl_seconds: float) -> None:
        ...


class MemoryQuoteCache:
    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Quote]] = {}
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            self._entries.pop(key, None)

    async def get(self, fingerprint: str) -> Quote | None:
        async with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            expires_at, quote = entry
            if self._clock() < expires_at:
                return quote
            self._entries.pop(fingerprint, None)
            return None

    async def put(self, fingerprint: str, quote: Quote, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        async with self._lock:
            now = self._clock()
            self._prune(now)
            self._entries[fingerprint] = (now + ttl_seconds, quote)


class RedisQuoteCache:
    """Quote cache shared across processes; Redis key expiry enforces the TTL.

    Backend failures are logged; reads become misses and writes become no-ops.
    """

    def __init__(
        self,
        *,
        logger: logging.Logger,
        redis_url: str,
        key_prefix: str = "quotes",
        client: Redis | None = None,
    ) -> None:
        self._logger = logger
        self._redis_url = redis_url
        self._key_prefix = key_prefix.rstrip(":")
        self._redis = client

    def _key(self, fingerprint: str) -> str:
        return f"{self._key_prefix}:{fingerprint}"

    def _require_redis(self) -> Redis:
        if self._redis is None:
            raise RuntimeError("Redis quote cache is not connected.")
        return self._redis

    def _log_unavailable(self, operation: str, error: BaseException, **fields: object) -> None:
        log_event(
            self._logger,
            level="warning",
            event="quote_cache_unavailable",
            message="Redis quote cache unavailable; continuing without it",
            operation=operation,
            redis_url=self._redis_url,
            error=str(error) or type(error).__name__,
            error_type=type(error).__name__,
            **fields,
        )

    async def connect(self) -> None:
        if self._redis is None:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
        try:
            await self._redis.ping()
        except CACHE_BACKEND_ERRORS as error:
            self._log_unavailable("connect", error)
            return
        log_event(
            self._logger,
            level="info",
            event="quote_cache_connected",
            message="Redis quote cache connected",
            redis_url=self._redis_url,
            key_prefix=self._key_prefix,
        )

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def get(self, fingerprint: str) -> Quote | None:
        client = self._require_redis()
        try:
            raw = await client.get(self._key(fingerprint))
        except CACHE_BACKEND_ERRORS as error:
            self._log_unavailable("get", error, fingerprint=fingerprint)
            return None
        if raw is None:
            return None
        try:
            return Quote.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as error:
            log_event(
                self._logger,
                level="warning",
                event="quote_cache_entry_corrupt",
                message="Discarding unreadable cached quote",
                fingerprint=fingerprint,
                error=str(error),
            )
            return None

    async def put(self, fingerprint: str, quote: Quote, ttl_seconds: float) -> None:
        # Redis expiry has millisecond resolution.
        ttl_ms = int(ttl_seconds * 1000)
        if ttl_ms <= 0:
            return
        client = self._require_redis()
        encoded = json.dumps(quote.to_dict(), ensure_ascii=False, separators=(",", ":"), default=str)
        try:
            await client.set(self._key(fingerprint), encoded, px=ttl_ms)
        except CACHE_BACKEND_ERRORS as error:
            self._log_unavailable("put", error, fingerprint=fingerprint)
