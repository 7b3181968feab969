from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from quote_router.routing.executors import (
    DEFAULT_JUPITER_API_URLS,
    DEFAULT_ORCA_API_URLS,
    DEFAULT_PHOENIX_API_URLS,
    DEFAULT_RAYDIUM_API_URLS,
)


def to_int(value: Any, default: int) -> int:
    try:
        if value is None or str(value).strip() == "":
            return default
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return default


def to_float(value: Any, default: float) -> float:
    try:
        if value is None or str(value).strip() == "":
            return default
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


def to_csv(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items: list[str] = []
    for raw in value.split(","):
        item = raw.strip()
        if item and item not in items:
            items.append(item)
    return tuple(items)


def normalize_cache_backend(value: str) -> str:
    backend = (value or "").strip().lower()
    if backend in {"memory", "redis"}:
        return backend
    return "memory"


@dataclass(slots=True)
class AppSettings:
    jupiter_api_urls: tuple[str, ...]
    jupiter_api_key: str
    jupiter_min_amount: int
    raydium_api_urls: tuple[str, ...]
    orca_api_urls: tuple[str, ...]
    phoenix_api_urls: tuple[str, ...]
    openbook_api_urls: tuple[str, ...]
    quote_timeout_seconds: float
    build_timeout_seconds: float
    fanout_timeout_seconds: float
    quote_cache_ttl_seconds: float
    quote_cache_backend: str
    redis_url: str
    redis_quote_prefix: str
    small_trade_threshold: int
    fresh_token_age_ms: int
    min_liquidity_usd: float
    disabled_executors: frozenset[str]
    log_level: str

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            jupiter_api_urls=to_csv(os.getenv("JUPITER_API_URLS"), DEFAULT_JUPITER_API_URLS),
            jupiter_api_key=os.getenv("JUPITER_API_KEY", "").strip(),
            jupiter_min_amount=max(0, to_int(os.getenv("JUPITER_MIN_AMOUNT"), 1_000)),
            raydium_api_urls=to_csv(os.getenv("RAYDIUM_API_URLS"), DEFAULT_RAYDIUM_API_URLS),
            orca_api_urls=to_csv(os.getenv("ORCA_API_URLS"), DEFAULT_ORCA_API_URLS),
            phoenix_api_urls=to_csv(os.getenv("PHOENIX_API_URLS"), DEFAULT_PHOENIX_API_URLS),
            openbook_api_urls=to_csv(os.getenv("OPENBOOK_API_URLS"), ()),
            quote_timeout_seconds=max(0.5, to_float(os.getenv("QUOTE_TIMEOUT_SECONDS"), 8.0)),
            build_timeout_seconds=max(0.5, to_float(os.getenv("BUILD_TIMEOUT_SECONDS"), 15.0)),
            fanout_timeout_seconds=max(0.5, to_float(os.getenv("FANOUT_TIMEOUT_SECONDS"), 12.0)),
            quote_cache_ttl_seconds=max(0.0, to_float(os.getenv("QUOTE_CACHE_TTL_SECONDS"), 15.0)),
            quote_cache_backend=normalize_cache_backend(os.getenv("QUOTE_CACHE_BACKEND", "memory")),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0").strip(),
            redis_quote_prefix=os.getenv("REDIS_QUOTE_PREFIX", "quotes").strip() or "quotes",
            small_trade_threshold=max(0, to_int(os.getenv("SMALL_TRADE_THRESHOLD"), 500_000)),
            fresh_token_age_ms=max(0, to_int(os.getenv("FRESH_TOKEN_AGE_MS"), 48 * 60 * 60 * 1000)),
            min_liquidity_usd=max(0.0, to_float(os.getenv("MIN_LIQUIDITY_USD"), 50_000.0)),
            disabled_executors=frozenset(
                item.lower() for item in to_csv(os.getenv("DISABLED_EXECUTORS"), ())
            ),
            log_level=(os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"),
        )
