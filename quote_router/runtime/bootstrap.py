from __future__ import annotations

import logging

from quote_router.common import log_event
from quote_router.routing import (
    ExecutionDelegate,
    FailoverTransport,
    MemoryQuoteCache,
    QuoteCache,
    QuoteRouter,
    RedisQuoteCache,
    RoutePolicy,
    RoutingSettings,
)
from quote_router.routing.executors import (
    JupiterExecutor,
    OpenBookExecutor,
    OrcaExecutor,
    PhoenixExecutor,
    RaydiumExecutor,
)

from .settings import AppSettings


def build_cache(settings: AppSettings, logger: logging.Logger) -> QuoteCache:
    if settings.quote_cache_backend == "redis":
        return RedisQuoteCache(
            logger=logger,
            redis_url=settings.redis_url,
            key_prefix=settings.redis_quote_prefix,
        )
    return MemoryQuoteCache()


def build_router(settings: AppSettings, logger: logging.Logger) -> QuoteRouter:
    """Wire one transport, one cache and every executor into a router.

    Registration order is the tie-breaker for equal quotes and for executors
    of the same kind.
    """
    transport = FailoverTransport(logger=logger)
    jupiter = JupiterExecutor(
        logger=logger,
        transport=transport,
        api_urls=settings.jupiter_api_urls,
        api_key=settings.jupiter_api_key,
        min_amount=settings.jupiter_min_amount,
        quote_timeout_seconds=settings.quote_timeout_seconds,
        build_timeout_seconds=settings.build_timeout_seconds,
    )
    executors = [
        jupiter,
        RaydiumExecutor(
            logger=logger,
            transport=transport,
            api_urls=settings.raydium_api_urls,
            quote_timeout_seconds=settings.quote_timeout_seconds,
        ),
        OrcaExecutor(
            logger=logger,
            transport=transport,
            api_urls=settings.orca_api_urls,
            quote_timeout_seconds=settings.quote_timeout_seconds,
        ),
        PhoenixExecutor(
            logger=logger,
            transport=transport,
            api_urls=settings.phoenix_api_urls,
            quote_timeout_seconds=settings.quote_timeout_seconds,
        ),
        OpenBookExecutor(
            logger=logger,
            transport=transport,
            api_urls=settings.openbook_api_urls,
            quote_timeout_seconds=settings.quote_timeout_seconds,
        ),
    ]
    policy = RoutePolicy(
        RoutingSettings(
            small_trade_threshold=settings.small_trade_threshold,
            fresh_token_age_ms=settings.fresh_token_age_ms,
            min_liquidity_usd=settings.min_liquidity_usd,
            disabled_executors=settings.disabled_executors,
        )
    )
    if jupiter.executor_id in settings.disabled_executors:
        log_event(
            logger,
            level="warning",
            event="builder_quotes_disabled",
            message="Jupiter is disabled for quoting but still builds every swap transaction",
        )

    router = QuoteRouter(
        logger=logger,
        executors=executors,
        cache=build_cache(settings, logger),
        delegate=ExecutionDelegate(builder=jupiter, logger=logger),
        policy=policy,
        cache_ttl_seconds=settings.quote_cache_ttl_seconds,
        fanout_timeout_seconds=settings.fanout_timeout_seconds,
        resources=(transport,),
    )
    log_event(
        logger,
        level="info",
        event="router_ready",
        message="Quote router configured",
        executors=[entry["id"] for entry in router.describe()],
        cache_backend=settings.quote_cache_backend,
        cache_ttl_seconds=settings.quote_cache_ttl_seconds,
        disabled_executors=sorted(settings.disabled_executors),
    )
    return router
