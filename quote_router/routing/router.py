from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from quote_router.common import log_event

from .cache import QuoteCache, quote_fingerprint
from .delegate import ExecutionDelegate
from .policy import RoutePolicy
from .types import Quote, SwapExecutor, SwapParams, SwapResult, TransactionBuildFailedError


def _usable(quote: Quote | None) -> bool:
    return quote is not None and quote.out_amount > 0 and bool(quote.route_plan)


class QuoteRouter:
    def __init__(
        self,
        *,
        logger: logging.Logger,
        executors: Iterable[SwapExecutor],
        cache: QuoteCache,
        delegate: ExecutionDelegate,
        policy: RoutePolicy | None = None,
        cache_ttl_seconds: float = 15.0,
        fanout_timeout_seconds: float = 12.0,
        resources: Iterable[Any] = (),
    ) -> None:
        self._logger = logger
        self._executors: dict[str, SwapExecutor] = {}
        for executor in executors:
            if executor.executor_id in self._executors:
                raise ValueError(f"duplicate executor id: {executor.executor_id}")
            self._executors[executor.executor_id] = executor
        if delegate.builder_id not in self._executors:
            raise ValueError(f"authorized builder {delegate.builder_id!r} is not a registered executor")
        self._cache = cache
        self._delegate = delegate
        self._policy = policy or RoutePolicy()
        self._cache_ttl_seconds = max(0.0, float(cache_ttl_seconds))
        self._fanout_timeout_seconds = max(0.1, float(fanout_timeout_seconds))
        self._resources = tuple(resources)

    @property
    def executors(self) -> dict[str, SwapExecutor]:
        return dict(self._executors)

    async def connect(self) -> None:
        for resource in self._resources:
            await resource.connect()
        await self._cache.connect()

    async def close(self) -> None:
        await self._cache.close()
        for resource in self._resources:
            await resource.close()

    def describe(self) -> list[dict[str, Any]]:
        return [
            {
                "id": executor_id,
                "kind": executor.kind,
                "single_hop_only": executor.single_hop_only,
                "authorized_builder": executor_id == self._delegate.builder_id,
            }
            for executor_id, executor in self._executors.items()
        ]

    async def best_quote(
        self,
        params: SwapParams,
        token_age_ms: int | None = None,
        liquidity_usd: float | None = None,
    ) -> Quote | None:
        fingerprint = quote_fingerprint(params)
        cached = await self._cache.get(fingerprint)
        if cached is not None:
            log_event(
                self._logger,
                level="info",
                event="quote_cache_hit",
                message="Serving quote from cache",
                fingerprint=fingerprint,
                source=cached.source_id,
            )
            return cached

        config = self._policy.route_config(
            params,
            self._executors,
            token_age_ms=token_age_ms,
            liquidity_usd=liquidity_usd,
        )
        log_event(
            self._logger,
            level="info",
            event="route_config",
            message="Resolved executor order",
            fingerprint=fingerprint,
            executor_order=list(config.executor_order),
            skip=sorted(config.skip),
            prefer_single_hop=config.prefer_single_hop,
            aggregator_last=config.aggregator_last,
            reasons=list(config.reasons),
        )

        # Sequential: the first usable quote in policy order wins.
        for executor_id in config.executor_order:
            executor = self._executors[executor_id]
            if executor_id in config.skip:
                log_event(
                    self._logger,
                    level="debug",
                    event="executor_skipped",
                    message="Executor disabled by configuration",
                    source=executor_id,
                )
                continue
            if not executor.can_handle(params):
                log_event(
                    self._logger,
                    level="debug",
                    event="executor_cannot_handle",
                    message="Executor cannot handle this swap",
                    source=executor_id,
                )
                continue

            quote = await executor.quote(params)
            if not _usable(quote):
                continue

            await self._cache.put(fingerprint, quote, self._cache_ttl_seconds)
            log_event(
                self._logger,
                level="info",
                event="best_quote_selected",
                message="Selected quote",
                fingerprint=fingerprint,
                source=executor_id,
                out_amount=quote.out_amount,
                hops=quote.hop_count,
            )
            return quote

        log_event(
            self._logger,
            level="info",
            event="no_route_found",
            message="No executor produced a usable quote",
            fingerprint=fingerprint,
            executor_order=list(config.executor_order),
        )
        return None

    async def _bounded_quote(self, executor: SwapExecutor, params: SwapParams) -> Quote | None:
        return await asyncio.wait_for(executor.quote(params), timeout=self._fanout_timeout_seconds)

    async def all_quotes(self, params: SwapParams) -> list[Quote]:
        capable = [executor for executor in self._executors.values() if executor.can_handle(params)]
        results = await asyncio.gather(
            *(self._bounded_quote(executor, params) for executor in capable),
            return_exceptions=True,
        )

        quotes: list[Quote] = []
        for executor, result in zip(capable, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                log_event(
                    self._logger,
                    level="warning",
                    event="fanout_executor_failed",
                    message="Executor failed during quote comparison",
                    source=executor.executor_id,
                    error=str(result) or type(result).__name__,
                    error_type=type(result).__name__,
                )
                continue
            if _usable(result):
                quotes.append(result)

        # Stable sort keeps registration order among equal outputs.
        quotes.sort(key=lambda quote: quote.out_amount, reverse=True)
        log_event(
            self._logger,
            level="info",
            event="all_quotes_collected",
            message="Collected quotes for comparison",
            requested=len(capable),
            received=len(quotes),
            sources=[quote.source_id for quote in quotes],
        )
        return quotes

    async def execute_swap(self, quote: Quote, wallet_key: str) -> SwapResult | None:
        try:
            result = await self._delegate.execute(quote, wallet_key)
        except TransactionBuildFailedError as error:
            log_event(
                self._logger,
                level="error",
                event="swap_execution_failed",
                message="Could not build a swap transaction",
                quote_source=quote.source_id,
                builder=self._delegate.builder_id,
                reason=str(error),
            )
            return None

        log_event(
            self._logger,
            level="info",
            event="swap_execution_ready",
            message="Swap transaction built",
            quote_source=quote.source_id,
            builder=result.source_id,
        )
        return result
