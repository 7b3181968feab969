from __future__ import annotations

import logging
from typing import Mapping, Sequence

from quote_router.common import log_event

from ..types import KIND_ORDER_BOOK, SOL_MINT, USDC_MINT, NoRouteError, Quote, SwapParams, SwapResult
from .common import OrderBookMarket, Transport, decline_build, find_market, quote_boundary
from .orderbook import fetch_market_quote

OPENBOOK_ID = "openbook"

OPENBOOK_MARKETS: dict[str, OrderBookMarket] = {
    "SOL/USDC": OrderBookMarket(
        name="SOL/USDC",
        base_mint=SOL_MINT,
        quote_mint=USDC_MINT,
        address="CFSMrBssNG8Ud1edW59jNLnq2cwrQ9uY5cM3wXmqRJj3",
    ),
}


class OpenBookExecutor:
    """OpenBook v2 markets.

    OpenBook publishes no REST quote API of its own, and its books are already
    reachable through the aggregator. Quotes are only fetched when an indexer
    endpoint is configured; otherwise the executor reports no route.
    """

    executor_id = OPENBOOK_ID
    kind = KIND_ORDER_BOOK
    single_hop_only = True

    def __init__(
        self,
        *,
        logger: logging.Logger,
        transport: Transport,
        api_urls: Sequence[str] = (),
        markets: Mapping[str, OrderBookMarket] = OPENBOOK_MARKETS,
        quote_timeout_seconds: float = 8.0,
    ) -> None:
        self._logger = logger
        self._transport = transport
        self._api_urls = tuple(url for url in api_urls if url.strip())
        self._markets = dict(markets)
        self._quote_timeout_seconds = quote_timeout_seconds
        self._unconfigured_logged = False

    def can_handle(self, params: SwapParams) -> bool:
        return find_market(self._markets, params.input_mint, params.output_mint) is not None

    async def _fetch_quote(self, params: SwapParams) -> Quote:
        match = find_market(self._markets, params.input_mint, params.output_mint)
        if match is None:
            raise NoRouteError(f"{self.executor_id}: no market for {params.input_mint} -> {params.output_mint}")
        if not self._api_urls:
            if not self._unconfigured_logged:
                self._unconfigured_logged = True
                log_event(
                    self._logger,
                    level="info",
                    event="openbook_quote_unconfigured",
                    message="OPENBOOK_API_URLS is empty; OpenBook liquidity is left to the aggregator",
                    market=match.market.name,
                )
            raise NoRouteError(f"{self.executor_id}: no quote endpoint configured")
        return await fetch_market_quote(
            self._transport,
            source=self.executor_id,
            api_urls=self._api_urls,
            path_template="/markets/{address}/quote",
            match=match,
            params=params,
            timeout_seconds=self._quote_timeout_seconds,
        )

    async def quote(self, params: SwapParams) -> Quote | None:
        return await quote_boundary(
            lambda: self._fetch_quote(params),
            logger=self._logger,
            source=self.executor_id,
            params=params,
        )

    async def build_transaction(self, quote: Quote, wallet_key: str) -> SwapResult | None:
        decline_build(self._logger, source=self.executor_id, quote=quote)
        return None
