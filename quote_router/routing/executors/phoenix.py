from __future__ import annotations

import logging
from typing import Mapping, Sequence

from ..types import KIND_ORDER_BOOK, SOL_MINT, USDC_MINT, USDT_MINT, NoRouteError, Quote, SwapParams, SwapResult
from .common import OrderBookMarket, Transport, decline_build, find_market, quote_boundary
from .orderbook import fetch_market_quote

PHOENIX_ID = "phoenix"
DEFAULT_PHOENIX_API_URLS = ("https://api.phoenix.so",)

PHOENIX_MARKETS: dict[str, OrderBookMarket] = {
    "SOL/USDC": OrderBookMarket(
        name="SOL/USDC",
        base_mint=SOL_MINT,
        quote_mint=USDC_MINT,
        address="4DoNfFBfF7UokCC2FQzriy7yHK6DY6NVdYpuekQ5pRgg",
    ),
    "SOL/USDT": OrderBookMarket(
        name="SOL/USDT",
        base_mint=SOL_MINT,
        quote_mint=USDT_MINT,
        address="4xPpRp3u7vP8BWSxfvPFQW7zNcZ9NVLwTDMjFkJvoQwF",
    ),
}


class PhoenixExecutor:
    executor_id = PHOENIX_ID
    kind = KIND_ORDER_BOOK
    single_hop_only = True

    def __init__(
        self,
        *,
        logger: logging.Logger,
        transport: Transport,
        api_urls: Sequence[str] = DEFAULT_PHOENIX_API_URLS,
        markets: Mapping[str, OrderBookMarket] = PHOENIX_MARKETS,
        quote_timeout_seconds: float = 8.0,
    ) -> None:
        self._logger = logger
        self._transport = transport
        self._api_urls = tuple(api_urls)
        self._markets = dict(markets)
        self._quote_timeout_seconds = quote_timeout_seconds

    def can_handle(self, params: SwapParams) -> bool:
        return find_market(self._markets, params.input_mint, params.output_mint) is not None

    async def _fetch_quote(self, params: SwapParams) -> Quote:
        match = find_market(self._markets, params.input_mint, params.output_mint)
        if match is None:
            raise NoRouteError(f"{self.executor_id}: no market for {params.input_mint} -> {params.output_mint}")
        return await fetch_market_quote(
            self._transport,
            source=self.executor_id,
            api_urls=self._api_urls,
            path_template="/v1/markets/{address}/quote",
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
