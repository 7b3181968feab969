from __future__ import annotations

import logging
from typing import Sequence

from ..types import KIND_DIRECT_AMM, Quote, SwapParams, SwapResult
from .common import (
    Transport,
    decline_build,
    endpoint_urls,
    json_object,
    make_quote,
    parse_amount,
    quote_boundary,
)

ORCA_ID = "orca"
DEFAULT_ORCA_API_URLS = ("https://api.orca.so",)


class OrcaExecutor:
    executor_id = ORCA_ID
    kind = KIND_DIRECT_AMM
    single_hop_only = True

    def __init__(
        self,
        *,
        logger: logging.Logger,
        transport: Transport,
        api_urls: Sequence[str] = DEFAULT_ORCA_API_URLS,
        quote_timeout_seconds: float = 8.0,
    ) -> None:
        self._logger = logger
        self._transport = transport
        self._quote_urls = endpoint_urls(api_urls, "/v1/whirlpool/quote")
        self._quote_timeout_seconds = quote_timeout_seconds

    def can_handle(self, params: SwapParams) -> bool:
        return True

    async def _fetch_quote(self, params: SwapParams) -> Quote:
        query = params.query_params()
        query["mode"] = "ExactIn"
        response = await self._transport.attempt(
            self._quote_urls,
            params=query,
            timeout_seconds=self._quote_timeout_seconds,
        )
        data = json_object(response, source=self.executor_id)

        # Whirlpool quotes describe one pool; a routePlan only shows up when the API chained pools.
        route_plan = data.get("routePlan")
        if route_plan is None:
            route_plan = [{"source": "orca-whirlpool", "pool": data.get("whirlpool")}]

        return make_quote(
            source=self.executor_id,
            params=params,
            in_amount=parse_amount(
                data.get("estimatedAmountIn") or params.amount,
                field_name="estimatedAmountIn",
                source=self.executor_id,
            ),
            out_amount=parse_amount(
                data.get("estimatedAmountOut"),
                field_name="estimatedAmountOut",
                source=self.executor_id,
            ),
            price_impact=data.get("priceImpact"),
            route_plan=route_plan,
            raw_payload=data,
            single_hop_only=self.single_hop_only,
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
