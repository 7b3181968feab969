from __future__ import annotations

import logging
from typing import Sequence

from ..types import KIND_DIRECT_AMM, InvalidResponseError, NoRouteError, Quote, SwapParams, SwapResult
from .common import (
    Transport,
    decline_build,
    endpoint_urls,
    json_object,
    make_quote,
    parse_amount,
    quote_boundary,
)

RAYDIUM_ID = "raydium"
DEFAULT_RAYDIUM_API_URLS = ("https://transaction-v1.raydium.io",)


class RaydiumExecutor:
    """Raydium trade API, restricted to direct single-pool routes."""

    executor_id = RAYDIUM_ID
    kind = KIND_DIRECT_AMM
    single_hop_only = True

    def __init__(
        self,
        *,
        logger: logging.Logger,
        transport: Transport,
        api_urls: Sequence[str] = DEFAULT_RAYDIUM_API_URLS,
        quote_timeout_seconds: float = 8.0,
    ) -> None:
        self._logger = logger
        self._transport = transport
        self._quote_urls = endpoint_urls(api_urls, "/compute/swap-base-in")
        self._quote_timeout_seconds = quote_timeout_seconds

    def can_handle(self, params: SwapParams) -> bool:
        return True

    async def _fetch_quote(self, params: SwapParams) -> Quote:
        query = params.query_params()
        query["txVersion"] = "V0"
        response = await self._transport.attempt(
            self._quote_urls,
            params=query,
            timeout_seconds=self._quote_timeout_seconds,
        )
        payload = json_object(response, source=self.executor_id)
        if not payload.get("success"):
            raise NoRouteError(f"{self.executor_id}: {payload.get('msg') or 'request not successful'}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise InvalidResponseError(f"{self.executor_id}: missing data object")

        return make_quote(
            source=self.executor_id,
            params=params,
            in_amount=parse_amount(
                data.get("inputAmount") or params.amount,
                field_name="inputAmount",
                source=self.executor_id,
            ),
            out_amount=parse_amount(data.get("outputAmount"), field_name="outputAmount", source=self.executor_id),
            price_impact=data.get("priceImpactPct"),
            route_plan=data.get("routePlan"),
            raw_payload=payload,
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
