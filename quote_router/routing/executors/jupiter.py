from __future__ import annotations

import logging
from typing import Any, Sequence

from quote_router.common import log_event, preview

from ..types import (
    KIND_AGGREGATOR,
    EndpointUnavailableError,
    InvalidResponseError,
    NoRouteError,
    Quote,
    SwapParams,
    SwapResult,
)
from .common import Transport, endpoint_urls, json_object, make_quote, parse_amount, quote_boundary

JUPITER_ID = "jupiter"
DEFAULT_JUPITER_API_URLS = (
    "https://quote-api.jup.ag/v6",
    "https://api.jup.ag/swap/v1",
)
DEFAULT_MIN_AMOUNT = 1_000


class JupiterExecutor:
    """Multi-hop aggregator; the only backend trusted to build swap transactions."""

    executor_id = JUPITER_ID
    kind = KIND_AGGREGATOR
    single_hop_only = False

    def __init__(
        self,
        *,
        logger: logging.Logger,
        transport: Transport,
        api_urls: Sequence[str] = DEFAULT_JUPITER_API_URLS,
        api_key: str | None = None,
        min_amount: int = DEFAULT_MIN_AMOUNT,
        quote_timeout_seconds: float = 8.0,
        build_timeout_seconds: float = 15.0,
    ) -> None:
        self._logger = logger
        self._transport = transport
        self._quote_urls = endpoint_urls(api_urls, "/quote")
        self._swap_urls = endpoint_urls(api_urls, "/swap")
        self._api_key = api_key.strip() if api_key else ""
        self._min_amount = max(0, int(min_amount))
        self._quote_timeout_seconds = quote_timeout_seconds
        self._build_timeout_seconds = build_timeout_seconds
        self._missing_api_key_logged = False

    def _build_headers(self) -> dict[str, str]:
        if self._api_key:
            return {"x-api-key": self._api_key}
        if not self._missing_api_key_logged:
            self._missing_api_key_logged = True
            log_event(
                self._logger,
                level="warning",
                event="jupiter_api_key_missing",
                message="JUPITER_API_KEY is not set; Jupiter endpoints may be strongly rate-limited",
            )
        return {}

    def can_handle(self, params: SwapParams) -> bool:
        return params.amount >= self._min_amount

    async def _fetch_quote(self, params: SwapParams) -> Quote:
        response = await self._transport.attempt(
            self._quote_urls,
            params=params.query_params(),
            headers=self._build_headers(),
            timeout_seconds=self._quote_timeout_seconds,
        )
        data = json_object(response, source=self.executor_id)
        return make_quote(
            source=self.executor_id,
            params=params,
            in_amount=parse_amount(
                data.get("inAmount") or params.amount,
                field_name="inAmount",
                source=self.executor_id,
            ),
            out_amount=parse_amount(data.get("outAmount"), field_name="outAmount", source=self.executor_id),
            price_impact=data.get("priceImpactPct"),
            route_plan=data.get("routePlan"),
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

    def _swap_request_body(self, quote: Quote, wallet_key: str) -> dict[str, Any]:
        return {
            "quoteResponse": quote.raw_payload,
            "userPublicKey": wallet_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": "auto",
        }

    async def build_transaction(self, quote: Quote, wallet_key: str) -> SwapResult | None:
        if quote.source_id != self.executor_id or not quote.raw_payload:
            log_event(
                self._logger,
                level="warning",
                event="jupiter_build_missing_payload",
                message="Cannot build a swap without a Jupiter quote payload",
                quote_source=quote.source_id,
            )
            return None

        try:
            response = await self._transport.attempt(
                self._swap_urls,
                method="POST",
                json_body=self._swap_request_body(quote, wallet_key),
                headers=self._build_headers(),
                timeout_seconds=self._build_timeout_seconds,
            )
        except EndpointUnavailableError as error:
            log_event(
                self._logger,
                level="warning",
                event="jupiter_build_unavailable",
                message="All Jupiter swap endpoints are unavailable",
                reason=str(error),
                rate_limited=error.rate_limited,
            )
            return None

        if not response.ok:
            log_event(
                self._logger,
                level="warning",
                event="jupiter_build_rejected",
                message="Jupiter rejected the swap build request",
                status=response.status,
                body_preview=preview(response.body, limit=300),
            )
            return None

        try:
            data = json_object(response, source=self.executor_id)
        except (InvalidResponseError, NoRouteError) as error:
            log_event(
                self._logger,
                level="warning",
                event="jupiter_build_invalid_response",
                message="Jupiter swap response could not be decoded",
                reason=str(error),
            )
            return None

        serialized = str(data.get("swapTransaction") or "").strip()
        if not serialized:
            log_event(
                self._logger,
                level="warning",
                event="jupiter_build_empty",
                message="Jupiter swap response carried no transaction",
                body_preview=preview(response.body, limit=200),
            )
            return None

        log_event(
            self._logger,
            level="info",
            event="jupiter_build_ok",
            message="Jupiter built the swap transaction",
            input_mint=quote.input_mint,
            output_mint=quote.output_mint,
            in_amount=quote.in_amount,
            out_amount=quote.out_amount,
        )
        return SwapResult(serialized_transaction=serialized, source_id=self.executor_id)
