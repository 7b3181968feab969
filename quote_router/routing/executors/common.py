from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol, Sequence

from quote_router.common import log_event, preview

from ..transport import TransportResponse
from ..types import (
    EndpointUnavailableError,
    InvalidResponseError,
    NoRouteError,
    Quote,
    SwapParams,
)

_NO_ROUTE_MARKERS = ("no_routes_found", "could not find any route", "no route", "route_not_found")


class Transport(Protocol):
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
        ...


@dataclass(slots=True, frozen=True)
class OrderBookMarket:
    name: str
    base_mint: str
    quote_mint: str
    address: str


@dataclass(slots=True, frozen=True)
class MarketMatch:
    market: OrderBookMarket
    is_buy: bool

    @property
    def side(self) -> str:
        return "buy" if self.is_buy else "sell"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.market.name,
            "address": self.market.address,
            "baseMint": self.market.base_mint,
            "quoteMint": self.market.quote_mint,
            "isBuy": self.is_buy,
        }


def find_market(markets: Mapping[str, OrderBookMarket], input_mint: str, output_mint: str) -> MarketMatch | None:
    for market in markets.values():
        if market.base_mint == input_mint and market.quote_mint == output_mint:
            return MarketMatch(market=market, is_buy=False)
        if market.quote_mint == input_mint and market.base_mint == output_mint:
            return MarketMatch(market=market, is_buy=True)
    return None


def endpoint_urls(bases: Iterable[str], path: str) -> tuple[str, ...]:
    urls: list[str] = []
    for base in bases:
        normalized = (base or "").strip().rstrip("/")
        if not normalized:
            continue
        url = f"{normalized}{path}"
        if url not in urls:
            urls.append(url)
    return tuple(urls)


def is_no_route_text(text: str) -> bool:
    normalized = (text or "").lower()
    return any(marker in normalized for marker in _NO_ROUTE_MARKERS)


def json_object(response: TransportResponse, *, source: str) -> dict[str, Any]:
    """Decode a 2xx body, or turn an authoritative error status into the matching error."""
    if not response.ok:
        if is_no_route_text(response.body):
            raise NoRouteError(f"{source}: provider reported no route (status={response.status})")
        raise InvalidResponseError(
            f"{source}: status={response.status} body={preview(response.body, limit=160)!r}"
        )
    data = response.json()
    if not isinstance(data, dict):
        raise InvalidResponseError(f"{source}: response is not a JSON object")
    if "error" in data and data.get("error"):
        message = str(data.get("error"))
        if is_no_route_text(message):
            raise NoRouteError(f"{source}: {message}")
        raise InvalidResponseError(f"{source}: provider error {message}")
    return data


def parse_amount(value: Any, *, field_name: str, source: str) -> int:
    if value is None or value == "":
        raise NoRouteError(f"{source}: missing {field_name}")
    if isinstance(value, bool):
        raise InvalidResponseError(f"{source}: {field_name} is not an amount: {value!r}")
    try:
        amount = int(str(value).strip())
    except (TypeError, ValueError) as error:
        raise InvalidResponseError(f"{source}: {field_name} is not an integer: {value!r}") from error
    if amount < 0:
        raise InvalidResponseError(f"{source}: {field_name} is negative: {amount}")
    return amount


def make_quote(
    *,
    source: str,
    params: SwapParams,
    in_amount: int,
    out_amount: int,
    price_impact: Any,
    route_plan: Any,
    raw_payload: dict[str, Any],
    single_hop_only: bool,
) -> Quote:
    """Build a Quote, refusing anything that could not be executed as-is."""
    if out_amount <= 0:
        raise NoRouteError(f"{source}: zero output amount")
    if not isinstance(route_plan, (list, tuple)) or not route_plan:
        raise NoRouteError(f"{source}: empty route plan")
    if single_hop_only and len(route_plan) != 1:
        raise NoRouteError(f"{source}: multi-hop route with {len(route_plan)} hops rejected")
    hops = tuple(hop if isinstance(hop, dict) else {"hop": hop} for hop in route_plan)
    return Quote(
        source_id=source,
        input_mint=params.input_mint,
        output_mint=params.output_mint,
        in_amount=in_amount if in_amount > 0 else params.amount,
        out_amount=out_amount,
        price_impact_pct=str(price_impact if price_impact not in (None, "") else "0"),
        slippage_bps=params.slippage_bps,
        route_plan=hops,
        raw_payload=raw_payload,
    )


async def quote_boundary(
    fetch: Callable[[], Awaitable[Quote]],
    *,
    logger: logging.Logger,
    source: str,
    params: SwapParams,
) -> Quote | None:
    """Collapse every backend failure to ``None`` with a logged reason."""
    fields = {
        "source": source,
        "input_mint": params.input_mint,
        "output_mint": params.output_mint,
        "amount": params.amount,
    }
    try:
        quote = await fetch()
    except asyncio.CancelledError:
        raise
    except NoRouteError as error:
        log_event(
            logger,
            level="info",
            event="executor_no_route",
            message="Backend has no usable route",
            reason=str(error),
            **fields,
        )
        return None
    except EndpointUnavailableError as error:
        log_event(
            logger,
            level="warning",
            event="executor_endpoint_unavailable",
            message="All backend endpoints are unavailable",
            reason=str(error),
            rate_limited=error.rate_limited,
            **fields,
        )
        return None
    except InvalidResponseError as error:
        log_event(
            logger,
            level="warning",
            event="executor_invalid_response",
            message="Backend returned an unusable response",
            reason=str(error),
            **fields,
        )
        return None
    except Exception as error:
        log_event(
            logger,
            level="exception",
            event="executor_quote_error",
            message="Unexpected backend quote failure",
            error=str(error),
            **fields,
        )
        return None

    log_event(
        logger,
        level="info",
        event="executor_quote_ok",
        message="Backend returned a quote",
        out_amount=quote.out_amount,
        hops=quote.hop_count,
        **fields,
    )
    return quote


def decline_build(logger: logging.Logger, *, source: str, quote: Quote) -> None:
    log_event(
        logger,
        level="info",
        event="executor_build_declined",
        message="Backend is quote-only; transactions are built by the authorized builder",
        source=source,
        quote_source=quote.source_id,
    )
