from __future__ import annotations

from typing import Sequence

from ..types import EndpointUnavailableError, Quote, SwapParams
from .common import MarketMatch, Transport, endpoint_urls, json_object, make_quote, parse_amount


async def fetch_market_quote(
    transport: Transport,
    *,
    source: str,
    api_urls: Sequence[str],
    path_template: str,
    match: MarketMatch,
    params: SwapParams,
    timeout_seconds: float,
) -> Quote:
    """Quote a fill against one order-book market; the route is that single market."""
    urls = endpoint_urls(api_urls, path_template.format(address=match.market.address))
    if not urls:
        raise EndpointUnavailableError(f"{source}: no quote endpoint configured")

    response = await transport.attempt(
        urls,
        params={"amount": str(params.amount), "side": match.side},
        timeout_seconds=timeout_seconds,
    )
    data = json_object(response, source=source)
    payload = dict(data)
    payload["market"] = match.to_dict()

    return make_quote(
        source=source,
        params=params,
        in_amount=params.amount,
        out_amount=parse_amount(data.get("expectedOutput"), field_name="expectedOutput", source=source),
        price_impact=data.get("priceImpact"),
        route_plan=[{"source": source, "market": match.market.name, "address": match.market.address}],
        raw_payload=payload,
        single_hop_only=True,
    )
