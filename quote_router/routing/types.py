from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

STABLECOIN_MINTS = frozenset({USDC_MINT, USDT_MINT})

KIND_AGGREGATOR = "aggregator"
KIND_DIRECT_AMM = "direct_amm"
KIND_ORDER_BOOK = "order_book"


class QuoteRouterError(RuntimeError):
    pass


class RateLimitedError(QuoteRouterError):
    def __init__(self, message: str, *, url: str, retry_after_seconds: float | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.retry_after_seconds = retry_after_seconds


class EndpointUnavailableError(QuoteRouterError):
    def __init__(self, message: str, *, urls: tuple[str, ...] = (), rate_limited: bool = False) -> None:
        super().__init__(message)
        self.urls = urls
        self.rate_limited = rate_limited


class NoRouteError(QuoteRouterError):
    pass


class InvalidResponseError(QuoteRouterError):
    pass


class TransactionBuildFailedError(QuoteRouterError):
    def __init__(self, message: str, *, source_id: str = "") -> None:
        super().__init__(message)
        self.source_id = source_id


def is_stable_pair(input_mint: str, output_mint: str) -> bool:
    return input_mint in STABLECOIN_MINTS and output_mint in STABLECOIN_MINTS


@dataclass(slots=True, frozen=True)
class SwapParams:
    input_mint: str
    output_mint: str
    amount: int
    slippage_bps: int
    wallet_key: str | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"amount must be positive, got {self.amount}")
        if self.slippage_bps < 0:
            raise ValueError(f"slippage_bps must be non-negative, got {self.slippage_bps}")

    def query_params(self) -> dict[str, str]:
        return {
            "inputMint": self.input_mint,
            "outputMint": self.output_mint,
            "amount": str(self.amount),
            "slippageBps": str(self.slippage_bps),
        }


@dataclass(slots=True, frozen=True)
class Quote:
    source_id: str
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: str
    slippage_bps: int
    route_plan: tuple[dict[str, Any], ...]
    raw_payload: dict[str, Any] = field(default_factory=dict)

    @property
    def hop_count(self) -> int:
        return len(self.route_plan)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_id,
            "inputMint": self.input_mint,
            "outputMint": self.output_mint,
            "inAmount": str(self.in_amount),
            "outAmount": str(self.out_amount),
            "priceImpactPct": self.price_impact_pct,
            "slippageBps": self.slippage_bps,
            "routePlan": list(self.route_plan),
            "raw": self.raw_payload,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Quote":
        return cls(
            source_id=str(data["source"]),
            input_mint=str(data["inputMint"]),
            output_mint=str(data["outputMint"]),
            in_amount=int(data["inAmount"]),
            out_amount=int(data["outAmount"]),
            price_impact_pct=str(data.get("priceImpactPct") or "0"),
            slippage_bps=int(data["slippageBps"]),
            route_plan=tuple(data.get("routePlan") or ()),
            raw_payload=dict(data.get("raw") or {}),
        )


@dataclass(slots=True, frozen=True)
class SwapResult:
    serialized_transaction: str
    source_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"swapTransaction": self.serialized_transaction, "source": self.source_id}


@dataclass(slots=True, frozen=True)
class RouteConfig:
    executor_order: tuple[str, ...]
    skip: frozenset[str] = frozenset()
    prefer_single_hop: bool = False
    aggregator_last: bool = False
    reasons: tuple[str, ...] = ()


class SwapExecutor(Protocol):
    executor_id: str
    kind: str
    single_hop_only: bool

    def can_handle(self, params: SwapParams) -> bool:
        ...

    async def quote(self, params: SwapParams) -> Quote | None:
        ...

    async def build_transaction(self, quote: Quote, wallet_key: str) -> SwapResult | None:
        ...
