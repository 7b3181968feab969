from .cache import MemoryQuoteCache, QuoteCache, RedisQuoteCache, quote_fingerprint
from .delegate import ExecutionDelegate
from .policy import RoutePolicy, RoutingSettings
from .router import QuoteRouter
from .transport import FailoverTransport, TransportResponse
from .types import (
    SOL_MINT,
    STABLECOIN_MINTS,
    USDC_MINT,
    USDT_MINT,
    EndpointUnavailableError,
    InvalidResponseError,
    NoRouteError,
    Quote,
    QuoteRouterError,
    RateLimitedError,
    RouteConfig,
    SwapExecutor,
    SwapParams,
    SwapResult,
    TransactionBuildFailedError,
)

__all__ = [
    "EndpointUnavailableError",
    "ExecutionDelegate",
    "FailoverTransport",
    "InvalidResponseError",
    "MemoryQuoteCache",
    "NoRouteError",
    "Quote",
    "QuoteCache",
    "QuoteRouter",
    "QuoteRouterError",
    "RateLimitedError",
    "RedisQuoteCache",
    "RouteConfig",
    "RoutePolicy",
    "RoutingSettings",
    "SOL_MINT",
    "STABLECOIN_MINTS",
    "SwapExecutor",
    "SwapParams",
    "SwapResult",
    "TransactionBuildFailedError",
    "TransportResponse",
    "USDC_MINT",
    "USDT_MINT",
    "quote_fingerprint",
]
