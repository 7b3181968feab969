from .routing import (
    ExecutionDelegate,
    FailoverTransport,
    MemoryQuoteCache,
    Quote,
    QuoteRouter,
    RedisQuoteCache,
    RoutePolicy,
    SwapParams,
    SwapResult,
)

__all__ = [
    "ExecutionDelegate",
    "FailoverTransport",
    "MemoryQuoteCache",
    "Quote",
    "QuoteRouter",
    "RedisQuoteCache",
    "RoutePolicy",
    "SwapParams",
    "SwapResult",
]
