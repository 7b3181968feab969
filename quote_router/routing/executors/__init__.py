from .common import MarketMatch, OrderBookMarket, find_market
from .jupiter import DEFAULT_JUPITER_API_URLS, JUPITER_ID, JupiterExecutor
from .openbook import OPENBOOK_ID, OPENBOOK_MARKETS, OpenBookExecutor
from .orca import DEFAULT_ORCA_API_URLS, ORCA_ID, OrcaExecutor
from .phoenix import DEFAULT_PHOENIX_API_URLS, PHOENIX_ID, PHOENIX_MARKETS, PhoenixExecutor
from .raydium import DEFAULT_RAYDIUM_API_URLS, RAYDIUM_ID, RaydiumExecutor

__all__ = [
    "DEFAULT_JUPITER_API_URLS",
    "DEFAULT_ORCA_API_URLS",
    "DEFAULT_PHOENIX_API_URLS",
    "DEFAULT_RAYDIUM_API_URLS",
    "JUPITER_ID",
    "JupiterExecutor",
    "MarketMatch",
    "OPENBOOK_ID",
    "OPENBOOK_MARKETS",
    "ORCA_ID",
    "OpenBookExecutor",
    "OrcaExecutor",
    "OrderBookMarket",
    "PHOENIX_ID",
    "PHOENIX_MARKETS",
    "PhoenixExecutor",
    "RAYDIUM_ID",
    "RaydiumExecutor",
    "find_market",
]
