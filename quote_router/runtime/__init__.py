from .bootstrap import build_cache, build_router
from .logging import setup_logger
from .settings import AppSettings

__all__ = [
    "AppSettings",
    "build_cache",
    "build_router",
    "setup_logger",
]
