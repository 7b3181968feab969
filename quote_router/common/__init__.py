from .logging import log_event, preview, sanitize_url

__all__ = [
    "log_event",
    "preview",
    "sanitize_url",
]
