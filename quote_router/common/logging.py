from __future__ import annotations

import logging
import re
from typing import Any, Mapping
from urllib.parse import urlsplit, urlunsplit

REDACTED = "***"

# Service URLs in free text; a match never ends on sentence punctuation.
SERVICE_URL_RE = re.compile(r"\b(?:https?|rediss?)://[^\s\"'<>]*[^\s\"'<>.,;:)\]}]", re.IGNORECASE)
SECRET_ASSIGNMENT_RE = re.compile(r"(?i)\b((?:x-)?api[-_]?key|password)(\s*[:=]\s*)[^\s,;\"'&]+")
SECRET_FIELDS = frozenset({"api_key", "x_api_key", "password", "authorization"})

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def sanitize_url(url: str) -> str:
    """Reduce a URL to scheme, host and path.

    Credentials in the authority (``redis://:secret@host``), query strings
    (``?api-key=``) and fragments are dropped. Anything that does not parse
    as an absolute URL is returned unchanged.
    """
    parsed = urlsplit(url)
    if not parsed.scheme or not parsed.netloc:
        return url
    host = parsed.netloc.rpartition("@")[2]
    return urlunsplit((parsed.scheme, host, parsed.path or "/", "", ""))


def sanitize_text(value: str) -> str:
    masked = SERVICE_URL_RE.sub(lambda match: sanitize_url(match.group(0)), value)
    return SECRET_ASSIGNMENT_RE.sub(rf"\1\2{REDACTED}", masked)


def _is_secret_field(name: Any) -> bool:
    return str(name).lower().replace("-", "_") in SECRET_FIELDS


def sanitize_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: REDACTED if _is_secret_field(key) else sanitize_value(value) for key, value in fields.items()}


def sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, Mapping):
        return sanitize_fields(value)
    if isinstance(value, (list, tuple)):
        return [sanitize_value(item) for item in value]
    return value


def preview(text: str, *, limit: int = 240) -> str:
    if not text:
        return ""
    return sanitize_text(text)[:limit]


def log_event(
    logger: logging.Logger,
    *,
    level: str,
    event: str,
    message: str,
    **fields: Any,
) -> None:
    extra = {"event": sanitize_text(event), **sanitize_fields(fields)}
    safe_message = sanitize_text(message)

    if level == "exception":
        logger.exception(safe_message, extra=extra)
        return
    logger.log(_LEVELS.get(level, logging.INFO), safe_message, extra=extra)
