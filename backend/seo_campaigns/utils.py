"""
Shared utility functions.
"""

import logging
import uuid as uuid_mod
from datetime import datetime, timezone
from urllib.parse import urlparse

from seo_campaigns.errors import ValidationError

logger = logging.getLogger(__name__)


def parse_uuid(value, field_name: str = "id") -> uuid_mod.UUID:
    """
    Parse a string as UUID, raising ValidationError on invalid input
    instead of letting a bare ValueError bubble up as a 500.
    """
    if isinstance(value, uuid_mod.UUID):
        return value
    try:
        return uuid_mod.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        raise ValidationError(f"Invalid UUID for '{field_name}': {value!r}")


def safe_error_detail(exc: Exception, fallback: str = "An internal error occurred. Please try again later.") -> str:
    """
    Return a sanitized error message safe for client consumption.
    Logs the real exception detail server-side.
    """
    logger.error(f"Operation failed: {exc}", exc_info=True)
    return fallback


def utcnow() -> datetime:
    """
    Return the current UTC time as a naive datetime (no tzinfo).
    Naive datetimes are used because our DB columns are TIMESTAMP WITHOUT TIME ZONE.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_url(url: str) -> str:
    """Prefix bare hosts with https:// so httpx and urlparse can handle them."""
    url = (url or "").strip()
    if not url:
        return ""
    return url if url.startswith("http") else f"https://{url}"


def extract_domain(url: str) -> str:
    """Hostname without a leading www., or '' when the URL cannot be parsed."""
    if not url:
        return ""
    try:
        host = urlparse(normalize_url(url)).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host
