"""Helpers for validating and normalising candidate endpoint URLs."""

import logging
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

LOGGER = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def is_valid_endpoint_url(value: object) -> bool:
    """Return True for absolute http(s) URLs with a host component."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text or text != value:
        return False
    try:
        parts = urlsplit(text)
        # Accessing .port validates the port number range.
        _ = parts.port
    except ValueError:
        return False
    return parts.scheme.lower() in ALLOWED_SCHEMES and bool(parts.hostname)


def filter_valid_endpoints(values: Iterable[object], *, origin: Optional[str] = None) -> List[str]:
    """Keep valid URLs in their original order, dropping the rest with a warning.

    Args:
        values: Raw entries read from a configuration source.
        origin: Optional label for the source, used in warnings.

    Returns:
        The valid entries, deduplicated and in first-seen order.
    """
    seen = set()
    endpoints: List[str] = []
    for value in values:
        if not is_valid_endpoint_url(value):
            LOGGER.warning("Invalid endpoint URL dropped: %r (source=%s)", value, origin or "unknown")
            continue
        if value in seen:
            continue
        seen.add(value)
        endpoints.append(value)  # type: ignore[arg-type]
    return endpoints


__all__ = ["ALLOWED_SCHEMES", "is_valid_endpoint_url", "filter_valid_endpoints"]
