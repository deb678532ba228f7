"""
Shared HTTP client for provider calls.

Every outbound request carries its own deadline; the client default is only
a backstop for callers that forget one.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

_client: Optional[httpx.AsyncClient] = None


def create_http_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create an AsyncClient configured for provider requests."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )


def get_http_client() -> httpx.AsyncClient:
    """Get the process-wide AsyncClient, creating it on first use."""
    global _client
    if _client is None or _client.is_closed:
        _client = create_http_client()
    return _client


async def close_http_client() -> None:
    """Close the process-wide AsyncClient."""
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        logger.debug("Shared HTTP client closed")
    _client = None
