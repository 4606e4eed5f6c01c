"""Shared HTTP helpers for the API clients."""

import logging
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
RETRY_DELAY_SECONDS = 2.0


def request_with_retry(
    client: httpx.Client,
    method: str,
    url: str,
    retry_delay: float = RETRY_DELAY_SECONDS,
    **kwargs: Any,
) -> httpx.Response:
    """Make an HTTP request, retrying once on 5xx or network errors.

    Args:
        client: Configured httpx client.
        method: HTTP method.
        url: URL relative to the client's base URL.
        retry_delay: Seconds to wait before the retry.
        **kwargs: Passed through to httpx.Client.request.

    Returns:
        The successful response.

    Raises:
        httpx.HTTPStatusError: If the final response is 4xx/5xx.
        httpx.TransportError: If the retry also fails at the network level.
    """
    try:
        response = client.request(method, url, **kwargs)
    except httpx.TransportError as e:
        logger.warning(f"Network error on {method} {url} ({e}), retrying once...")
        time.sleep(retry_delay)
        response = client.request(method, url, **kwargs)
    else:
        if response.status_code >= 500:
            logger.warning(
                f"Server error {response.status_code} on {method} {url}, retrying once..."
            )
            time.sleep(retry_delay)
            response = client.request(method, url, **kwargs)
    response.raise_for_status()
    return response
