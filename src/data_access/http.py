# src/data_access/http.py
"""
Rate-limit aware request helper shared by the Gladly and Enterpret clients.
"""

import logging
import time
from typing import Callable, Optional

import requests

DEFAULT_RETRY_AFTER_SECONDS = 2.0


def parse_retry_after(value: Optional[str], default: float = DEFAULT_RETRY_AFTER_SECONDS) -> float:
    """Seconds to wait from a Retry-After header; missing or non-numeric values use the default."""
    if value is None:
        return default
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    return seconds if seconds >= 0 else default


def request_with_rate_limit(
    session: requests.Session,
    method: str,
    url: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[logging.Logger] = None,
    **kwargs
) -> requests.Response:
    """
    Send a request, replaying it after the advertised wait whenever the server answers 429.

    Every 429 is handled the same way: wait for Retry-After (or the default) and
    reissue the identical request. Any other response is returned unchanged, and
    transport exceptions propagate to the caller.

    Args:
        session: Session carrying auth and default headers
        method: HTTP method
        url: Absolute URL
        sleep: Wait function, injectable for tests
        logger: Logger for rate-limit notices
        **kwargs: Passed through to session.request

    Returns:
        The first non-429 response
    """
    log = logger or logging.getLogger(__name__)

    while True:
        response = session.request(method, url, **kwargs)
        if response.status_code != 429:
            return response

        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        log.warning(f"Rate limit hit on {method} {url}. Retrying after {retry_after:g} seconds.")
        sleep(retry_after)
