"""Base HTTP client with rate limiting and common configuration.

Provides shared functionality for API clients:
- Session management with a fixed User-Agent
- Minimum spacing between requests
- GET with explicit timeout and retry on HTTP 429
- Text responses that come back as None on any failure

A failed fetch is never an exception for callers: timeouts, network errors
and non-200 statuses are logged and reported as None so that batch jobs can
skip the affected item and continue.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from tale_store.config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_RATE_LIMIT_DELAY = 0.0  # seconds between requests
DEFAULT_MAX_RETRIES = 3


class HTTPClientBase:
    """Base class for HTTP API clients with rate limiting.

    Subclasses should:
    - Set BASE_URL class attribute
    - Override rate_limit_delay if needed
    - Add domain-specific methods built on ``_get_text``
    """

    BASE_URL: str = ""

    def __init__(
        self,
        rate_limit_delay: float = DEFAULT_RATE_LIMIT_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        """Initialize the client.

        Args:
            rate_limit_delay: Minimum seconds between two requests
            timeout: Request timeout in seconds
            user_agent: Custom User-Agent string (uses default if not provided)
            max_retries: Attempts per request when rate limited (HTTP 429)
        """
        self.rate_limit_delay = rate_limit_delay
        self.timeout = timeout
        self.max_retries = max_retries
        self._last_request_time: float = 0
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": user_agent or DEFAULT_USER_AGENT})

    def _wait_for_rate_limit(self) -> None:
        """Wait if needed to respect rate limit."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.rate_limit_delay:
            time.sleep(self.rate_limit_delay - elapsed)
        self._last_request_time = time.time()

    def _get(self, url: str, params: dict[str, Any] | None = None) -> requests.Response | None:
        """Make a GET request with rate limiting and 429 backoff.

        Args:
            url: Full URL to fetch
            params: Query parameters

        Returns:
            Response with status 200, or None if the request failed
        """
        for attempt in range(self.max_retries):
            self._wait_for_rate_limit()
            logger.debug(f"GET {url} params={params}")
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
            except requests.Timeout:
                logger.warning(f"Timeout after {self.timeout}s fetching {url}")
                return None
            except requests.RequestException as e:
                logger.warning(f"Request error fetching {url}: {e}")
                return None

            if response.status_code == 429:
                # Rate limited - wait and retry with exponential backoff
                wait_time = 2**attempt  # 1, 2, 4 seconds
                logger.warning(f"Rate limited (429), waiting {wait_time}s before retry {attempt + 1}/{self.max_retries}")
                time.sleep(wait_time)
                continue
            if response.status_code != 200:
                logger.warning(f"HTTP {response.status_code} fetching {url}")
                return None
            return response

        logger.warning(f"Failed to fetch {url} after {self.max_retries} retries (rate limited)")
        return None

    def _get_text(self, url: str, params: dict[str, Any] | None = None) -> str | None:
        """Make a GET request and return the body text, or None on failure."""
        response = self._get(url, params)
        if response is None:
            return None
        return response.text

    def close(self) -> None:
        """Close the underlying session."""
        self._session.close()

    def __enter__(self) -> HTTPClientBase:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit - close session."""
        self.close()
