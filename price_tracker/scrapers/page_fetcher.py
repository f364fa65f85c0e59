# price_tracker/scrapers/page_fetcher.py

"""Plain HTTP GET with retries for live pages, archive pages and APIs."""

import json
import logging
import time
from typing import Any

from curl_cffi import requests as curl_requests

from price_tracker.config.settings import Settings


class FetchError(Exception):
    """Raised when a URL could not be fetched with a 200 response."""


class PageFetcher:
    """Fetch pages as static HTML (or JSON) with bounded retries.

    Every request carries the tool's descriptive user agent.  Client
    errors other than 429 are permanent and are not retried; network
    errors, 429 and 5xx responses are retried with a linear backoff.
    """

    def __init__(self, name: str = "http") -> None:
        self.name = name
        self.logger = logging.getLogger(f"price_tracker.{name}")
        self.settings = Settings()
        self.session = curl_requests.Session()
        self._request_timeout: int = self.settings.REQUEST_TIMEOUT

    def _backoff(self, attempt: int) -> None:
        """Sleep before the next attempt."""
        time.sleep(self.settings.REQUEST_DELAY * (attempt + 1))

    def _fetch_get(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> curl_requests.Response:
        """GET *url*, returning the first 200 response.

        Raises:
            FetchError: When every attempt failed.
        """
        last_error = "no attempt made"
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    params=params,
                    headers=self.settings.DEFAULT_HEADERS,
                    timeout=self._request_timeout,
                    allow_redirects=True,
                )
            except Exception as exc:
                last_error = str(exc)
                self.logger.warning(
                    "[%s] Request error on attempt %d for %s: %s",
                    self.name,
                    attempt + 1,
                    url,
                    exc,
                )
                self._backoff(attempt)
                continue

            if resp.status_code == 200:
                return resp

            last_error = f"HTTP {resp.status_code}"
            self.logger.warning(
                "[%s] HTTP %d on attempt %d for %s",
                self.name,
                resp.status_code,
                attempt + 1,
                url,
            )
            if 400 <= resp.status_code < 500 and resp.status_code != 429:
                break
            self._backoff(attempt)

        raise FetchError(f"{last_error} for {url}")

    def fetch_text(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> str:
        """Return the response body of *url* as text."""
        return self._fetch_get(url, params).text

    def fetch_json(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Return the decoded JSON body of *url*.

        Raises:
            FetchError: On transport failure or a non-JSON body.
        """
        text = self.fetch_text(url, params)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise FetchError(f"Invalid JSON from {url}: {exc}") from exc

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
