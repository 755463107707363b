"""
sd2epg.downloader.base - Rate limited HTTP client

Handles HTTP requests against a provider endpoint with connection reuse and
transparent handling of "429 Too Many Requests" backoff. Failures other than
rate limiting are logged and reported as an empty result, never raised.
"""

import json
import logging
import threading
import time
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class RateLimitedClient:
    """HTTP client honoring the provider's Retry-After backoff"""

    DEFAULT_USER_AGENT = "sd2epg/2.0"

    def __init__(
        self,
        base_url: str,
        user_agent: Optional[str] = None,
        timeout: int = 30,
        pool_size: int = 4,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.pool_size = max(1, pool_size)
        self.user_agent = user_agent or self.DEFAULT_USER_AGENT

        # Cleared after an unrecoverable configuration failure at startup
        self.is_alive = True

        self.total_requests = 0
        self.rate_limited = 0
        self.failures = 0
        self.stats_lock = threading.Lock()

        self.session: Optional[requests.Session] = session
        if self.session is None:
            self.init_session()

    def init_session(self):
        """Initialize session with connection reuse sized to the worker count"""
        if self.session:
            self.session.close()

        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": self.user_agent,
                "Accept": "application/json",
                "Accept-Encoding": "gzip, deflate",
                "Connection": "keep-alive",
            }
        )

        # Backoff is handled here, never by urllib3
        retry_strategy = Retry(total=0, backoff_factor=0, status_forcelist=[])

        adapter = HTTPAdapter(
            pool_connections=1,
            pool_maxsize=self.pool_size,
            max_retries=retry_strategy,
            pool_block=True,
        )
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        logging.debug("HTTP session initialized for %s (pool: %d)", self.base_url, self.pool_size)

    def set_header(self, name: str, value: str):
        self.session.headers.update({name: value})

    def build_url(self, uri: str) -> str:
        if uri.startswith("http://") or uri.startswith("https://"):
            return uri
        return f"{self.base_url}{uri}"

    def _sleep(self, seconds: float):
        time.sleep(seconds)

    def _count(self, key: str):
        with self.stats_lock:
            setattr(self, key, getattr(self, key) + 1)

    @staticmethod
    def _retry_after(response: requests.Response) -> int:
        try:
            return max(0, int(response.headers.get("Retry-After", "0")))
        except (TypeError, ValueError):
            return 0

    def request(self, method: str, uri: str, payload: Any = None) -> Optional[bytes]:
        """
        Perform one logical request

        A rate limited answer is retried after the server requested delay plus
        one second, for as long as it takes. Any other failure is logged and
        returns None.

        Args:
            method: HTTP method ("GET" or "POST")
            uri: Path relative to the base URL, or an absolute URL
            payload: JSON body for POST requests

        Returns:
            Optional[bytes]: Response body, None on failure
        """
        url = self.build_url(uri)

        while True:
            self._count("total_requests")
            try:
                if method.upper() == "POST":
                    response = self.session.post(url, json=payload, timeout=self.timeout)
                else:
                    response = self.session.get(url, timeout=self.timeout)
            except requests.exceptions.Timeout:
                logging.warning("  Timeout (%ds) requesting %s", self.timeout, self._display(url))
                self._count("failures")
                return None
            except requests.exceptions.RequestException as e:
                logging.warning("  Request error for %s: %s", self._display(url), str(e))
                self._count("failures")
                return None

            if response.status_code == 429 and self.is_alive:
                delay = self._retry_after(response) + 1
                self._count("rate_limited")
                logging.debug(
                    "  Server requested a delay of %d seconds before next request", delay
                )
                self._sleep(delay)
                continue

            if 200 <= response.status_code < 300:
                logging.debug(
                    "  Success: %s (%d bytes)", self._display(url), len(response.content)
                )
                return response.content

            logging.warning(
                "  HTTP %d received for %s: %s",
                response.status_code,
                self._display(url),
                response.reason,
            )
            self._count("failures")
            return None

    def get(self, uri: str) -> Optional[bytes]:
        return self.request("GET", uri)

    def post(self, uri: str, payload: Any) -> Optional[bytes]:
        return self.request("POST", uri, payload)

    def get_json(self, uri: str) -> Optional[Any]:
        return self._decode(self.get(uri), uri)

    def post_json(self, uri: str, payload: Any) -> Optional[Any]:
        return self._decode(self.post(uri, payload), uri)

    def _decode(self, content: Optional[bytes], uri: str) -> Optional[Any]:
        if content is None:
            return None
        try:
            return json.loads(content)
        except ValueError:
            logging.warning("  Invalid JSON received for %s", self._display(uri))
            return None

    @staticmethod
    def _display(url: str) -> str:
        # Never log credentials passed as query parameters
        display = url.split("api_key=")[0]
        return display[:100] + "..." if len(display) > 100 else display

    def get_statistics(self) -> Dict[str, Any]:
        with self.stats_lock:
            return {
                "total_requests": self.total_requests,
                "rate_limited": self.rate_limited,
                "failures": self.failures,
                "is_alive": self.is_alive,
            }

    def close(self):
        """Clean shutdown"""
        if self.session:
            self.session.close()
            self.session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
