"""Base API client with common functionality."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 2.0


@dataclass
class RequestMetrics:
    """Metrics for API requests."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_retries: int = 0
    total_duration_ms: float = 0
    request_durations: list[float] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_request(self, duration_ms: float, success: bool) -> None:
        with self._lock:
            self.total_requests += 1
            self.total_duration_ms += duration_ms
            self.request_durations.append(duration_ms)
            if success:
                self.successful_requests += 1
            else:
                self.failed_requests += 1

    def record_retry(self) -> None:
        with self._lock:
            self.total_retries += 1

    @property
    def avg_duration_ms(self) -> float:
        """Average request duration."""
        if not self.request_durations:
            return 0
        return sum(self.request_durations) / len(self.request_durations)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "total_retries": self.total_retries,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "avg_duration_ms": round(self.avg_duration_ms, 2),
        }


def error_message_from_exception(exc: BaseException) -> str:
    """Most specific human-readable message for a failed API call.

    Prefers the ``message`` then ``error`` field of a JSON error body, and
    falls back to the exception text (timeouts, connection errors, ...).
    """
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("message", "error"):
                value = body.get(key)
                if value:
                    return value if isinstance(value, str) else str(value)
    return str(exc) or exc.__class__.__name__


def _retry_after_seconds(response: requests.Response) -> float:
    value = response.headers.get("Retry-After")
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


class BaseAPIClient(ABC):
    """Base class for API clients with retry and rate limiting support.

    Only idempotent reads are retried on 5xx responses; a write that reached
    the server may already have created a record. Rate-limited (429) calls
    are retried for every method since the server rejected them outright.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        rate_limit_requests: int = 150,
        rate_limit_period: int = 60,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for failed requests
            backoff_factor: Exponential backoff factor
            rate_limit_requests: Max requests per period
            rate_limit_period: Rate limit period in seconds
            session: Optional pre-built session (tests)
            sleep: Sleep function used for rate limit waits
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limit_requests = rate_limit_requests
        self.rate_limit_period = rate_limit_period
        self.sleep = sleep or time.sleep

        # Sliding window shared by lookup threads
        self._request_timestamps: list[float] = []
        self._rate_lock = threading.Lock()

        self.metrics = RequestMetrics()

        if session is None:
            session = requests.Session()
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=backoff_factor,
                status_forcelist=[500, 502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
        self.session = session

    @abstractmethod
    def get_auth_headers(self) -> dict:
        """Get authentication headers for requests."""
        pass

    def _wait_for_rate_limit(self) -> None:
        """Wait if necessary to respect rate limits."""
        with self._rate_lock:
            now = time.monotonic()

            self._request_timestamps = [
                ts for ts in self._request_timestamps
                if now - ts < self.rate_limit_period
            ]

            if len(self._request_timestamps) >= self.rate_limit_requests:
                oldest = min(self._request_timestamps)
                wait_time = self.rate_limit_period - (now - oldest)

                if wait_time > 0:
                    logger.warning(
                        f"Rate limit reached, waiting {wait_time:.2f}s",
                        extra={"wait_seconds": wait_time}
                    )
                    self.sleep(wait_time)

            self._request_timestamps.append(time.monotonic())

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_data: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> requests.Response:
        """Make HTTP request with rate limiting, timing, and logging.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (will be joined with base_url)
            params: Query parameters
            json_data: JSON body data
            headers: Additional headers

        Returns:
            Response object

        Raises:
            requests.HTTPError: On non-2xx responses after retries
            requests.RequestException: On transport failures
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        request_headers = {"Content-Type": "application/json", **self.get_auth_headers()}
        if headers:
            request_headers.update(headers)

        retry_count = 0
        while True:
            self._wait_for_rate_limit()
            start_time = time.time()

            logger.debug(
                f"Making {method} request",
                extra={"url": url, "params": params, "retry_count": retry_count}
            )

            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    headers=request_headers,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                duration_ms = (time.time() - start_time) * 1000
                self.metrics.record_request(duration_ms, success=False)
                logger.error(
                    "API request failed",
                    extra={
                        "method": method,
                        "endpoint": endpoint,
                        "error": str(e),
                        "duration_ms": round(duration_ms, 2),
                        "retry_count": retry_count,
                    }
                )
                raise

            duration_ms = (time.time() - start_time) * 1000

            if response.status_code == 429 and retry_count < self.max_retries:
                retry_after = _retry_after_seconds(response)
                retry_count += 1
                self.metrics.record_retry()
                logger.warning(
                    f"Rate limited (429), waiting {retry_after}s",
                    extra={
                        "retry_after": retry_after,
                        "retry_count": retry_count,
                        "endpoint": endpoint,
                        "duration_ms": round(duration_ms, 2),
                    }
                )
                self.sleep(retry_after)
                continue

            self.metrics.record_request(duration_ms, success=response.ok)

            log = logger.info if response.ok else logger.warning
            log(
                "API request completed",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                    "retry_count": retry_count,
                    "response_size_bytes": len(response.content or b""),
                }
            )

            response.raise_for_status()
            return response

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return {}
        return response.json()

    def get(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """Make GET request and return JSON response."""
        response = self._make_request("GET", endpoint, params=params, headers=headers)
        return self._decode(response)

    def post(
        self,
        endpoint: str,
        json_data: Optional[dict] = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """Make POST request and return JSON response."""
        response = self._make_request(
            "POST", endpoint, params=params, json_data=json_data, headers=headers
        )
        return self._decode(response)

    def close(self) -> None:
        self.session.close()
