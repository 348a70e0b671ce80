"""
HTTP utilities for live provider adapters.

Provides per-provider rate limiting, retries with exponential back-off,
and circuit breaking. Collection runs fetches on worker threads, so every
piece of shared state here is lock-protected, and back-off waits on the
invocation's cancel event instead of sleeping blindly.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import requests

from ..errors import PipelineCancelledError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class CircuitOpenError(RuntimeError):
    """Raised when the circuit breaker is open."""


@dataclass
class RetryConfig:
    max_retries: int = 2
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 10.0
    jitter_ratio: float = 0.3
    timeout_seconds: float = 10.0


class RateLimiter:
    """Token bucket shared by all threads calling one provider."""

    def __init__(self, rate_per_minute: Optional[int], burst: Optional[int]):
        self.rate_per_minute = rate_per_minute
        self.burst = burst
        self._tokens = float(burst or 0)
        self._last_refill = time.monotonic()
        self._lock = threading.Lock()

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> None:
        if not self.rate_per_minute or not self.burst:
            return

        while True:
            with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                wait_seconds = (1 - self._tokens) / (self.rate_per_minute / 60.0)
            _wait(wait_seconds, cancel_event)

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate_per_minute / 60.0)
        self._last_refill = now


class CircuitBreaker:
    """Circuit breaker with a single half-open probe."""

    def __init__(self, failure_threshold: int = 5, open_seconds: float = 300.0):
        self.failure_threshold = failure_threshold
        self.open_seconds = open_seconds
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._half_open = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._opened_at is not None

    def can_attempt(self) -> bool:
        with self._lock:
            if self._opened_at is None:
                return True
            if time.monotonic() - self._opened_at >= self.open_seconds and not self._half_open:
                self._half_open = True
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._opened_at = None
            self._half_open = False

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            if self._half_open or self._failure_count >= self.failure_threshold:
                self._opened_at = time.monotonic()
                self._half_open = False


class HttpClient:
    """JSON-over-HTTP client with rate limiting, retries and circuit breaking."""

    def __init__(
        self,
        source_id: str,
        retry_config: Optional[RetryConfig] = None,
        rate_limit_per_minute: Optional[int] = None,
        rate_limit_burst: Optional[int] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        session: Optional[requests.Session] = None,
    ):
        self.source_id = source_id
        self.session = session or requests.Session()
        self.retry_config = retry_config or RetryConfig()
        self.rate_limiter = RateLimiter(rate_limit_per_minute, rate_limit_burst)
        self.circuit_breaker = circuit_breaker or CircuitBreaker()

    def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """
        GET a JSON document.

        Raises:
            CircuitOpenError: If the provider's circuit is open
            PipelineCancelledError: If cancel_event is set while retrying
            requests.RequestException: When retries are exhausted
        """
        response = self._request("GET", url, params=params, headers=headers, cancel_event=cancel_event)
        return response.json()

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> requests.Response:
        if not self.circuit_breaker.can_attempt():
            raise CircuitOpenError(f"{self.source_id} circuit open")

        last_error: Optional[Exception] = None

        for attempt in range(self.retry_config.max_retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise PipelineCancelledError(f"{self.source_id} request cancelled")

            self.rate_limiter.acquire(cancel_event)
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    timeout=self.retry_config.timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                logger.debug(f"{self.source_id} attempt {attempt + 1} failed: {exc}")
                if attempt < self.retry_config.max_retries:
                    self._backoff(attempt, None, cancel_event)
                    continue
                self.circuit_breaker.record_failure()
                raise

            if response.status_code in RETRYABLE_STATUS_CODES:
                last_error = requests.HTTPError(f"HTTP {response.status_code}", response=response)
                if attempt < self.retry_config.max_retries:
                    self._backoff(attempt, self._retry_after_seconds(response), cancel_event)
                    continue
                self.circuit_breaker.record_failure()
                response.raise_for_status()

            if response.status_code >= 400:
                self.circuit_breaker.record_failure()
                response.raise_for_status()

            self.circuit_breaker.record_success()
            return response

        self.circuit_breaker.record_failure()
        raise last_error if last_error else RuntimeError(f"{self.source_id} request failed")

    def _retry_after_seconds(self, response: requests.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if not value:
            return None

        try:
            return float(value)
        except ValueError:
            try:
                dt = parsedate_to_datetime(value)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())
            except (TypeError, ValueError):
                logger.debug("Unable to parse Retry-After header: %s", value)
                return None

    def _backoff(
        self,
        attempt: int,
        retry_after: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> None:
        base = min(
            self.retry_config.max_delay_seconds,
            self.retry_config.base_delay_seconds * (2 ** attempt),
        )
        delay = base + base * random.uniform(0, self.retry_config.jitter_ratio)
        if retry_after is not None:
            delay = max(delay, min(retry_after, self.retry_config.max_delay_seconds))
        _wait(delay, cancel_event)


def _wait(seconds: float, cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is None:
        time.sleep(seconds)
        return
    if cancel_event.wait(seconds):
        raise PipelineCancelledError("Cancelled while waiting to retry")
