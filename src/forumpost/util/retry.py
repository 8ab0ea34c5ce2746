"""Rate-limit aware retry helpers for Discord REST calls.

Every remote call made by the resource layer goes through
:func:`execute_with_retry`. Only HTTP 429 responses are retried; the wait
between attempts comes from the ``Retry-After`` header, the rate-limit JSON
payload, or exponential backoff, in that order.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from forumpost.util.typing import SupportsHTTPResponse

T = TypeVar("T")

RATE_LIMIT_STATUS = 429
RETRY_AFTER_HEADER = "Retry-After"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 5
    base_backoff: timedelta = timedelta(seconds=1)
    max_backoff: timedelta = timedelta(seconds=120)
    retry_after_buffer: timedelta = timedelta(milliseconds=500)
    default_retry_after: timedelta = timedelta(seconds=5)


DEFAULT_RETRY_POLICY = RetryPolicy()


class OperationCancelledError(Exception):
    """Raised when the cancellation token fires before or between attempts."""


class MaxRetriesExceededError(Exception):
    """Raised after every attempt was rejected with HTTP 429."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"max retries ({attempts}) exceeded: {last_error}")


class RateLimitSignal(BaseModel):
    """Decoded Discord rate-limit payload."""

    # strict: a string "retry_after" or "global" makes the payload malformed
    model_config = ConfigDict(extra="ignore", populate_by_name=True, strict=True)

    message: str = ""
    retry_after: float = Field(default=0.0, allow_inf_nan=False)
    is_global: bool = Field(default=False, alias="global")

    @classmethod
    def from_payload(cls, payload: bytes | str | None) -> "RateLimitSignal | None":
        """Decode ``payload``, returning ``None`` when it is empty or malformed."""

        if not payload:
            return None
        try:
            return cls.model_validate_json(payload)
        except ValidationError:
            return None

    def suggested_wait(self) -> timedelta | None:
        if self.retry_after <= 0:
            return None
        return _seconds_to_timedelta(self.retry_after)


class CancellationToken:
    """Cancellation signal shared by one retry sequence."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Block up to ``seconds``; return True when cancelled meanwhile."""
        return self._event.wait(timeout=max(0.0, seconds))


def is_rate_limited(error: BaseException) -> bool:
    """Return True when ``error`` carries an HTTP 429 response."""
    response = getattr(error, "response", None)
    if not isinstance(response, SupportsHTTPResponse):
        return False
    return response.status_code == RATE_LIMIT_STATUS


def calculate_backoff(
    attempt: int,
    retry_after: timedelta,
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> timedelta:
    """Return how long to wait before attempt ``attempt + 1``.

    A server suggestion wins when it is positive and below the ceiling;
    anything else falls back to ``base_backoff * 2**attempt`` capped at
    ``max_backoff``.
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")

    if timedelta(0) < retry_after < policy.max_backoff:
        return retry_after + policy.retry_after_buffer

    try:
        backoff = policy.base_backoff * (2**attempt)
    except OverflowError:
        return policy.max_backoff
    return min(backoff, policy.max_backoff)


def parse_retry_after(
    error: BaseException,
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> timedelta:
    """Extract the server-suggested wait from a rate-limited failure.

    Sources, first match wins: the ``Retry-After`` header, the pre-read
    ``response_body`` payload, the live response body. Falls back to
    ``policy.default_retry_after``; never raises.
    """
    response = getattr(error, "response", None)
    if response is None:
        return policy.default_retry_after

    header = _header_value(getattr(response, "headers", None), RETRY_AFTER_HEADER)
    if header:
        try:
            wait = _seconds_to_timedelta(float(header))
        except ValueError:
            wait = None
        if wait is not None:
            return wait

    body = getattr(error, "response_body", None)
    if body is None:
        body = _read_body(response)

    signal = RateLimitSignal.from_payload(body)
    if signal is not None:
        wait = signal.suggested_wait()
        if wait is not None:
            return wait

    return policy.default_retry_after


def execute_with_retry(
    operation: Callable[[], T],
    *,
    cancel_token: CancellationToken | None = None,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> T:
    """Run ``operation``, retrying while the remote answers HTTP 429."""
    if policy.max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    token = cancel_token or CancellationToken()
    last_error: Exception | None = None

    for attempt in range(policy.max_retries):
        if token.cancelled:
            raise OperationCancelledError("operation cancelled") from last_error

        try:
            return operation()
        except Exception as exc:
            if not is_rate_limited(exc):
                raise
            last_error = exc

        if attempt == policy.max_retries - 1:
            break

        wait = calculate_backoff(attempt, parse_retry_after(last_error, policy=policy), policy=policy)
        if token.wait(wait.total_seconds()):
            raise OperationCancelledError("operation cancelled") from last_error

    assert last_error is not None  # for type checkers
    raise MaxRetriesExceededError(policy.max_retries, last_error) from last_error


def execute_with_retry_no_result(
    operation: Callable[[], Any],
    *,
    cancel_token: CancellationToken | None = None,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> None:
    """Variant of :func:`execute_with_retry` for calls whose result is unused."""

    def _discard() -> None:
        operation()
        return None

    execute_with_retry(_discard, cancel_token=cancel_token, policy=policy)


def _seconds_to_timedelta(seconds: float) -> timedelta | None:
    if not math.isfinite(seconds):
        return None
    try:
        return timedelta(seconds=seconds)
    except OverflowError:
        return None


def _header_value(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    if value is None:
        return None
    return str(value).strip() or None


def _read_body(response: Any) -> bytes | None:
    try:
        content = getattr(response, "content", None)
    except (RuntimeError, OSError):
        # body stream already consumed or connection dropped
        return None
    if isinstance(content, (bytes, str)):
        return content
    return None


__all__ = [
    "CancellationToken",
    "DEFAULT_RETRY_POLICY",
    "MaxRetriesExceededError",
    "OperationCancelledError",
    "RATE_LIMIT_STATUS",
    "RateLimitSignal",
    "RetryPolicy",
    "calculate_backoff",
    "execute_with_retry",
    "execute_with_retry_no_result",
    "is_rate_limited",
    "parse_retry_after",
]
