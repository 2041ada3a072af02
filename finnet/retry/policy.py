"""Bounded retry with backoff around a single outbound request.

Each attempt ends in one of three ways:

- success: the response is returned untouched (callers decide whether to
  ``raise_for_status``);
- retryable failure: connection errors, timeouts, ``TransientNetworkError``
  and responses whose status is in ``retry_statuses`` (429/5xx by default);
  the policy sleeps and tries again while attempts remain;
- fatal failure: anything else stops the loop immediately.

The policy keeps no per-request state on the instance, so one policy can be
shared by every transport of a purpose and used from many threads.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Mapping, Optional

import requests

from finnet.exceptions import (
    ConfigurationError,
    ExhaustedRetriesError,
    FatalRequestError,
    FinnetError,
    RequestCancelledError,
    TransientNetworkError,
)
from finnet.logging_utils import perf_span

LOGGER = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

# Receives the timeout (seconds) for this attempt and performs the request.
SendFn = Callable[[float], requests.Response]


@dataclass(frozen=True)
class RetrySettings:
    """Retry configuration for one purpose.

    Attributes:
        max_attempts: Total attempts including the first (>= 1).
        per_attempt_timeout: Seconds each attempt may take. Passed to Requests,
            which applies it to the connect and to each socket read; callers
            that buffer the body also bound the whole read by it.
        backoff_seconds: Base delay; doubled after each failed attempt.
        max_backoff_seconds: Upper bound for any single wait.
        retry_statuses: HTTP statuses treated as transient.
    """

    max_attempts: int = 3
    per_attempt_timeout: float = 30.0
    backoff_seconds: float = 1.0
    max_backoff_seconds: float = 30.0
    retry_statuses: FrozenSet[int] = field(default_factory=lambda: DEFAULT_RETRY_STATUSES)

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ConfigurationError("retry.max_attempts", self.max_attempts, "must be an integer")
        if self.max_attempts < 1:
            raise ConfigurationError("retry.max_attempts", self.max_attempts, "must be >= 1")
        if self.per_attempt_timeout <= 0:
            raise ConfigurationError(
                "retry.per_attempt_timeout", self.per_attempt_timeout, "must be positive"
            )
        if self.backoff_seconds < 0:
            raise ConfigurationError("retry.backoff_seconds", self.backoff_seconds, "must be >= 0")
        if self.max_backoff_seconds < self.backoff_seconds:
            raise ConfigurationError(
                "retry.max_backoff_seconds",
                self.max_backoff_seconds,
                "must be >= backoff_seconds",
            )


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` header given in seconds; HTTP dates are ignored."""
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def classify_exception(exc: BaseException) -> Optional[TransientNetworkError]:
    """Return a ``TransientNetworkError`` for retryable exceptions, else None."""
    if isinstance(exc, TransientNetworkError):
        return exc
    if isinstance(exc, requests.Timeout):
        return TransientNetworkError(f"timeout: {exc}")
    if isinstance(exc, requests.ConnectionError):
        return TransientNetworkError(f"connection error: {exc}")
    return None


class RetryPolicy:
    """Runs a request function under ``RetrySettings``.

    Args:
        settings: Attempt budget, timeouts and backoff.
        name: Label used in log lines (normally the purpose name).
        sleep: Injectable sleep used between attempts when no cancel event
            is supplied.
        clock: Injectable monotonic clock used for deadlines.
    """

    def __init__(
        self,
        settings: RetrySettings,
        *,
        name: str = "default",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.name = name
        self._sleep = sleep
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return self.settings.max_attempts

    @property
    def per_attempt_timeout(self) -> float:
        return self.settings.per_attempt_timeout

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def backoff_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        cap = self.settings.max_backoff_seconds
        if retry_after is not None:
            return min(retry_after, cap)
        return min(self.settings.backoff_seconds * (2 ** (attempt - 1)), cap)

    def _check_response(self, response: requests.Response) -> None:
        status = getattr(response, "status_code", None)
        if status not in self.settings.retry_statuses:
            return
        headers = getattr(response, "headers", None) or {}
        retry_after = _parse_retry_after(headers.get("Retry-After"))
        # Release the connection; the response body will not be read.
        close = getattr(response, "close", None)
        if callable(close):
            close()
        raise TransientNetworkError(
            f"HTTP {status}", status_code=status, retry_after=retry_after
        )

    def _attempt_timeout(self, deadline: Optional[float]) -> float:
        timeout = self.settings.per_attempt_timeout
        if deadline is None:
            return timeout
        return min(timeout, deadline - self._clock())

    def _cancelled(
        self, cancel_event: Optional[threading.Event], deadline: Optional[float]
    ) -> Optional[str]:
        if cancel_event is not None and cancel_event.is_set():
            return "cancelled"
        if deadline is not None and deadline - self._clock() <= 0:
            return "deadline exceeded"
        return None

    def _wait(
        self,
        delay: float,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        if deadline is not None:
            delay = min(delay, max(0.0, deadline - self._clock()))
        if delay <= 0:
            return
        if cancel_event is not None:
            cancel_event.wait(delay)
        else:
            self._sleep(delay)

    def execute(
        self,
        send: SendFn,
        *,
        context: Optional[Mapping[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> requests.Response:
        """Call ``send(timeout)`` until it succeeds or the policy gives up.

        Args:
            send: Performs one attempt with the given per-attempt timeout.
            context: Extra key/values attached to raised errors and log lines.
            cancel_event: When set, no further attempt is started and backoff
                waits are interrupted.
            deadline: Absolute time on ``clock`` after which no attempt starts;
                the per-attempt timeout is clipped to the time left.

        Raises:
            ExhaustedRetriesError: every attempt failed with a retryable error.
            FatalRequestError: an attempt failed with a non-retryable error.
            RequestCancelledError: the cancel event or deadline fired.
        """
        extra = dict(context or {})
        max_attempts = self.settings.max_attempts
        attempt = 0
        last_error: Optional[TransientNetworkError] = None

        with perf_span(
            "retry.execute", tags={"policy": self.name, **extra}, logger=LOGGER
        ):
            while attempt < max_attempts:
                reason = self._cancelled(cancel_event, deadline)
                if reason is not None:
                    raise RequestCancelledError(attempt, reason).add_context(**extra)

                attempt += 1
                try:
                    response = send(self._attempt_timeout(deadline))
                    self._check_response(response)
                    if attempt > 1:
                        LOGGER.info(
                            "Request succeeded for %s on attempt %s/%s",
                            self.name,
                            attempt,
                            max_attempts,
                        )
                    return response
                except Exception as exc:  # noqa: BLE001 - classified below
                    transient = classify_exception(exc)
                    if transient is None and isinstance(exc, FinnetError):
                        # Session and configuration errors reach the caller unchanged.
                        raise exc.add_context(attempts=attempt, **extra)
                    if transient is None:
                        LOGGER.error(
                            "Non-retryable failure for %s (attempt %s/%s): %r",
                            self.name,
                            attempt,
                            max_attempts,
                            exc,
                        )
                        raise FatalRequestError(attempt, exc).add_context(**extra) from exc
                    if transient is not exc:
                        transient.__cause__ = exc
                    last_error = transient

                LOGGER.warning(
                    "Request failed for %s (attempt %s/%s): %s",
                    self.name,
                    attempt,
                    max_attempts,
                    last_error,
                )
                if attempt >= max_attempts:
                    break
                delay = self.backoff_for(attempt, last_error.retry_after)
                LOGGER.debug("Sleeping %.2fs before retrying %s", delay, self.name)
                self._wait(delay, cancel_event, deadline)

            assert last_error is not None
            LOGGER.error("Giving up on %s after %s attempts", self.name, attempt)
            raise ExhaustedRetriesError(attempt, last_error).add_context(**extra) from last_error


__all__ = [
    "DEFAULT_RETRY_STATUSES",
    "RetryPolicy",
    "RetrySettings",
    "SendFn",
    "classify_exception",
]
