"""Retry/backoff policies wrapping outbound requests."""

from finnet.retry.policy import (
    DEFAULT_RETRY_STATUSES,
    RetryPolicy,
    RetrySettings,
    SendFn,
    classify_exception,
)

__all__ = [
    "DEFAULT_RETRY_STATUSES",
    "RetryPolicy",
    "RetrySettings",
    "SendFn",
    "classify_exception",
]
