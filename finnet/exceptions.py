"""Error types raised while provisioning and using outbound HTTP clients.

Every error carries a ``context`` mapping (purpose, proxy, attempts, ...)
that is rendered into the message so a log line is enough to diagnose a
failure without re-running it.
"""

from typing import Any, Dict, Mapping, Optional


class FinnetError(Exception):
    """Base class for all errors raised by this package."""

    def __init__(self, message: str, context: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})
        super().__init__(message)

    def add_context(self, **values: Any) -> "FinnetError":
        """Attach extra context keys without overwriting existing ones."""
        for key, value in values.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} | {details}"


class ConfigurationError(FinnetError):
    """Invalid configuration detected at startup or build time. Never retried."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(
            f"Invalid configuration for '{field}': {reason}",
            {"field": field, "value": value},
        )
        self.field = field
        self.value = value
        self.reason = reason


class TransientNetworkError(FinnetError):
    """Connection failure, timeout or a rate-limit-like response."""

    def __init__(
        self,
        reason: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        context: Dict[str, Any] = {}
        if status_code is not None:
            context["status_code"] = status_code
        if retry_after is not None:
            context["retry_after"] = retry_after
        super().__init__(f"Transient network failure: {reason}", context)
        self.reason = reason
        self.status_code = status_code
        self.retry_after = retry_after


class SessionEstablishmentError(FinnetError):
    """Identity/bootstrap for a session-affine purpose failed.

    Not cached: the next caller triggers a fresh establishment attempt.
    """

    def __init__(self, purpose: str, reason: str) -> None:
        super().__init__(
            f"Could not establish session for '{purpose}': {reason}",
            {"purpose": purpose},
        )
        self.purpose = purpose
        self.reason = reason


class ExhaustedRetriesError(FinnetError):
    """The last retryable failure consumed the attempt budget."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Giving up after {attempts} attempt(s): {last_error}",
            {"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error


class FatalRequestError(FinnetError):
    """A non-retryable failure ended the retry loop early."""

    def __init__(self, attempts: int, cause: BaseException) -> None:
        super().__init__(
            f"Request failed with non-retryable error on attempt {attempts}: {cause!r}",
            {"attempts": attempts},
        )
        self.attempts = attempts
        self.cause = cause


class RequestCancelledError(FinnetError):
    """The caller's cancellation event or deadline stopped the retry loop."""

    def __init__(self, attempts: int, reason: str = "cancelled") -> None:
        super().__init__(f"Request {reason} after {attempts} attempt(s)", {"attempts": attempts})
        self.attempts = attempts


class UnknownPurposeError(FinnetError, KeyError):
    """No client is registered under the requested purpose name."""

    def __init__(self, purpose: str, known: Optional[list] = None) -> None:
        super().__init__(
            f"No client registered for purpose '{purpose}'",
            {"purpose": purpose, "known": ",".join(known or [])},
        )
        self.purpose = purpose

    def __str__(self) -> str:
        return FinnetError.__str__(self)


__all__ = [
    "FinnetError",
    "ConfigurationError",
    "TransientNetworkError",
    "SessionEstablishmentError",
    "ExhaustedRetriesError",
    "FatalRequestError",
    "RequestCancelledError",
    "UnknownPurposeError",
]
