"""Exception types for the Umami client."""

from __future__ import annotations

from typing import Any

_REDACTED_KEYS = frozenset({"password", "current_password", "new_password"})


def redact(context: dict[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *context* with credential values masked."""
    if not context:
        return {}
    redacted: dict[str, Any] = {}
    for key, value in context.items():
        if key in _REDACTED_KEYS:
            redacted[key] = "***"
        elif isinstance(value, dict):
            redacted[key] = redact(value)
        else:
            redacted[key] = value
    return redacted


class UmamiError(Exception):
    """Base exception for all Umami client errors."""


class ConfigurationError(UmamiError):
    """Missing or invalid constructor arguments."""


class AuthenticationError(UmamiError):
    """Login or periodic token verification failed."""


class PermissionDeniedError(UmamiError):
    """The authenticated user is not allowed to perform the action."""


class ValidationError(UmamiError, ValueError):
    """An argument was rejected before any request was made."""


class NotFoundError(UmamiError):
    """A lookup by property matched nothing."""


class TransportError(UmamiError):
    """A request failed on the network or returned a non-2xx status.

    Carries the operation name and the (redacted) parameters that produced
    the failure. The underlying httpx exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str = "",
        context: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.context = {key: value for key, value in redact(context).items() if value is not None}
        self.status_code = status_code
        detail = message
        if self.context:
            detail = f"{detail} (context: {self.context})"
        super().__init__(detail)


class RequestTimeoutError(TransportError):
    """A request did not complete within the configured timeout."""
