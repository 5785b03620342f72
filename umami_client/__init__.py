"""Async client for the Umami web-analytics REST API."""

from umami_client.client import UmamiClient, collect
from umami_client.config import ClientConfig, Settings
from umami_client.errors import (
    AuthenticationError,
    ConfigurationError,
    NotFoundError,
    PermissionDeniedError,
    RequestTimeoutError,
    TransportError,
    UmamiError,
    ValidationError,
)
from umami_client.models import (
    AuthData,
    AuthUser,
    CustomEvent,
    EventPayload,
    EventSeries,
    Metric,
    MetricType,
    PageViews,
    Pageview,
    PageviewPayload,
    Stats,
    TimeUnit,
    UserAccount,
    Website,
)
from umami_client.periods import TimeRange, convert_period_to_time
from umami_client.transport import AuthenticatedTransport

__version__ = "0.1.0"

__all__ = [
    # Client
    "AuthenticatedTransport",
    "ClientConfig",
    "Settings",
    "UmamiClient",
    "collect",
    "convert_period_to_time",
    "TimeRange",
    # Models
    "AuthData",
    "AuthUser",
    "CustomEvent",
    "EventPayload",
    "EventSeries",
    "Metric",
    "MetricType",
    "PageViews",
    "Pageview",
    "PageviewPayload",
    "Stats",
    "TimeUnit",
    "UserAccount",
    "Website",
    # Errors
    "AuthenticationError",
    "ConfigurationError",
    "NotFoundError",
    "PermissionDeniedError",
    "RequestTimeoutError",
    "TransportError",
    "UmamiError",
    "ValidationError",
]
