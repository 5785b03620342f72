"""Typed records mirroring Umami API responses and collect payloads."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


class TimeUnit(StrEnum):
    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    HOUR = "hour"


class MetricType(StrEnum):
    URL = "url"
    REFERRER = "referrer"
    TITLE = "title"
    QUERY = "query"
    EVENT = "event"
    BROWSER = "browser"
    OS = "os"
    DEVICE = "device"
    SCREEN = "screen"
    LANGUAGE = "language"
    COUNTRY = "country"
    REGION = "region"
    CITY = "city"


class UmamiModel(BaseModel):
    """Base for server records: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


def _normalize_identity(data: Any) -> Any:
    """Accept the legacy ``userId``/``user_id`` key and derive the admin flag."""
    if not isinstance(data, dict):
        return data
    data = dict(data)
    if "id" not in data:
        for legacy in ("userId", "user_id"):
            if legacy in data:
                data["id"] = data[legacy]
                break
    if "isAdmin" not in data and "is_admin" not in data:
        data["isAdmin"] = data.get("role") == "admin"
    return data


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class AuthUser(UmamiModel):
    id: str
    username: str
    is_admin: bool = False
    role: str | None = None
    created_at: datetime | None = None
    iat: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _identity(cls, data: Any) -> Any:
        return _normalize_identity(data)


class AuthData(UmamiModel):
    """Bearer token plus the identity it was issued to."""

    token: str
    user: AuthUser


class UserAccount(UmamiModel):
    id: str
    username: str
    is_admin: bool = False
    role: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _identity(cls, data: Any) -> Any:
        return _normalize_identity(data)


# ---------------------------------------------------------------------------
# Websites
# ---------------------------------------------------------------------------


class Website(UmamiModel):
    id: str
    name: str
    domain: str
    share_id: str | None = None
    reset_at: datetime | None = None
    user_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_id(cls, data: Any) -> Any:
        """Older servers key websites by ``website_uuid`` with a numeric ``website_id``."""
        if not isinstance(data, dict) or "id" in data:
            return data
        for legacy in ("website_uuid", "websiteUuid", "website_id", "websiteId"):
            if data.get(legacy) is not None:
                return {**data, "id": data[legacy]}
        return data


class ShareData(UmamiModel):
    id: str
    token: str = ""


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


class StatValue(UmamiModel):
    value: float = 0
    change: float | None = None
    prev: float | None = None


class Stats(UmamiModel):
    pageviews: StatValue | None = None
    visitors: StatValue | None = None
    visits: StatValue | None = None
    uniques: StatValue | None = None
    bounces: StatValue | None = None
    totaltime: StatValue | None = None


class SeriesPoint(UmamiModel):
    """One bucket of a time series. Older servers label it ``t``, newer ``x``."""

    x: str | None = None
    t: str | None = None
    y: float = 0


class PageViews(UmamiModel):
    pageviews: list[SeriesPoint] = Field(default_factory=list)
    sessions: list[SeriesPoint] = Field(default_factory=list)


class EventSeries(UmamiModel):
    x: str
    t: str | None = None
    y: float = 0


class Metric(UmamiModel):
    x: str | None = None
    y: int = 0


# ---------------------------------------------------------------------------
# Collect payloads
# ---------------------------------------------------------------------------


class PageviewPayload(UmamiModel):
    website: str
    url: str
    hostname: str
    referrer: str | None = None
    language: str | None = None
    screen: str | None = None
    title: str | None = None


class EventPayload(PageviewPayload):
    name: str
    data: dict[str, Any] | None = None


class Pageview(UmamiModel):
    type: Literal["pageview"] = "pageview"
    payload: PageviewPayload


class CustomEvent(UmamiModel):
    type: Literal["event"] = "event"
    payload: EventPayload


CollectRequest = Annotated[Pageview | CustomEvent, Field(discriminator="type")]

collect_request_adapter: TypeAdapter[Pageview | CustomEvent] = TypeAdapter(CollectRequest)
