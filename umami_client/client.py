"""Client for the Umami analytics REST API.

Umami is a self-hosted, privacy-focused analytics platform. This client
manages websites and user accounts and reads back stats, pageviews,
events and metrics. Every call goes through :class:`AuthenticatedTransport`,
which logs in once and keeps the bearer token verified.

Websites and accounts are addressed by their UUID.

Example::

    async with UmamiClient("analytics.example.com", "admin", "secret") as umami:
        website = await umami.get_website_by("domain", "example.com")
        stats = await umami.get_stats(website.id, period="7d")
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal, TypeVar

import httpx
import pydantic
import structlog

from umami_client.config import ClientConfig
from umami_client.errors import (
    ConfigurationError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from umami_client.models import (
    AuthUser,
    CustomEvent,
    EventSeries,
    Metric,
    MetricType,
    PageViews,
    Pageview,
    ShareData,
    Stats,
    TimeUnit,
    UserAccount,
    Website,
    collect_request_adapter,
)
from umami_client.periods import convert_period_to_time
from umami_client.transport import (
    COLLECT_ENDPOINT,
    AuthenticatedTransport,
    api_base_url,
    normalize_server,
    send_request,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

logger = structlog.get_logger()

STATS_FILTERS = frozenset(
    {
        "url",
        "referrer",
        "title",
        "query",
        "event",
        "os",
        "browser",
        "device",
        "country",
        "region",
        "city",
    }
)
PAGEVIEW_FILTERS = STATS_FILTERS - {"query", "event"}
METRIC_FILTERS = STATS_FILTERS

_UNSET: Any = object()

E = TypeVar("E", bound=StrEnum)


def _choice(enum_cls: type[E], value: str, name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as exc:
        accepted = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Unexpected {name} {value!r}. Accepted values are: {accepted}"
        ) from exc


def _check_filters(operation: str, allowed: frozenset[str], filters: dict[str, Any]) -> None:
    unknown = sorted(set(filters) - allowed)
    if unknown:
        raise ValidationError(
            f"Unknown filter(s) for {operation}: {', '.join(unknown)}. "
            f"Accepted filters are: {', '.join(sorted(allowed))}"
        )


def _items(data: Any) -> list[Any]:
    """Unwrap list responses. Newer servers page them as ``{"data": [...]}``."""
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"]
    if isinstance(data, list):
        return data
    return []


M = TypeVar("M", bound=pydantic.BaseModel)


def _parse(model: type[M], data: Any, operation: str) -> M:
    """Validate a response body, reporting a mismatch as a TransportError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        logger.warning("Umami unexpected response", operation=operation, model=model.__name__)
        raise TransportError(
            f"Could not {operation}: unexpected response for {model.__name__}: {exc}",
            operation=operation,
        ) from exc


def _parse_items(model: type[M], data: Any, operation: str) -> list[M]:
    return [_parse(model, item, operation) for item in _items(data)]


def _collect_body(request: Pageview | CustomEvent | dict[str, Any]) -> dict[str, Any]:
    """Validate a collect request and build the JSON body sent to the server."""
    try:
        hit = collect_request_adapter.validate_python(request)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid collect request: {exc}") from exc
    return {
        "type": hit.type,
        "payload": hit.payload.model_dump(by_alias=True, exclude_none=True),
    }


def _user_agent(user_agent: str | None, config: ClientConfig) -> str:
    agent = config.user_agent if user_agent is None else user_agent
    if not agent.strip():
        raise ValidationError("A user agent is required. See https://umami.is/docs/api")
    return agent


async def collect(
    server: str,
    request: Pageview | CustomEvent | dict[str, Any],
    *,
    user_agent: str | None = None,
    config: ClientConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Record a pageview or custom event without logging in.

    Args:
        server: Umami hostname. A scheme, if present, is removed.
        request: A :class:`Pageview` or :class:`CustomEvent`, or the
            equivalent ``{"type": ..., "payload": {...}}`` dict.
        user_agent: User-Agent header; the server uses it for device and
            platform detection. Defaults to ``config.user_agent``.
        config: Request defaults. ``ClientConfig()`` when omitted.
        transport: Optional httpx transport, mainly for tests.

    Returns:
        The response body returned by the server (a session token).
    """
    if not server or not normalize_server(server):
        raise ConfigurationError("server hostname is required")
    config = config or ClientConfig()
    body = _collect_body(request)
    agent = _user_agent(user_agent, config)

    async with httpx.AsyncClient(
        base_url=api_base_url(server),
        timeout=config.timeout_s,
        transport=transport,
    ) as client:
        resp = await send_request(
            client,
            "collect",
            "POST",
            COLLECT_ENDPOINT,
            timeout_ms=config.timeout_ms,
            json=body,
            headers={"User-Agent": agent},
            context={"type": body["type"], "payload": body["payload"], "user_agent": agent},
        )
    return resp.text


class UmamiClient:
    """Umami API client bound to one server and one user.

    Construct it inside the event loop that will use it: the login task
    is bound to that loop.

    Args:
        server: Umami hostname (e.g. "analytics.example.com").
        username: Account used to log in.
        password: Password for *username*.
        config: Request defaults. ``ClientConfig()`` when omitted.
        clock: Wall-clock source in seconds, used for re-verification.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(
        self,
        server: str,
        username: str,
        password: str,
        *,
        config: ClientConfig | None = None,
        clock: Callable[[], float] = time.time,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.transport = AuthenticatedTransport(
            server,
            username,
            password,
            config=config,
            clock=clock,
            transport=transport,
        )
        self.config = self.transport.config

    async def get_current_user(self) -> AuthUser:
        return await self.transport.get_current_user()

    def _time_params(self, period: str | None) -> dict[str, int]:
        window = convert_period_to_time(period or self.config.time_period)
        return window.as_params(legacy=self.config.legacy_time_params)

    def _timezone_param(self, timezone: str | None) -> dict[str, str]:
        key = "tz" if self.config.legacy_time_params else "timezone"
        return {key: timezone or self.config.timezone}

    # ------------------------------------------------------------------
    # Collect
    # ------------------------------------------------------------------

    async def collect(
        self,
        request: Pageview | CustomEvent | dict[str, Any],
        *,
        user_agent: str | None = None,
    ) -> str:
        """Record a pageview or custom event.

        The collect endpoint is anonymous, so this never waits for login.
        """
        body = _collect_body(request)
        agent = _user_agent(user_agent, self.config)
        resp = await self.transport.request(
            "collect",
            "POST",
            COLLECT_ENDPOINT,
            json=body,
            headers={"User-Agent": agent},
            context={"type": body["type"], "payload": body["payload"], "user_agent": agent},
        )
        return resp.text

    # ------------------------------------------------------------------
    # Websites
    # ------------------------------------------------------------------

    async def get_websites(
        self,
        *,
        include_all: bool = False,
        user_id: str | None = None,
    ) -> list[Website]:
        """List tracked websites in server order.

        Args:
            include_all: Include every user's websites (admin only).
            user_id: List another user's websites (admin only).
        """
        if include_all or user_id is not None:
            await self.transport.require_admin("list other users' websites")
        params: dict[str, Any] = {"user_id": user_id}
        if include_all:
            params["include_all"] = "true"
        data = await self.transport.request_json("get websites", "GET", "/websites", params=params)
        return _parse_items(Website, data, "get websites")

    async def get_website(self, website_id: str | None = None) -> Website:
        """Get a website by UUID, or the first listed website when omitted."""
        if website_id is None:
            websites = await self.get_websites()
            if not websites:
                raise NotFoundError("No websites found")
            return websites[0]

        data = await self.transport.request_json(
            "get website",
            "GET",
            f"/websites/{website_id}",
            context={"website_id": website_id},
        )
        return _parse(Website, data, "get website")

    async def get_website_by(self, key: str, value: str) -> Website:
        """Get a website by one of its properties.

        ``id`` and ``share_id`` are resolved by the server; other keys
        (e.g. ``domain`` or ``name``) are matched against the website list.

        Raises:
            NotFoundError: No website has *key* equal to *value*.
        """
        if key not in Website.model_fields:
            raise ValidationError(
                f"Unknown website property {key!r}. "
                f"Accepted values are: {', '.join(Website.model_fields)}"
            )
        if key == "id":
            return await self.get_website(value)
        if key == "share_id":
            data = await self.transport.request_json(
                "get shared website",
                "GET",
                f"/share/{value}",
                context={"share_id": value},
            )
            share = _parse(ShareData, data, "get shared website")
            return await self.get_website(share.id)

        for website in await self.get_websites():
            if str(getattr(website, key)) == str(value):
                return website
        raise NotFoundError(f"Could not find website with {key}={value!r}")

    async def create_website(
        self,
        name: str,
        domain: str,
        *,
        share_id: str | None = None,
    ) -> Website:
        """Register a new website for tracking.

        Args:
            name: Display name (usually the same as the domain).
            domain: Domain of the website (e.g. "example.com").
            share_id: Unique string enabling a public share URL.
        """
        body: dict[str, Any] = {"name": name, "domain": domain}
        if share_id is not None:
            body["shareId"] = share_id
        data = await self.transport.request_json("create website", "POST", "/websites", json=body)
        website = _parse(Website, data, "create website")
        logger.info("Umami website created", website_id=website.id, domain=website.domain)
        return website

    async def update_website(
        self,
        website_id: str,
        *,
        name: str | None = None,
        domain: str | None = None,
        share_id: str | None = _UNSET,
    ) -> Website:
        """Update a website. Pass ``share_id=None`` to disable sharing."""
        body: dict[str, Any] = {}
        if name is not None:
            body["name"] = name
        if domain is not None:
            body["domain"] = domain
        if share_id is not _UNSET:
            body["shareId"] = share_id
        if not body:
            raise ValidationError("update_website needs at least one of name, domain, share_id")

        data = await self.transport.request_json(
            "update website",
            "POST",
            f"/websites/{website_id}",
            json=body,
            context={"website_id": website_id, "changes": body},
        )
        return _parse(Website, data, "update website")

    async def reset_website(self, website_id: str) -> None:
        """Delete all collected data of a website, keeping the website itself."""
        await self.transport.request(
            "reset website",
            "POST",
            f"/websites/{website_id}/reset",
            context={"website_id": website_id},
        )

    async def delete_website(self, website_id: str) -> None:
        await self.transport.request(
            "delete website",
            "DELETE",
            f"/websites/{website_id}",
            context={"website_id": website_id},
        )
        logger.info("Umami website deleted", website_id=website_id)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    async def get_stats(
        self,
        website_id: str,
        *,
        period: str | None = None,
        **filters: str,
    ) -> Stats:
        """Aggregate stats of a website over *period*.

        Args:
            website_id: UUID of the website.
            period: Period token (e.g. "24h", "7d"). Defaults to the
                configured period.
            **filters: Restrict to matching sessions, e.g. ``url="/pricing"``
                or ``country="CA"``.
        """
        _check_filters("get stats", STATS_FILTERS, filters)
        params = {**self._time_params(period), **filters}
        data = await self.transport.request_json(
            "get stats",
            "GET",
            f"/websites/{website_id}/stats",
            params=params,
            context={"website_id": website_id, "params": params},
        )
        return _parse(Stats, data or {}, "get stats")

    async def get_pageviews(
        self,
        website_id: str,
        *,
        period: str | None = None,
        unit: TimeUnit | str | None = None,
        timezone: str | None = None,
        **filters: str,
    ) -> PageViews:
        """Pageview and session series of a website, bucketed by *unit*."""
        _check_filters("get pageviews", PAGEVIEW_FILTERS, filters)
        params: dict[str, Any] = {
            **self._time_params(period),
            "unit": str(_choice(TimeUnit, unit or self.config.time_unit, "unit")),
            **self._timezone_param(timezone),
            **filters,
        }
        data = await self.transport.request_json(
            "get pageviews",
            "GET",
            f"/websites/{website_id}/pageviews",
            params=params,
            context={"website_id": website_id, "params": params},
        )
        return _parse(PageViews, data or {}, "get pageviews")

    async def get_events(
        self,
        website_id: str,
        *,
        period: str | None = None,
        unit: TimeUnit | str | None = None,
        timezone: str | None = None,
        url: str | None = None,
        event_name: str | None = None,
    ) -> list[EventSeries]:
        """Custom event series of a website."""
        params: dict[str, Any] = {
            **self._time_params(period),
            "unit": str(_choice(TimeUnit, unit or self.config.time_unit, "unit")),
            **self._timezone_param(timezone),
            "url": url,
            "eventName": event_name,
        }
        data = await self.transport.request_json(
            "get events",
            "GET",
            f"/websites/{website_id}/events",
            params=params,
            context={"website_id": website_id, "params": params},
        )
        return _parse_items(EventSeries, data, "get events")

    async def get_metrics(
        self,
        website_id: str,
        *,
        period: str | None = None,
        metric_type: MetricType | str | None = None,
        **filters: str,
    ) -> list[Metric]:
        """Breakdown of a website's traffic by one dimension (url, country...)."""
        _check_filters("get metrics", METRIC_FILTERS, filters)
        params: dict[str, Any] = {
            **self._time_params(period),
            "type": str(
                _choice(MetricType, metric_type or self.config.metric_type, "metric type")
            ),
            **filters,
        }
        data = await self.transport.request_json(
            "get metrics",
            "GET",
            f"/websites/{website_id}/metrics",
            params=params,
            context={"website_id": website_id, "params": params},
        )
        return _parse_items(Metric, data, "get metrics")

    async def get_events_by(
        self,
        website_id: str,
        filter: Literal["type", "name"],
        value: str,
        *,
        period: str | None = None,
    ) -> int:
        """Total count of events whose type or name equals *value*.

        Event metrics label each row ``"<type>\\t<name>"``; rows without a
        tab are treated as a bare name.
        """
        if filter not in ("type", "name"):
            raise ValidationError(f"filter must be 'type' or 'name', got {filter!r}")
        metrics = await self.get_metrics(website_id, period=period, metric_type=MetricType.EVENT)
        total = 0
        for metric in metrics:
            label = metric.x or ""
            event_type, _, event_name = label.partition("\t")
            if not event_name:
                event_type, event_name = "", event_type
            matched = event_type if filter == "type" else event_name
            if matched == value:
                total += metric.y
        return total

    async def get_active_visitors(self, website_id: str) -> int:
        """Number of visitors currently on the website."""
        data = await self.transport.request_json(
            "get active visitors",
            "GET",
            f"/websites/{website_id}/active",
            context={"website_id": website_id},
        )
        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            return 0
        visitors = data.get("x") or data.get("visitors") or 0
        try:
            return int(visitors)
        except (TypeError, ValueError) as exc:
            raise TransportError(
                f"Could not get active visitors: unexpected count {visitors!r}",
                operation="get active visitors",
                context={"website_id": website_id},
            ) from exc

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_accounts(self) -> list[UserAccount]:
        """List all user accounts (admin only)."""
        await self.transport.require_admin("list accounts")
        data = await self.transport.request_json("get accounts", "GET", "/accounts")
        return _parse_items(UserAccount, data, "get accounts")

    async def get_account(self, account_id: str) -> UserAccount:
        """Get one user account (admin only)."""
        await self.transport.require_admin("get an account")
        data = await self.transport.request_json(
            "get account",
            "GET",
            f"/accounts/{account_id}",
            context={"account_id": account_id},
        )
        return _parse(UserAccount, data, "get account")

    async def create_account(
        self,
        username: str,
        password: str,
        *,
        is_admin: bool = False,
    ) -> UserAccount:
        """Create a user account (admin only)."""
        await self.transport.require_admin("create an account")
        body = {"username": username, "password": password, "isAdmin": is_admin}
        data = await self.transport.request_json(
            "create account",
            "POST",
            "/accounts",
            json=body,
            context={"username": username, "is_admin": is_admin},
        )
        account = _parse(UserAccount, data, "create account")
        logger.info("Umami account created", account_id=account.id, username=account.username)
        return account

    async def update_account(
        self,
        account_id: str,
        *,
        username: str | None = None,
        password: str | None = None,
    ) -> UserAccount:
        """Rename an account or reset its password (admin only)."""
        if username is None and password is None:
            raise ValidationError("update_account needs a username or a password")
        await self.transport.require_admin("update an account")
        body = {"username": username, "password": password}
        data = await self.transport.request_json(
            "update account",
            "POST",
            f"/accounts/{account_id}",
            json={key: value for key, value in body.items() if value is not None},
            context={"account_id": account_id, "username": username},
        )
        return _parse(UserAccount, data, "update account")

    async def change_password(
        self,
        account_id: str,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change an account's password, proving the current one."""
        await self.transport.request(
            "change password",
            "POST",
            f"/accounts/{account_id}/password",
            json={"current_password": current_password, "new_password": new_password},
            context={"account_id": account_id},
        )

    async def delete_account(self, account_id: str) -> None:
        """Delete a user account (admin only)."""
        await self.transport.require_admin("delete an account")
        await self.transport.request(
            "delete account",
            "DELETE",
            f"/accounts/{account_id}",
            context={"account_id": account_id},
        )
        logger.info("Umami account deleted", account_id=account_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> UmamiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
