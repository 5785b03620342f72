"""Authenticated HTTP transport for the Umami REST API.

One ``httpx.AsyncClient`` per instance. A request event hook runs before
every outgoing call and:

- lets ``/auth/login`` and ``/collect`` through untouched,
- waits for the shared login task and sets the bearer token,
- re-verifies the token against ``/auth/verify`` at most once per
  verification interval, before the triggering request is sent.

The login is started once per instance, so concurrent first requests all
wait on the same outcome.
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from umami_client.config import ClientConfig
from umami_client.errors import (
    AuthenticationError,
    ConfigurationError,
    PermissionDeniedError,
    RequestTimeoutError,
    TransportError,
)
from umami_client.models import AuthData, AuthUser

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

logger = structlog.get_logger()

LOGIN_ENDPOINT = "/auth/login"
VERIFY_ENDPOINT = "/auth/verify"
COLLECT_ENDPOINT = "/collect"
UNAUTHENTICATED_ENDPOINTS = frozenset({LOGIN_ENDPOINT, COLLECT_ENDPOINT})

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_server(server: str) -> str:
    """Strip a leading http(s) scheme and a trailing slash from *server*."""
    return _SCHEME_RE.sub("", server.strip()).rstrip("/")


def api_base_url(server: str) -> str:
    return f"https://{normalize_server(server)}/api"


class AuthenticatedTransport:
    """HTTP transport that keeps every request authenticated.

    Args:
        server: Umami hostname (e.g. "analytics.example.com"). A scheme,
            if present, is removed.
        username: Account used to log in.
        password: Password for *username*.
        config: Request defaults. ``ClientConfig()`` when omitted.
        clock: Wall-clock source in seconds, used for re-verification.
        transport: Optional httpx transport, mainly for tests.

    Raises:
        ConfigurationError: If the server or credentials are missing.
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
        if not server or not normalize_server(server):
            raise ConfigurationError("server hostname is required")
        if not username or not password:
            raise ConfigurationError("username and password are required")

        self.config = config or ClientConfig()
        self.base_url = api_base_url(server)
        self._base_path = httpx.URL(self.base_url).path.rstrip("/")
        self._username = username
        self._password = password
        self._clock = clock
        self._session_task: asyncio.Task[AuthData] | None = None
        self._user: AuthUser | None = None
        self.last_auth_check = clock()

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.timeout_s,
            transport=transport,
            event_hooks={"request": [self._authorize]},
        )

        # Start logging in right away when constructed inside a running loop;
        # otherwise the first request starts it.
        if _has_running_loop():
            self._session()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def _session(self) -> asyncio.Task[AuthData]:
        if self._session_task is None:
            self._session_task = asyncio.ensure_future(self._login())
        return self._session_task

    async def _login(self) -> AuthData:
        logger.debug("Umami login", base_url=self.base_url, username=self._username)
        try:
            resp = await self._client.post(
                LOGIN_ENDPOINT,
                json={"username": self._username, "password": self._password},
            )
            resp.raise_for_status()
            auth = AuthData.model_validate(resp.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Umami login failed",
                base_url=self.base_url,
                username=self._username,
                error=str(exc),
            )
            raise AuthenticationError(
                f"Login failed for {self._username!r} on {self.base_url}: {exc}"
            ) from exc
        self._user = auth.user
        logger.info("Umami login succeeded", username=auth.user.username, admin=auth.user.is_admin)
        return auth

    async def _verify(self) -> AuthUser:
        resp = await self._client.get(VERIFY_ENDPOINT)
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, dict) and isinstance(data.get("user"), dict):
            data = data["user"]
        user = AuthUser.model_validate(data)
        self._user = user
        return user

    async def _login_outcome(self) -> AuthData:
        # A cancelled caller must not cancel the login every caller shares.
        return await asyncio.shield(self._session())

    async def _verify_if_due(self, action: str) -> None:
        now = self._clock()
        if now - self.last_auth_check < self.config.verify_interval_s:
            return

        # Written before awaiting so concurrent requests do not verify twice.
        self.last_auth_check = now
        logger.debug("Umami token verification", action=action)
        try:
            await self._verify()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Umami token verification failed", action=action, error=str(exc))
            raise AuthenticationError(
                f"Could not verify authentication before {action}: {exc}"
            ) from exc

    async def get_current_user(self) -> AuthUser:
        """Identity of the logged-in user, refreshed by each verification."""
        auth = await self._login_outcome()
        return self._user or auth.user

    async def require_admin(self, action: str) -> None:
        """Raise PermissionDeniedError unless the current user is an admin.

        A verification that is due runs first, so the check sees the
        refreshed admin flag.
        """
        await self._login_outcome()
        await self._verify_if_due(action)
        user = await self.get_current_user()
        if not user.is_admin:
            raise PermissionDeniedError(f"You must be an administrator to {action}")

    # ------------------------------------------------------------------
    # Request hook
    # ------------------------------------------------------------------

    def _endpoint(self, request: httpx.Request) -> str:
        path = request.url.path
        if path.startswith(self._base_path):
            return path[len(self._base_path) :] or "/"
        return path

    async def _authorize(self, request: httpx.Request) -> None:
        endpoint = self._endpoint(request)
        if endpoint in UNAUTHENTICATED_ENDPOINTS:
            return

        auth = await self._login_outcome()
        request.headers["Authorization"] = f"Bearer {auth.token}"

        if endpoint == VERIFY_ENDPOINT:
            return

        await self._verify_if_due(f"{request.method} {request.url}")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one authenticated request and raise on any failure.

        Args:
            operation: Human-readable action, used in error messages
                (e.g. "get website").
            method: HTTP method.
            endpoint: Path relative to the API root (e.g. "/websites").
            params: Query parameters. ``None`` values are dropped.
            json: JSON body.
            headers: Extra headers.
            context: Parameters reported on failure. Defaults to the query
                parameters and body.

        Raises:
            TransportError: Non-2xx response or network failure.
            RequestTimeoutError: The configured timeout elapsed.
            AuthenticationError: Login or re-verification failed.
        """
        return await send_request(
            self._client,
            operation,
            method,
            endpoint,
            timeout_ms=self.config.timeout_ms,
            params=params,
            json=json,
            headers=headers,
            context=context,
        )

    async def request_json(
        self,
        operation: str,
        method: str,
        endpoint: str,
        **kwargs: Any,
    ) -> Any:
        """Like :meth:`request` but decodes the JSON body (``None`` when empty)."""
        resp = await self.request(operation, method, endpoint, **kwargs)
        return decode_json(resp, operation)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        if self._session_task is not None and not self._session_task.done():
            self._session_task.cancel()
        await self._client.aclose()

    async def __aenter__(self) -> AuthenticatedTransport:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


async def send_request(
    client: httpx.AsyncClient,
    operation: str,
    method: str,
    endpoint: str,
    *,
    timeout_ms: int,
    params: dict[str, Any] | None = None,
    json: Any = None,
    headers: dict[str, str] | None = None,
    context: dict[str, Any] | None = None,
) -> httpx.Response:
    """Send a request on *client*, translating httpx failures into TransportError."""
    if params is not None:
        params = {key: value for key, value in params.items() if value is not None}
    if context is None:
        context = {"params": params, "json": json}

    try:
        resp = await client.request(method, endpoint, params=params, json=json, headers=headers)
        resp.raise_for_status()
    except httpx.TimeoutException as exc:
        logger.warning(
            "Umami request timed out",
            operation=operation,
            endpoint=endpoint,
            timeout_ms=timeout_ms,
        )
        raise RequestTimeoutError(
            f"Could not {operation}: timed out after {timeout_ms} ms",
            operation=operation,
            context=context,
        ) from exc
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        logger.warning(
            "Umami request failed",
            operation=operation,
            endpoint=endpoint,
            status=status_code,
        )
        raise TransportError(
            f"Could not {operation}: request failed with status code {status_code}",
            operation=operation,
            context=context,
            status_code=status_code,
        ) from exc
    except httpx.HTTPError as exc:
        logger.warning(
            "Umami request error",
            operation=operation,
            endpoint=endpoint,
            error=str(exc),
        )
        raise TransportError(
            f"Could not {operation}: {exc}",
            operation=operation,
            context=context,
        ) from exc
    return resp


def decode_json(resp: httpx.Response, operation: str) -> Any:
    """Decode a response body, ``None`` when the body is empty."""
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise TransportError(
            f"Could not {operation}: non-JSON response {resp.text[:200]!r}",
            operation=operation,
            status_code=resp.status_code,
        ) from exc
