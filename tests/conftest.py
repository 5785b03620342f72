"""Shared test fixtures.

All HTTP traffic is mocked with respx at the httpx transport layer; no
test talks to a real Umami server.
"""

from __future__ import annotations

import pytest
import respx

from umami_client.config import ClientConfig

SERVER = "umami.example.fr"
BASE_URL = f"https://{SERVER}/api"
TOKEN = "thisIsTokenPlaceHolder"

ADMIN_AUTH = {
    "token": TOKEN,
    "user": {"id": "1", "username": "admin", "isAdmin": True},
}
USER_AUTH = {
    "token": TOKEN,
    "user": {"id": "7", "username": "viewer", "role": "user"},
}

WEBSITES = [
    {
        "id": 3,
        "name": "a__www.example.fr",
        "domain": "www.example.fr",
        "shareId": None,
        "userId": "1",
        "createdAt": "2022-02-17T12:57:43.805Z",
    },
    {
        "id": 2,
        "name": "b__integration",
        "domain": "integration.example.fr",
        "shareId": "Xy7kQ2",
        "userId": "1",
        "createdAt": "2022-02-16T20:33:31.106Z",
    },
    {
        "id": 1,
        "name": "dev",
        "domain": "localhost",
        "shareId": None,
        "userId": "1",
        "createdAt": "2022-02-16T12:44:44.015Z",
    },
]


class FakeClock:
    """Manually advanced wall clock, in seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def config() -> ClientConfig:
    return ClientConfig()


@pytest.fixture()
def umami_api():
    """respx router for the test server with an admin login already mocked."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        router.post("/auth/login", name="login").respond(200, json=ADMIN_AUTH)
        yield router


@pytest.fixture()
def server() -> str:
    return SERVER


@pytest.fixture()
def websites_payload() -> list[dict[str, object]]:
    return [dict(website) for website in WEBSITES]


@pytest.fixture()
def viewer_api(umami_api):
    """Same router, but the login belongs to a non-admin user."""
    umami_api["login"].respond(200, json=USER_AUTH)
    return umami_api
