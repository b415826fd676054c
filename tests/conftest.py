from __future__ import annotations

import json
from typing import Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from veronika.config import Settings
from veronika.db.session import create_engine, create_sessionmaker, create_tables
from veronika.web.app import create_app


ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"

A4F_HOST = "api.a4f.co"
CASHFREE_HOST = "api.cashfree.com"
OXAPAY_HOST = "api.oxapay.com"


class Upstream:
    """Scripted replies for outbound HTTP, one handler or queue per host."""

    def __init__(self) -> None:
        self.handlers: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.queues: Dict[str, List[httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def on(self, host: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handlers[host] = handler

    def queue(self, host: str, *responses: httpx.Response) -> None:
        self.queues.setdefault(host, []).extend(responses)

    def calls_to(self, host: str) -> List[httpx.Request]:
        return [call for call in self.calls if call.url.host == host]

    def bodies_to(self, host: str) -> List[dict]:
        return [json.loads(call.content) for call in self.calls_to(host) if call.content]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        host = request.url.host
        if self.queues.get(host):
            return self.queues[host].pop(0)
        handler = self.handlers.get(host)
        if handler is None:
            return httpx.Response(500, json={"message": f"no handler for {host}"})
        return handler(request)


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        "A4F_API_KEY": "test-a4f-key",
        "CASHFREE_APP_ID": "cf-app",
        "CASHFREE_SECRET_KEY": "cf-secret",
        "OXAPAY_MERCHANT_ID": "ox-merchant",
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def make_client(upstream):
    clients = []

    def _make(settings: Settings) -> TestClient:
        app = create_app(settings)
        app.state.http_transport = httpx.MockTransport(upstream)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, settings) -> TestClient:
    return make_client(settings)


@pytest.fixture
async def sessionmaker(settings):
    engine = create_engine(settings)
    await create_tables(engine)
    yield create_sessionmaker(engine)
    await engine.dispose()


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, email: str = "alice@example.com", name: str = "Alice", **extra) -> tuple[str, dict]:
    payload = {"name": name, "email": email, "password": "secret123", **extra}
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    return data["token"], data["user"]


def admin_token(client: TestClient) -> str:
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def profile(client: TestClient, token: str) -> dict:
    resp = client.get("/api/auth/profile", headers=auth(token))
    assert resp.status_code == 200, resp.text
    return resp.json()["user"]


def a4f_urls(*urls: str) -> httpx.Response:
    return httpx.Response(200, json={"data": [{"url": url} for url in urls]})
