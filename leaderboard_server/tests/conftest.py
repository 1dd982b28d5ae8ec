"""
Pytest configuration for leaderboard_server. Pins the environment before the
app modules are imported (config is read at import time).
"""
import os
import time

os.environ["LEADERBOARD_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["EXTENSION_SECRET"] = "test-extension-secret-0123456789abcdef"
os.environ["EXTENSION_SECRET_BASE64"] = "false"
os.environ["EXTENSION_CLIENT_ID"] = "test-client-id"
os.environ["EXTENSION_CLIENT_SECRET"] = "test-client-secret"

import jwt
import pytest
from fastapi.testclient import TestClient

from leaderboard_server.database import reset_db
from leaderboard_server.main import app

SECRET = os.environ["EXTENSION_SECRET"]


def make_assertion(
    *,
    opaque_user_id: str | None = "A1B2C3",
    user_id: str | None = None,
    channel_id: str | None = "chan1",
    role: str = "viewer",
    expires_in: int = 300,
    secret: str = SECRET,
    algorithm: str = "HS256",
) -> str:
    """Build a signed extension identity assertion for tests."""
    now = int(time.time())
    payload = {"exp": now + expires_in, "role": role}
    if opaque_user_id is not None:
        payload["opaque_user_id"] = opaque_user_id
    if user_id is not None:
        payload["user_id"] = user_id
    if channel_id is not None:
        payload["channel_id"] = channel_id
    return jwt.encode(payload, secret, algorithm=algorithm)


def auth_header(**kwargs) -> dict:
    return {"Authorization": f"Bearer {make_assertion(**kwargs)}"}


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def client():
    """TestClient with lifespan run and a clean participant table."""
    with TestClient(app) as c:
        reset_db()
        yield c
