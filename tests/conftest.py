"""Shared fixtures."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from websockets.asyncio.client import connect

from craftgate.config import Settings
from craftgate.daemon import service as service_module
from craftgate.daemon.service import DaemonService
from craftgate.security import create_jwt_token

SECRET = "test-secret-key"
ORIGIN = "http://localhost:25565"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        host="127.0.0.1",
        port=0,
        jwt_secret=SECRET,
        allowed_origins=[ORIGIN],
        command_timeout=0.2,
        ipc_socket_path=str(tmp_path / "d.sock"),
    )


@pytest.fixture
def token() -> str:
    return create_jwt_token(SECRET, {"sub": "plugin"}, expires_delta=timedelta(minutes=5))


@pytest.fixture
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "Origin": ORIGIN}


@pytest_asyncio.fixture
async def daemon(settings, monkeypatch):
    """A started daemon; root logging is left to pytest"""
    monkeypatch.setattr(service_module, "setup_logging", lambda **kwargs: None)
    daemon = DaemonService(settings=settings.model_copy(update={"command_timeout": 2.0}))
    await daemon.start()
    yield daemon
    await daemon.stop()


@pytest_asyncio.fixture
async def plugin(daemon, token):
    """An upstream client connected to the daemon's gateway"""
    async with connect(
        f"ws://127.0.0.1:{daemon.gateway.port}",
        origin=ORIGIN,
        additional_headers={"Authorization": f"Bearer {token}"},
    ) as ws:
        for _ in range(200):
            if daemon.gateway.connection_count:
                break
            await asyncio.sleep(0.01)
        yield ws
