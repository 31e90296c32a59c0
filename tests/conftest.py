"""Shared test fixtures.

  state     - fresh ConnectionState
  session   - FakeSession recording every command sent to the session bridge
  settings  - Settings with no bulk-send pause and no relay URL
  client    - FastAPI TestClient with the DI container wired to the above
  bridge    - FakeBridge served over a real WebSocket on a free local port
  until     - async polling helper for conditions reached in the background
"""
from __future__ import annotations

import asyncio
import json
import socket
from typing import Callable, Optional

import pytest
import pytest_asyncio
from dependency_injector import providers
from fastapi.testclient import TestClient
from websockets.asyncio.server import serve

from core.config import Settings
from core.container import container
from models.whatsapp import ClientInfo
from services.connection_state import ConnectionState
from services.exceptions import SessionCommandError


class FakeSession:
    """Stands in for SessionClient; records sends and can be told to fail."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Optional[str]]] = []
        self.fail_for: set[str] = set()
        self.logout_error: Optional[str] = None
        self.info_error: Optional[Exception] = None
        self.logged_out = False

    async def send_message(self, chat_id: str, text: str,
                           quoted_message_id: Optional[str] = None) -> Optional[str]:
        if chat_id in self.fail_for:
            raise SessionCommandError("send_message", f"No LID for user {chat_id}")
        self.sent.append((chat_id, text, quoted_message_id))
        return f"msg-{len(self.sent)}"

    async def logout(self) -> None:
        if self.logout_error:
            raise SessionCommandError("logout", self.logout_error)
        self.logged_out = True

    async def get_info(self) -> ClientInfo:
        if self.info_error:
            raise self.info_error
        return ClientInfo(pushname="KRP Academy", wid="919876543210@c.us", platform="android")


@pytest.fixture
def state() -> ConnectionState:
    return ConnectionState()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def settings() -> Settings:
    return Settings(bulk_send_delay=0, relay_url=None)


@pytest.fixture
def client(state: ConnectionState, session: FakeSession, settings: Settings):
    container.settings.override(providers.Object(settings))
    container.connection_state.override(providers.Object(state))
    container.session_client.override(providers.Object(session))

    from main import app

    # No context manager: the lifespan (bridge connection) is not started
    yield TestClient(app, raise_server_exceptions=False)

    container.reset_override()


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class FakeBridge:
    """In-process JSON-RPC bridge: answers commands and pushes events on request."""

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.silent: set[str] = set()
        self.errors: dict[str, str] = {}
        self.connection = None
        self.url = ""

    async def handler(self, ws) -> None:
        self.connection = ws
        async for raw in ws:
            req = json.loads(raw)
            self.requests.append(req)
            method = req["method"]
            if method in self.silent:
                continue
            if method in self.errors:
                await ws.send(json.dumps({
                    "jsonrpc": "2.0", "id": req["id"],
                    "error": {"code": -32000, "message": self.errors[method]},
                }))
                continue
            result: object = {}
            if method == "send_message":
                result = {"message_id": "3EB0ABC"}
            elif method == "info":
                result = {
                    "pushname": "KRP Academy",
                    "wid": {"_serialized": "919876543210@c.us", "user": "919876543210"},
                    "platform": "android",
                }
            await ws.send(json.dumps({"jsonrpc": "2.0", "id": req["id"], "result": result}))

    async def emit(self, method: str, params: dict) -> None:
        await self.send_raw(json.dumps({"jsonrpc": "2.0", "method": method, "params": params}))

    async def send_raw(self, frame: str) -> None:
        await self.connection.send(frame)

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.fixture
def free_port() -> int:
    return _free_port()


@pytest.fixture
def until():
    """Poll a condition from async tests: ``await until(lambda: ...)``."""
    return wait_until


@pytest.fixture
def fake_bridge() -> FakeBridge:
    """A bridge not yet listening; serve it yourself to control its lifetime."""
    return FakeBridge()


@pytest_asyncio.fixture
async def bridge(fake_bridge: FakeBridge, free_port: int):
    fake = fake_bridge
    async with serve(fake.handler, "127.0.0.1", free_port):
        fake.url = f"ws://127.0.0.1:{free_port}"
        yield fake
