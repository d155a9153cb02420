import asyncio
from typing import Any

import pytest

from beniocord.client import Client
from beniocord.config.schema import CacheConfig, Config, ConnectionConfig
from beniocord.errors import FailureReason, RequestFailure
from beniocord.rest.base import RequestGateway
from beniocord.transport.base import Transport, TransportError

BOT_USER = {"id": 1, "username": "benio-bot", "display_name": "Benio", "is_bot": True}


class FakeTransport(Transport):
    """In-memory transport: records sends, lets tests push events and drop the link."""

    def __init__(self, fail_times: int = 0, open_error: Exception | None = None):
        super().__init__()
        self.fail_times = fail_times
        self.open_error = open_error or TransportError("connection refused")
        self.open_calls = 0
        self.close_calls = 0
        self.sent: list[tuple[str, dict, Any]] = []
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def open(self, endpoint: str, credential: str) -> None:
        self.open_calls += 1
        if self.open_calls <= self.fail_times:
            raise self.open_error
        self._connected = True

    async def close(self) -> None:
        self.close_calls += 1
        self._connected = False

    async def send(self, event, payload, callback=None) -> None:
        if not self._connected:
            raise TransportError("Socket is not connected")
        self.sent.append((event, payload, callback))

    async def push(self, event: str, payload: Any) -> None:
        await self._deliver(event, payload)

    async def drop(self, reason: str) -> None:
        self._connected = False
        await self._signal_closed(reason)

    def sent_events(self, name: str | None = None) -> list[tuple[str, dict, Any]]:
        return [entry for entry in self.sent if name is None or entry[0] == name]

    def ack(self, event: str, response: Any) -> None:
        """Acknowledge the most recent command sent under ``event``."""
        _, _, callback = self.sent_events(event)[-1]
        callback(response)


class HangingTransport(FakeTransport):
    """Transport whose open() never completes."""

    async def open(self, endpoint: str, credential: str) -> None:
        self.open_calls += 1
        await asyncio.Event().wait()


class FakeGateway(RequestGateway):
    """
    Canned REST responses keyed by (method, path).

    Unknown routes fail with NOT_FOUND; exception values are raised.
    """

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, str, Any, Any]] = []

    async def request(self, method, path, body=None, params=None):
        self.calls.append((method, path, body, params))
        result = self.responses.get((method, path))
        if result is None:
            raise RequestFailure(FailureReason.NOT_FOUND, f"{method} {path} -> HTTP 404", status=404)
        if isinstance(result, Exception):
            raise result
        return result

    def paths(self) -> list[str]:
        return [path for _, path, _, _ in self.calls]


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate()`` holds."""
    async def poll():
        while not predicate():
            await asyncio.sleep(0.001)
    await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def config():
    return Config(
        token="test-token",
        connection=ConnectionConfig(
            connect_timeout_s=2.0,
            command_timeout_s=1.0,
            max_retries=3,
            retry_delay_s=0,
            heartbeat_interval_s=60.0,
        ),
        cache=CacheConfig(message_capacity=50, echo_capacity=100),
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def gateway():
    return FakeGateway({
        ("GET", "/api/users/me"): BOT_USER,
        ("GET", "/api/auth/verify"): {"valid": True},
    })


@pytest.fixture
def client(config, gateway, transport):
    return Client(config, gateway=gateway, transport=transport)
