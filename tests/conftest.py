"""
Shared test fixtures and helpers.
"""
from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator, List, Optional

import httpx
import pytest

from proxykit.config import ProxyKitConfig
from proxykit.kit import ProxyKit
from proxykit.models import Status, StatusInfo
from proxykit.services.endpoints import RestEndpoint
from proxykit.state import KitState

# Scripted FakeTransport step: block until cancelled
HANG = object()

TEST_TOKEN = "test-token-1234"

STARTED_PAYLOAD = {
    "status": "started",
    "name": "Tor VPN",
    "version": "1.7.0",
    "build": "182",
    "onion-only": False,
    "bypass-port": 9050,
}

CIRCUIT_PAYLOAD = {
    "raw": "12 BUILT $A1B2C3~guard1,$D4E5F6~exit1 PURPOSE=GENERAL",
    "circuitId": "12",
    "status": "BUILT",
    "nodes": [
        {"fingerprint": "A1B2C3", "nickName": "guard1", "ipv4Address": "192.0.2.10",
         "countryCode": "de", "localizedCountryName": "Germany"},
        {"fingerprint": "D4E5F6", "nickName": "exit1", "ipv6Address": "2001:db8::7",
         "countryCode": "nl", "localizedCountryName": "Netherlands"},
    ],
    "buildFlags": ["NEED_CAPACITY", "IS_INTERNAL"],
    "purpose": "GENERAL",
    "timeCreated": 1651500000000,
    "socksUsername": "user",
    "socksPassword": "pass",
}


def make_config(**overrides: Any) -> ProxyKitConfig:
    """A config isolated from the environment, with fast timeouts."""
    values = dict(
        request_timeout=0.5,
        dead_poll_timeout=0.2,
        connect_retry_delay=0.0,
        app_id="org.example.host",
        app_name="Host App",
        api_token=None,
    )
    values.update(overrides)
    return ProxyKitConfig(_env_file=None, **values)


def status(value: str) -> StatusInfo:
    return StatusInfo.synthesize(Status(value))


async def eventually(predicate, timeout: float = 3.0) -> None:
    """Wait until predicate() is true, or fail."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not met in time")
        await asyncio.sleep(0.01)


async def hang_forever(request: httpx.Request) -> httpx.Response:
    """pytest-httpx callback for a long poll that never answers."""
    await asyncio.Event().wait()
    raise AssertionError("unreachable")


class FakeTransport:
    """
    Transport stand-in which answers from a script.

    Each step is a payload (returned), an exception (raised) or HANG. Once the
    script is exhausted every call hangs.
    """

    def __init__(self, script: Optional[List[Any]] = None):
        self.script = list(script or [])
        self.endpoints: List[RestEndpoint] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled = 0

    @property
    def calls(self) -> int:
        return len(self.endpoints)

    def extend(self, steps: List[Any]) -> None:
        self.script.extend(steps)

    async def send(self, endpoint: RestEndpoint, shape: Any = None) -> Any:
        self.endpoints.append(endpoint)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            step = self.script.pop(0) if self.script else HANG
            if step is HANG:
                await asyncio.Event().wait()
            await asyncio.sleep(0)
            if isinstance(step, BaseException):
                raise step
            return step
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.in_flight -= 1


class RecordingListener:
    """Records status change and death notifications."""

    def __init__(self):
        self.changes: List[StatusInfo] = []
        self.stopped: List[Exception] = []
        self.deaths: List[Exception] = []

    def status_changed(self, info: StatusInfo) -> None:
        self.changes.append(info)

    def listening_stopped(self, error: Exception) -> None:
        self.stopped.append(error)

    def died(self, error: Exception) -> None:
        self.deaths.append(error)

    @property
    def statuses(self) -> List[str]:
        return [info.status.value for info in self.changes]


class RecordingUrlHandler:
    """URL handler that records instead of launching anything."""

    def __init__(self, installed: bool = True, opens: bool = True):
        self.installed = installed
        self.opens = opens
        self.probed: List[str] = []
        self.opened: List[tuple] = []

    def can_open(self, url: str) -> bool:
        self.probed.append(url)
        return self.installed

    def open(self, url: str, universal_links_only: bool = False) -> bool:
        self.opened.append((url, universal_links_only))
        return self.opens


@pytest.fixture
def config() -> ProxyKitConfig:
    return make_config()


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def url_handler() -> RecordingUrlHandler:
    return RecordingUrlHandler()


@pytest.fixture
async def kit_state() -> AsyncGenerator[KitState, None]:
    """State with a live HTTP client (intercepted by httpx_mock where requested)."""
    client = httpx.AsyncClient()
    yield KitState(api_token=TEST_TOKEN, http_client=client)
    await client.aclose()


@pytest.fixture
async def kit(config, url_handler) -> AsyncGenerator[ProxyKit, None]:
    async with ProxyKit(config, url_handler=url_handler) as instance:
        yield instance
