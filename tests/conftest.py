import asyncio
import inspect
import json
import time

import pytest

from errors import ProbeError
from session.channel import CONNECTED, CONNECTION_LOST, CONNECTION_RESTORED


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "slow: marks test as slow running test")


async def wait_for(predicate, timeout=2.0, interval=0.01):
    """Poll until predicate() is true or fail after timeout"""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


class FakeProbe:
    """In-memory AP surface. Unknown URLs behave like unreachable hosts."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, url, body=None, delay=0.0, fail=None):
        self.routes[url] = (delay, body, fail)

    def add_ap(self, host, model, radios, info_delay=0.0):
        """radios: name -> dict(delay=..., results=[...], fail=None)"""
        self.route(f"{host}/cgi-bin/info", {"model": model, "version": "1.0"}, delay=info_delay)
        self.route(f"{host}/cgi-bin/list", {name: {} for name in radios})
        for name, behaviour in radios.items():
            self.route(f"{host}/cgi-bin/scan/{name}",
                       {"results": behaviour.get("results", [])},
                       delay=behaviour.get("delay", 0.0),
                       fail=behaviour.get("fail"))

    def calls_to(self, suffix):
        return [c for c in self.calls if c.endswith(suffix)]

    async def get_raw(self, url, timeout=None):
        self.calls.append(url)
        entry = self.routes.get(url)
        if entry is None:
            raise ProbeError(url, "connection refused")
        delay, body, fail = entry
        if delay:
            await asyncio.sleep(delay)
        if fail:
            raise ProbeError(url, fail)
        return json.dumps(body).encode()

    async def get_json(self, url, timeout=None):
        return json.loads(await self.get_raw(url, timeout))


class FakeChannel:
    """Records outbound commands and lets tests drive inbound ones"""

    def __init__(self):
        self.sent = []
        self.connected = False
        self.connections = 0
        self.started = False
        self._handshake = None
        self.command_handlers = []
        self.status_callbacks = []

    def set_handshake(self, handshake):
        self._handshake = handshake

    def add_command_handler(self, handler):
        self.command_handlers.append(handler)

    def add_status_callback(self, callback):
        self.status_callbacks.append(callback)

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False
        self.connected = False

    async def send(self, command, arg=None):
        self.sent.append((command, arg))
        return self.connected

    async def open(self):
        self.connections += 1
        if self._handshake is not None:
            self.sent.append(self._handshake())
        self.connected = True
        await self._fire(CONNECTION_RESTORED if self.connections > 1 else CONNECTED)

    async def drop(self):
        self.connected = False
        await self._fire(CONNECTION_LOST)

    async def deliver(self, command, arg=None):
        for handler in self.command_handlers:
            result = handler(command, arg)
            if inspect.isawaitable(result):
                await result

    async def _fire(self, event):
        for callback in self.status_callbacks:
            result = callback(event)
            if inspect.isawaitable(result):
                await result

    def commands(self):
        return [command for command, _ in self.sent]


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def channel():
    return FakeChannel()
