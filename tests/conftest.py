"""Shared fixtures and fakes for the trace bridge tests."""

import inspect
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest
from aiocoap import Message
from aiocoap.numbers.types import Type

from trace_bridge.coap.options import CoapOptionTable

LOOPBACK_PEER = SimpleNamespace(
    scheme="coap",
    hostinfo="127.0.0.1:5683",
    hostinfo_local="127.0.0.1:5683",
    is_multicast=False,
)


class RecordingReporter:
    """Span reporter that keeps submitted payloads in memory."""

    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []
        self.closed = False

    def submit(self, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)

    async def aclose(self) -> None:
        self.closed = True


class FakeCoapContext:
    """Stands in for an aiocoap client context.

    ``responder`` receives each outbound message and returns (or awaits to)
    the response message, or raises to simulate a transport failure.
    """

    def __init__(self, responder: Callable[[Any], Any]) -> None:
        self.requests: list[Any] = []
        self.shut_down = False
        self._responder = responder

    def request(self, message: Any) -> SimpleNamespace:
        self.requests.append(message)
        return SimpleNamespace(response=self._respond(message))

    async def _respond(self, message: Any) -> Any:
        result = self._responder(message)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def shutdown(self) -> None:
        self.shut_down = True


def as_received(message: Message) -> Message:
    """Pass an outgoing message through the wire format, as a server receives it."""
    if message.mtype is None:
        message.mtype = Type.CON
    if message.mid is None:
        message.mid = 1
    return Message.decode(message.encode(), remote=LOOPBACK_PEER)


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def make_reporter() -> type[RecordingReporter]:
    """For tests that need one reporter per hop."""
    return RecordingReporter


@pytest.fixture
def coap_context() -> type[FakeCoapContext]:
    return FakeCoapContext


@pytest.fixture
def incoming() -> Callable[[Message], Message]:
    return as_received


@pytest.fixture
def option_table() -> CoapOptionTable:
    return CoapOptionTable()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> None:
    """Isolate configuration from the developer's environment and .env files."""
    import os

    for key in list(os.environ):
        if key.startswith("BRIDGE_") or key in ("APP_ENV", "APP_LOG_LEVEL"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
