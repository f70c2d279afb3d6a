"""Shared test fixtures for device-doctor tests."""

from __future__ import annotations

import random
from typing import Callable, Optional, Union

import pytest

from device_doctor.core.config import DoctorConfig
from device_doctor.core.context import CallContext
from device_doctor.core.engine import DiagnosisEngine
from device_doctor.core.errors import NoDevicesError, TransportError
from device_doctor.core.models import DeviceState, Mode
from device_doctor.data.scoreboard import Scoreboard

Reply = Union[str, Exception, Callable[[], str]]


class FakeTransport:
    """Scripted transport: replies keyed by (binary, *args), calls recorded."""

    def __init__(self, replies: Optional[dict[tuple[str, ...], Reply]] = None,
                 devices: Optional[list[str]] = None):
        self.replies = dict(replies or {})
        self.devices = devices or []
        self.calls: list[tuple[str, ...]] = []

    def list_devices(self, ctx: CallContext) -> list[str]:
        ctx.check(["devices"])
        if not self.devices:
            raise NoDevicesError()
        return sorted(self.devices)

    def adb(self, ctx: CallContext, serial: str, *args: str) -> str:
        return self._reply(ctx, ("adb", *args))

    def fastboot(self, ctx: CallContext, serial: str, *args: str) -> str:
        return self._reply(ctx, ("fastboot", *args))

    def _reply(self, ctx: CallContext, key: tuple[str, ...]) -> str:
        self.calls.append(key)
        ctx.check(list(key))
        reply = self.replies.get(key)
        if reply is None:
            raise TransportError(list(key), f"{' '.join(key)} failed: exit status 1")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply()
        return reply


@pytest.fixture
def call_ctx() -> CallContext:
    return CallContext(timeout=30)


@pytest.fixture
def transport_factory():
    """The FakeTransport class, for tests that script their own replies."""
    return FakeTransport


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def scoreboard_path(tmp_path) -> str:
    return str(tmp_path / "state" / "scoreboard.json")


@pytest.fixture
def scoreboard() -> Scoreboard:
    return Scoreboard(rng=random.Random(1234))


@pytest.fixture
def engine(fake_transport, scoreboard, scoreboard_path) -> DiagnosisEngine:
    return DiagnosisEngine(
        fake_transport,
        config=DoctorConfig(scoreboard_path=scoreboard_path),
        scoreboard=scoreboard,
    )


@pytest.fixture
def fastboot_state() -> DeviceState:
    return DeviceState(serial="SER123", mode=Mode.FASTBOOT, battery=-1)


@pytest.fixture
def adb_state() -> DeviceState:
    return DeviceState(serial="SER123", mode=Mode.ADB, battery=80)
