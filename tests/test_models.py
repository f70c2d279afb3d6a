"""Tests for device_doctor.core.models."""

from __future__ import annotations

import pytest

from device_doctor.core.errors import TransportError
from device_doctor.core.models import (
    MODE_RANK,
    DeviceState,
    Diagnosis,
    FixResult,
    Mode,
    Severity,
)


class TestSeverity:
    def test_ordering(self):
        assert Severity.INFO < Severity.WARN < Severity.ERROR

    def test_str(self):
        assert str(Severity.WARN) == "warn"


class TestMode:
    def test_str_is_value(self):
        assert str(Mode.SAFE_MODE) == "safemode"
        assert f"{Mode.FASTBOOT}" == "fastboot"

    def test_every_mode_ranked(self):
        assert set(MODE_RANK) == set(Mode)
        assert MODE_RANK[Mode.UNKNOWN] == min(MODE_RANK.values())


class TestDeviceState:
    def test_defaults(self):
        state = DeviceState(serial="SER123")
        assert state.mode is Mode.UNKNOWN
        assert state.battery == -1
        assert state.properties == {}
        assert state.errors == ()
        assert state.timestamp is not None

    def test_properties_read_only(self):
        state = DeviceState(serial="SER123", properties={"ro.bootmode": "normal"})
        with pytest.raises(TypeError):
            state.properties["ro.bootmode"] = "recovery"
        assert state.properties == {"ro.bootmode": "normal"}

    def test_properties_copied_from_caller(self):
        props = {"ro.bootmode": "normal"}
        state = DeviceState(serial="SER123", properties=props)
        props["ro.bootmode"] = "recovery"
        assert state.properties["ro.bootmode"] == "normal"


class TestFixResult:
    def test_success_without_error(self):
        d = Diagnosis(name="ok", severity=Severity.INFO, message="fine")
        assert FixResult(diagnosis=d).success is True

    def test_failure_with_error(self):
        d = Diagnosis(name="x", severity=Severity.WARN, message="m")
        result = FixResult(diagnosis=d, error=TransportError(["adb"], "boom"))
        assert result.success is False
