"""Tests for device_doctor.core.state: state capture and parsing."""

from __future__ import annotations

import dataclasses

import pytest

from device_doctor.core.errors import CommandCancelledError, TransportError
from device_doctor.core.models import DeviceState, Mode
from device_doctor.core.state import collect_state, parse_battery, upgrade_mode

DUMPSYS_BATTERY = """\
Current Battery Service state:
  AC powered: false
  USB powered: true
  status: 2
  health: 2
  present: true
  level: 57
  scale: 100
  voltage: 4012
"""


# ---------------------------------------------------------------------------
# parse_battery
# ---------------------------------------------------------------------------

class TestParseBattery:
    def test_dumpsys_output(self):
        assert parse_battery(DUMPSYS_BATTERY) == 57

    def test_missing_level(self):
        assert parse_battery("AC powered: false\n") == -1

    def test_out_of_range(self):
        assert parse_battery("  level: 150\n") == -1

    def test_zero(self):
        assert parse_battery("level: 0") == 0

    def test_ignores_similar_keys(self):
        assert parse_battery("  battery level: 40\n") == -1


# ---------------------------------------------------------------------------
# upgrade_mode
# ---------------------------------------------------------------------------

class TestUpgradeMode:
    def test_upgrades_to_more_specific(self):
        assert upgrade_mode(Mode.ADB, Mode.RECOVERY) is Mode.RECOVERY
        assert upgrade_mode(Mode.UNKNOWN, Mode.ADB) is Mode.ADB

    def test_never_downgrades(self):
        assert upgrade_mode(Mode.RECOVERY, Mode.ADB) is Mode.RECOVERY
        assert upgrade_mode(Mode.SAFE_MODE, Mode.UNKNOWN) is Mode.SAFE_MODE

    def test_equal_rank_keeps_current(self):
        assert upgrade_mode(Mode.RECOVERY, Mode.SAFE_MODE) is Mode.RECOVERY


# ---------------------------------------------------------------------------
# collect_state
# ---------------------------------------------------------------------------

class TestCollectState:
    def test_adb_device(self, transport_factory, call_ctx):
        t = transport_factory({
            ("adb", "get-state"): "device\n",
            ("adb", "shell", "getprop", "ro.bootmode"): "normal\n",
            ("adb", "shell", "dumpsys", "battery"): DUMPSYS_BATTERY,
        })
        state = collect_state(call_ctx, t, "SER123")
        assert state.serial == "SER123"
        assert state.mode is Mode.ADB
        assert state.battery == 57
        assert state.properties == {"ro.bootmode": "normal"}
        assert state.errors == ()
        assert ("fastboot", "getvar", "product") not in t.calls
        with pytest.raises(TypeError):
            state.properties["ro.bootmode"] = "safemode"

    def test_recovery_from_get_state(self, transport_factory, call_ctx):
        t = transport_factory({("adb", "get-state"): "recovery\n"})
        state = collect_state(call_ctx, t, "SER123")
        assert state.mode is Mode.RECOVERY
        assert state.battery == -1

    def test_recovery_from_bootmode(self, transport_factory, call_ctx):
        t = transport_factory({
            ("adb", "get-state"): "device",
            ("adb", "shell", "getprop", "ro.bootmode"): "recovery",
        })
        assert collect_state(call_ctx, t, "SER123").mode is Mode.RECOVERY

    def test_safe_mode_from_bootmode(self, transport_factory, call_ctx):
        t = transport_factory({
            ("adb", "get-state"): "device",
            ("adb", "shell", "getprop", "ro.bootmode"): "safemode",
        })
        assert collect_state(call_ctx, t, "SER123").mode is Mode.SAFE_MODE

    def test_recovery_not_downgraded_by_later_probe(self, transport_factory, call_ctx):
        t = transport_factory({
            ("adb", "get-state"): "recovery",
            ("adb", "shell", "getprop", "ro.bootmode"): "unknown",
        })
        assert collect_state(call_ctx, t, "SER123").mode is Mode.RECOVERY

    def test_fastboot_device(self, transport_factory, call_ctx):
        t = transport_factory({
            ("fastboot", "getvar", "product"): "product: sargo\nFinished.\n",
        })
        state = collect_state(call_ctx, t, "SER123")
        assert state.mode is Mode.FASTBOOT
        assert state.properties["fastboot_product"].startswith("product: sargo")
        assert len(state.errors) == 1
        assert "get-state" in state.errors[0]

    def test_nothing_responds(self, transport_factory, call_ctx):
        t = transport_factory()
        state = collect_state(call_ctx, t, "SER123")
        assert state.mode is Mode.UNKNOWN
        assert state.battery == -1
        assert len(state.errors) == 2

    def test_battery_probe_failure_is_tolerated(self, transport_factory, call_ctx):
        t = transport_factory({
            ("adb", "get-state"): "device",
            ("adb", "shell", "dumpsys", "battery"): TransportError(
                ["adb", "shell", "dumpsys", "battery"], "boom"
            ),
        })
        state = collect_state(call_ctx, t, "SER123")
        assert state.mode is Mode.ADB
        assert state.battery == -1

    def test_cancellation_propagates(self, transport_factory, call_ctx):
        t = transport_factory({
            ("adb", "get-state"): CommandCancelledError(["adb", "get-state"], "cancelled"),
        })
        with pytest.raises(CommandCancelledError):
            collect_state(call_ctx, t, "SER123")
        assert t.calls == [("adb", "get-state")]

    def test_snapshot_is_frozen(self, transport_factory, call_ctx):
        state = collect_state(call_ctx, transport_factory(), "SER123")
        assert isinstance(state, DeviceState)
        with pytest.raises(dataclasses.FrozenInstanceError):
            state.mode = Mode.ADB
