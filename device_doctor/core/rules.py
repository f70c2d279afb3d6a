"""Diagnosis rules: each maps a DeviceState to at most one Diagnosis."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from device_doctor.core.actions import SetModeAction
from device_doctor.core.models import DeviceState, Diagnosis, Mode, Severity

LOW_BATTERY_THRESHOLD = 10


class Rule(ABC):
    """A pure check over a DeviceState. Never raises, never mutates."""

    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def match(self, state: DeviceState) -> Optional[Diagnosis]: ...


class UnknownModeRule(Rule):
    def name(self) -> str:
        return "unknown_mode"

    def match(self, state: DeviceState) -> Optional[Diagnosis]:
        if state.mode is not Mode.UNKNOWN:
            return None
        return Diagnosis(
            name=self.name(),
            severity=Severity.ERROR,
            message=(
                "Device mode is unknown (no adb/fastboot session detected). "
                "Check drivers/cable or power."
            ),
        )


class FastbootNudgeRule(Rule):
    def name(self) -> str:
        return "fastboot_detected"

    def match(self, state: DeviceState) -> Optional[Diagnosis]:
        if state.mode is not Mode.FASTBOOT:
            return None
        return Diagnosis(
            name=self.name(),
            severity=Severity.WARN,
            message=(
                "Device is in fastboot mode. You can reboot to system "
                "or go to recovery."
            ),
            actions=(
                SetModeAction(Mode.ADB),
                SetModeAction(Mode.RECOVERY),
            ),
        )


class LowBatteryRule(Rule):
    def name(self) -> str:
        return "low_battery"

    def match(self, state: DeviceState) -> Optional[Diagnosis]:
        if not 0 <= state.battery < LOW_BATTERY_THRESHOLD:
            return None
        return Diagnosis(
            name=self.name(),
            severity=Severity.WARN,
            message=(
                f"Battery is low ({state.battery}%). "
                "Prefer charging before heavy operations."
            ),
        )


def default_rules() -> list[Rule]:
    """Built-in rule set, in registration order. Light-touch only."""
    return [
        FastbootNudgeRule(),
        LowBatteryRule(),
        UnknownModeRule(),
    ]
