"""Core data models for device-doctor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional

if TYPE_CHECKING:
    from device_doctor.core.actions import Action


class Mode(Enum):
    UNKNOWN = "unknown"
    ADB = "adb"
    FASTBOOT = "fastboot"
    RECOVERY = "recovery"
    SAFE_MODE = "safemode"

    def __str__(self) -> str:
        return self.value


# How specific a mode determination is. Capture only ever moves upward.
MODE_RANK: dict[Mode, int] = {
    Mode.UNKNOWN: 0,
    Mode.ADB: 1,
    Mode.FASTBOOT: 1,
    Mode.RECOVERY: 2,
    Mode.SAFE_MODE: 2,
}


class Severity(IntEnum):
    INFO = 0
    WARN = 1
    ERROR = 2

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class DeviceState:
    serial: str
    mode: Mode = Mode.UNKNOWN
    battery: int = -1  # percentage, -1 when unavailable
    properties: Mapping[str, str] = field(default_factory=dict)
    errors: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        # Read-only copy; a snapshot never changes after capture.
        object.__setattr__(
            self, "properties", MappingProxyType(dict(self.properties))
        )


@dataclass(frozen=True)
class Diagnosis:
    name: str
    severity: Severity
    message: str
    actions: tuple[Action, ...] = ()
    when: datetime = field(default_factory=datetime.now)


@dataclass
class FixResult:
    """Outcome of one auto-fix cycle.

    ``error`` is the failure of the attempted action (or the guard
    rejection); ``save_error`` is a scoreboard persistence failure and is
    kept apart so it never changes how the action outcome is reported.
    """

    diagnosis: Diagnosis
    action: Optional[Action] = None
    error: Optional[Exception] = None
    save_error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None
