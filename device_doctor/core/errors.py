"""Exception hierarchy for device-doctor."""

from __future__ import annotations

from typing import Optional, Sequence


class DeviceDoctorError(Exception):
    """Base class for all device-doctor errors."""


class NoDevicesError(DeviceDoctorError):
    def __init__(self, message: str = "no devices found"):
        super().__init__(message)


class UnsupportedTransitionError(DeviceDoctorError):
    def __init__(self, action_name: str, mode: object):
        self.action_name = action_name
        self.mode = mode
        super().__init__(f"action {action_name} cannot apply in mode {mode}")


class UnknownModeError(DeviceDoctorError, ValueError):
    def __init__(self, value: object, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"unknown mode: {value!r}")


class TransportError(DeviceDoctorError):
    """A device command failed. ``output`` holds whatever it printed."""

    def __init__(
        self,
        command: Sequence[str],
        message: str,
        output: str = "",
        exit_code: Optional[int] = None,
    ):
        self.command = list(command)
        self.output = output
        self.exit_code = exit_code
        super().__init__(message)


class CommandTimeoutError(TransportError):
    pass


class CommandCancelledError(TransportError):
    pass


class PersistenceError(DeviceDoctorError):
    def __init__(self, path: object, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")
