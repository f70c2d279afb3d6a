"""Remediation actions: small immutable value objects that change device mode."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from device_doctor.core.context import CallContext
from device_doctor.core.errors import (
    CommandCancelledError,
    TransportError,
    UnknownModeError,
)
from device_doctor.core.models import DeviceState, Mode
from device_doctor.core.transport import Transport

logger = logging.getLogger(__name__)

SET_MODE_COST = 10.0  # seconds


@runtime_checkable
class Action(Protocol):
    """Anything the engine can propose, score, guard and run."""

    def name(self) -> str: ...

    def cost(self) -> float: ...

    def can_apply(self, state: DeviceState) -> bool: ...

    def apply(self, ctx: CallContext, transport: Transport, serial: str) -> None: ...


@dataclass(frozen=True)
class SetModeAction:
    target: Mode

    def name(self) -> str:
        return f"set_mode_{self.target.value}"

    def cost(self) -> float:
        return SET_MODE_COST

    def can_apply(self, state: DeviceState) -> bool:
        if self.target is Mode.SAFE_MODE:
            return state.mode in (Mode.ADB, Mode.RECOVERY)
        return state.mode is not Mode.UNKNOWN

    def apply(self, ctx: CallContext, transport: Transport, serial: str) -> None:
        """Run the transition. Raises TransportError (or a subclass) on failure.

        The device state is not touched; capture again to see the new mode.
        """
        strategy = _STRATEGIES.get(self.target)
        if strategy is None:
            raise UnknownModeError(
                self.target, f"unknown target mode: {self.target}"
            )
        strategy(ctx, transport, serial)


def _first_success(*attempts: Callable[[], object]) -> None:
    """Run attempts in order until one succeeds; re-raise the last failure.

    A cancellation stops the chain immediately.
    """
    last: Optional[TransportError] = None
    for attempt in attempts:
        try:
            attempt()
            return
        except CommandCancelledError:
            raise
        except TransportError as e:
            logger.debug("attempt failed, trying fallback: %s", e)
            last = e
    if last is not None:
        raise last


def _to_adb(ctx: CallContext, t: Transport, serial: str) -> None:
    _first_success(
        lambda: t.fastboot(ctx, serial, "reboot"),
        lambda: t.adb(ctx, serial, "reboot"),
    )


def _to_fastboot(ctx: CallContext, t: Transport, serial: str) -> None:
    t.adb(ctx, serial, "reboot", "bootloader")


def _to_recovery(ctx: CallContext, t: Transport, serial: str) -> None:
    _first_success(
        lambda: t.adb(ctx, serial, "reboot", "recovery"),
        lambda: t.fastboot(ctx, serial, "reboot", "recovery"),
    )


def _to_safe_mode(ctx: CallContext, t: Transport, serial: str) -> None:
    # The flag must stick before rebooting; a failed setprop aborts.
    t.adb(ctx, serial, "shell", "setprop", "persist.sys.safemode", "1")
    t.adb(ctx, serial, "reboot")


_STRATEGIES: dict[Mode, Callable[[CallContext, Transport, str], None]] = {
    Mode.ADB: _to_adb,
    Mode.FASTBOOT: _to_fastboot,
    Mode.RECOVERY: _to_recovery,
    Mode.SAFE_MODE: _to_safe_mode,
}

_MODE_ALIASES = {
    "adb": Mode.ADB,
    "fastboot": Mode.FASTBOOT,
    "bootloader": Mode.FASTBOOT,
    "recovery": Mode.RECOVERY,
    "safemode": Mode.SAFE_MODE,
    "safe": Mode.SAFE_MODE,
    "safe-mode": Mode.SAFE_MODE,
}


def parse_mode(value: str) -> Mode:
    """Normalize a user-supplied mode name. Raises UnknownModeError."""
    key = value.strip().lower()
    try:
        return _MODE_ALIASES[key]
    except KeyError:
        raise UnknownModeError(value) from None
