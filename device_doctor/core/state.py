"""State capture: probes a device and builds a DeviceState snapshot."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from device_doctor.core.context import CallContext
from device_doctor.core.errors import CommandCancelledError, TransportError
from device_doctor.core.models import MODE_RANK, DeviceState, Mode
from device_doctor.core.transport import Transport

logger = logging.getLogger(__name__)

_BATTERY_LEVEL = re.compile(r"^\s*level\s*:\s*(\d+)\s*$", re.MULTILINE)


def parse_battery(output: str) -> int:
    """Extract ``level: N`` from ``dumpsys battery``; -1 if absent or out of range."""
    m = _BATTERY_LEVEL.search(output)
    if not m:
        return -1
    level = int(m.group(1))
    if level < 0 or level > 100:
        return -1
    return level


def upgrade_mode(current: Mode, candidate: Mode) -> Mode:
    """Keep the more specific of two determinations."""
    if MODE_RANK[candidate] > MODE_RANK[current]:
        return candidate
    return current


def collect_state(ctx: CallContext, transport: Transport, serial: str) -> DeviceState:
    """Probe adb first, then fastboot. Probe failures land in ``errors``.

    Cancellation is not a probe failure and propagates to the caller.
    """
    mode = Mode.UNKNOWN
    battery = -1
    props: dict[str, str] = {}
    errors: list[str] = []
    timestamp = datetime.now()

    try:
        out = transport.adb(ctx, serial, "get-state")
    except CommandCancelledError:
        raise
    except TransportError as e:
        errors.append(str(e))
    else:
        mode = upgrade_mode(mode, Mode.ADB)
        if "recovery" in out.strip().lower():
            mode = upgrade_mode(mode, Mode.RECOVERY)

        try:
            bootmode = transport.adb(ctx, serial, "shell", "getprop", "ro.bootmode")
        except CommandCancelledError:
            raise
        except TransportError as e:
            logger.debug("getprop ro.bootmode failed: %s", e)
        else:
            bootmode = bootmode.strip().lower()
            props["ro.bootmode"] = bootmode
            if "recovery" in bootmode:
                mode = upgrade_mode(mode, Mode.RECOVERY)
            if "safe" in bootmode:
                mode = upgrade_mode(mode, Mode.SAFE_MODE)

        try:
            battery = parse_battery(transport.adb(ctx, serial, "shell", "dumpsys", "battery"))
        except CommandCancelledError:
            raise
        except TransportError as e:
            logger.debug("dumpsys battery failed: %s", e)

        return _snapshot(serial, mode, battery, props, errors, timestamp)

    try:
        out = transport.fastboot(ctx, serial, "getvar", "product")
    except CommandCancelledError:
        raise
    except TransportError as e:
        errors.append(str(e))
    else:
        mode = upgrade_mode(mode, Mode.FASTBOOT)
        if out.strip():
            props["fastboot_product"] = out.strip()

    return _snapshot(serial, mode, battery, props, errors, timestamp)


def _snapshot(
    serial: str,
    mode: Mode,
    battery: int,
    props: dict[str, str],
    errors: list[str],
    timestamp: datetime,
) -> DeviceState:
    return DeviceState(
        serial=serial,
        mode=mode,
        battery=battery,
        properties=props,
        errors=tuple(errors),
        timestamp=timestamp,
    )
