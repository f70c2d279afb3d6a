"""Transport: runs adb/fastboot and returns their combined output."""

from __future__ import annotations

import logging
import subprocess
import time
from typing import Protocol

from device_doctor.core.context import CallContext
from device_doctor.core.errors import (
    CommandCancelledError,
    CommandTimeoutError,
    NoDevicesError,
    TransportError,
)

logger = logging.getLogger(__name__)

LIST_TIMEOUT = 6.0
ADB_TIMEOUT = 20.0
FASTBOOT_TIMEOUT = 30.0

# How often a running command checks its context for cancellation.
POLL_INTERVAL = 0.1


class Transport(Protocol):
    """Device command execution, as consumed by the engine and actions."""

    def list_devices(self, ctx: CallContext) -> list[str]: ...

    def adb(self, ctx: CallContext, serial: str, *args: str) -> str: ...

    def fastboot(self, ctx: CallContext, serial: str, *args: str) -> str: ...


class CommandTransport:
    """Shells out to the adb and fastboot binaries."""

    def __init__(
        self,
        adb_path: str = "adb",
        fastboot_path: str = "fastboot",
        adb_timeout: float = ADB_TIMEOUT,
        fastboot_timeout: float = FASTBOOT_TIMEOUT,
        list_timeout: float = LIST_TIMEOUT,
    ):
        self.adb_path = adb_path or "adb"
        self.fastboot_path = fastboot_path or "fastboot"
        self.adb_timeout = adb_timeout
        self.fastboot_timeout = fastboot_timeout
        self.list_timeout = list_timeout

    def list_devices(self, ctx: CallContext) -> list[str]:
        """Serials seen by either adb or fastboot, sorted."""
        serials: set[str] = set()
        for binary in (self.adb_path, self.fastboot_path):
            try:
                out = self._run(ctx, self.list_timeout, [binary, "devices"])
            except CommandCancelledError:
                raise
            except TransportError as e:
                if isinstance(e, CommandTimeoutError) and ctx.expired():
                    raise
                logger.debug("%s devices failed: %s", binary, e)
                continue
            serials.update(parse_device_list(out))
        if not serials:
            raise NoDevicesError()
        return sorted(serials)

    def adb(self, ctx: CallContext, serial: str, *args: str) -> str:
        return self._run(
            ctx, self.adb_timeout, [self.adb_path, *_serial_args(serial), *args]
        )

    def fastboot(self, ctx: CallContext, serial: str, *args: str) -> str:
        return self._run(
            ctx,
            self.fastboot_timeout,
            [self.fastboot_path, *_serial_args(serial), *args],
        )

    def _run(self, ctx: CallContext, timeout: float, argv: list[str]) -> str:
        ctx.check(argv)
        command_line = " ".join(argv)
        deadline = time.monotonic() + ctx.bound(timeout)

        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError:
            raise TransportError(argv, f"missing binary: {argv[0]}", exit_code=127)
        except OSError as e:
            raise TransportError(argv, f"cannot run {argv[0]}: {e}")

        while True:
            if ctx.cancelled:
                output = _kill(proc)
                raise CommandCancelledError(
                    argv, f"cancelled: {command_line}", output=output
                )
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                output = _kill(proc)
                logger.debug("timeout: %s\n%s", command_line, output)
                raise CommandTimeoutError(
                    argv, f"timed out: {command_line}", output=output
                )
            try:
                output, _ = proc.communicate(timeout=min(POLL_INTERVAL, remaining))
                break
            except subprocess.TimeoutExpired:
                continue

        output = output or ""
        if proc.returncode != 0:
            logger.debug(
                "%s exited %s\n%s", command_line, proc.returncode, output
            )
            raise TransportError(
                argv,
                f"{command_line} failed: exit status {proc.returncode}\n{output}".rstrip(),
                output=output,
                exit_code=proc.returncode,
            )
        return output


def _serial_args(serial: str) -> list[str]:
    return ["-s", serial] if serial else []


def _kill(proc: subprocess.Popen) -> str:
    proc.kill()
    output, _ = proc.communicate()
    return output or ""


def parse_device_list(out: str) -> list[str]:
    """Pull serials out of ``adb devices`` / ``fastboot devices`` output."""
    serials = []
    for line in out.splitlines():
        line = line.strip()
        if not line or line.startswith("List of devices") or line.startswith("*"):
            continue
        serial = line.split()[0]
        if serial.lower() == "device":
            continue
        serials.append(serial)
    return serials
