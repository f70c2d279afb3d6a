"""CLI entry point for device-doctor."""

from __future__ import annotations

import logging
import signal
import threading
from dataclasses import dataclass
from functools import partial
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

import device_doctor
from device_doctor.core.actions import parse_mode
from device_doctor.core.config import DoctorConfig, resolve_config
from device_doctor.core.context import CallContext
from device_doctor.core.engine import DiagnosisEngine
from device_doctor.core.errors import (
    CommandCancelledError,
    DeviceDoctorError,
    NoDevicesError,
    TransportError,
    UnknownModeError,
    UnsupportedTransitionError,
)
from device_doctor.core.models import Severity
from device_doctor.core.transport import CommandTransport

app = typer.Typer(
    name="device-doctor",
    help="Diagnose adb/fastboot device state and apply a learned fix.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

_SEVERITY_STYLE = {
    Severity.INFO: "green",
    Severity.WARN: "yellow",
    Severity.ERROR: "red",
}


@dataclass
class _Session:
    config: DoctorConfig
    serial: Optional[str]
    engine: DiagnosisEngine
    ctx: CallContext


def _configure_logging(verbose: bool) -> None:
    pkg_logger = logging.getLogger("device_doctor")
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in pkg_logger.handlers):
        pkg_logger.addHandler(RichHandler(console=err_console, show_path=False))


def _cancel_on_signals(ctx: typer.Context, call_ctx: CallContext) -> None:
    """Turn SIGINT/SIGTERM into ``call_ctx.cancel()`` until ``ctx`` closes."""
    if threading.current_thread() is not threading.main_thread():
        return

    def _handler(signum, frame):
        call_ctx.cancel()

    for signum in (signal.SIGINT, signal.SIGTERM):
        previous = signal.signal(signum, _handler)
        if previous is None:
            previous = signal.SIG_DFL
        ctx.call_on_close(partial(signal.signal, signum, previous))


@app.callback()
def main(
    ctx: typer.Context,
    serial: Optional[str] = typer.Option(
        None, "--serial", "-s", help="Target a specific device serial"
    ),
    adb: Optional[str] = typer.Option(
        None, "--adb", help="Path to adb binary (default: adb)"
    ),
    fastboot: Optional[str] = typer.Option(
        None, "--fastboot", help="Path to fastboot binary (default: fastboot)"
    ),
    scoredb: Optional[str] = typer.Option(
        None, "--scoredb",
        help="Path to scoreboard.json (default: ~/.device-doctor/scoreboard.json)",
    ),
    timeout: float = typer.Option(
        60.0, "--timeout", help="Overall command timeout in seconds"
    ),
    no_auto: bool = typer.Option(
        False, "--no-auto", help="Disable learned scoring (pick first action)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Diagnose adb/fastboot device state and apply a learned fix."""
    _configure_logging(verbose)
    config = resolve_config(
        scoreboard_path=scoredb,
        adb_path=adb,
        fastboot_path=fastboot,
        learning=not no_auto,
        timeout=timeout,
        verbose=verbose,
    )
    transport = CommandTransport(config.adb_path, config.fastboot_path)
    engine = DiagnosisEngine(transport, config=config)
    engine.load_scoreboard()
    call_ctx = CallContext(timeout=config.timeout)
    _cancel_on_signals(ctx, call_ctx)
    ctx.obj = _Session(
        config=config,
        serial=(serial or "").strip() or None,
        engine=engine,
        ctx=call_ctx,
    )


def _session(ctx: typer.Context) -> _Session:
    return ctx.obj


def _list_devices(session: _Session) -> list[str]:
    try:
        return session.engine.transport.list_devices(session.ctx)
    except CommandCancelledError as e:
        raise _interrupted(e)
    except (NoDevicesError, TransportError) as e:
        err_console.print(f"[red]devices: {escape(str(e))}[/]")
        raise typer.Exit(1)


def _resolve_serial(session: _Session) -> str:
    """Explicit serial, or the first detected device."""
    if session.serial:
        return session.serial
    serials = _list_devices(session)
    if session.config.verbose:
        err_console.print(f"[dim]using device: {serials[0]}[/]")
    return serials[0]


def _interrupted(e: BaseException) -> typer.Exit:
    err_console.print(f"[red]interrupted: {escape(str(e))}[/]")
    return typer.Exit(130)


@app.command()
def devices(ctx: typer.Context) -> None:
    """List serials visible to adb or fastboot."""
    for serial in _list_devices(_session(ctx)):
        console.print(serial)


@app.command()
def state(ctx: typer.Context) -> None:
    """Capture and show the device state."""
    session = _session(ctx)
    serial = _resolve_serial(session)
    try:
        snapshot = session.engine.collect_state(session.ctx, serial)
    except CommandCancelledError as e:
        raise _interrupted(e)

    table = Table(title=f"Device {snapshot.serial}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Mode", str(snapshot.mode))
    table.add_row(
        "Battery", f"{snapshot.battery}%" if snapshot.battery >= 0 else "unknown"
    )
    for key, value in sorted(snapshot.properties.items()):
        table.add_row(key, value)
    console.print(table)

    if snapshot.errors:
        console.print("\n[bold]Probe errors:[/]")
        for err in snapshot.errors:
            console.print(f"  {escape(err)}")


@app.command()
def diagnose(ctx: typer.Context) -> None:
    """Show every finding for the device without acting on it."""
    session = _session(ctx)
    serial = _resolve_serial(session)
    try:
        snapshot = session.engine.collect_state(session.ctx, serial)
    except CommandCancelledError as e:
        raise _interrupted(e)

    diagnoses = session.engine.diagnose(snapshot)
    if not diagnoses:
        console.print("[green]No issues detected[/]")
        return

    table = Table(title="Diagnoses")
    table.add_column("Name", style="cyan")
    table.add_column("Severity")
    table.add_column("Message")
    table.add_column("Actions")
    for d in diagnoses:
        style = _SEVERITY_STYLE[d.severity]
        table.add_row(
            d.name,
            f"[{style}]{str(d.severity)}[/]",
            d.message,
            ", ".join(a.name() for a in d.actions) or "-",
        )
    console.print(table)


@app.command("auto-fix")
def auto_fix(ctx: typer.Context) -> None:
    """Diagnose the device and execute the best-scoring action."""
    session = _session(ctx)
    serial = _resolve_serial(session)
    try:
        snapshot = session.engine.collect_state(session.ctx, serial)
        result = session.engine.auto_fix(session.ctx, serial, snapshot)
    except CommandCancelledError as e:
        raise _interrupted(e)

    d = result.diagnosis
    style = _SEVERITY_STYLE[d.severity]
    console.print(f"diagnosis: {d.name} ([{style}]{str(d.severity)}[/])")
    console.print(f"message: {escape(d.message)}")

    if result.action is None:
        console.print("action: (none)")
    else:
        console.print(f"action: {result.action.name()}")

    if result.save_error is not None:
        err_console.print(f"[yellow]scoreboard: {escape(str(result.save_error))}[/]")

    if result.error is not None:
        err_console.print(f"[red]failed: {escape(str(result.error))}[/]")
        raise typer.Exit(1)

    session.engine.save_scoreboard()
    if result.action is not None:
        console.print("[green][+] done[/]")


@app.command("set-mode")
def set_mode(
    ctx: typer.Context,
    mode: str = typer.Argument(..., help="Target mode: adb|fastboot|recovery|safemode"),
) -> None:
    """Move the device to the given mode."""
    session = _session(ctx)
    try:
        target = parse_mode(mode)
    except UnknownModeError as e:
        err_console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(2)

    serial = _resolve_serial(session)
    try:
        snapshot = session.engine.collect_state(session.ctx, serial)
        console.print(f"[+] set_mode_{target} ({snapshot.mode} -> {target})")
        session.engine.set_mode(session.ctx, serial, snapshot, target)
    except CommandCancelledError as e:
        raise _interrupted(e)
    except UnsupportedTransitionError as e:
        err_console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)
    except DeviceDoctorError as e:
        err_console.print(f"[red]failed: {escape(str(e))}[/]")
        raise typer.Exit(1)

    console.print("[green][+] done[/]")
    session.engine.save_scoreboard()


@app.command()
def top(
    ctx: typer.Context,
    n: int = typer.Argument(0, help="How many rows (0 = all)"),
) -> None:
    """Print the learned action scores, best first."""
    session = _session(ctx)
    rows = session.engine.scoreboard.top(n)
    if not rows:
        console.print("[yellow]No learned scores yet.[/]")
        return
    for action, score in rows:
        console.print(f"{escape(action)}\t{score:.2f}")


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"device-doctor {device_doctor.__version__}")


if __name__ == "__main__":
    app()
