"""Runtime configuration, resolved once at startup and passed to the engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from device_doctor.data.scoreboard import default_scoreboard_path

DEFAULT_TIMEOUT = 60.0

ENV_SCOREBOARD = "DEVICE_DOCTOR_SCOREBOARD"
ENV_ADB = "DEVICE_DOCTOR_ADB"
ENV_FASTBOOT = "DEVICE_DOCTOR_FASTBOOT"


@dataclass
class DoctorConfig:
    scoreboard_path: str = field(default_factory=default_scoreboard_path)
    adb_path: str = "adb"
    fastboot_path: str = "fastboot"
    learning: bool = True  # weighted pick; False always takes the first action
    timeout: float = DEFAULT_TIMEOUT
    verbose: bool = False


def _resolve(flag: Optional[str], env_var: str, default: str) -> str:
    """CLI flag, then env var, then default."""
    if flag:
        return flag
    env_value = os.environ.get(env_var)
    if env_value:
        return env_value
    return default


def resolve_config(
    scoreboard_path: Optional[str] = None,
    adb_path: Optional[str] = None,
    fastboot_path: Optional[str] = None,
    learning: bool = True,
    timeout: Optional[float] = None,
    verbose: bool = False,
) -> DoctorConfig:
    return DoctorConfig(
        scoreboard_path=_resolve(
            scoreboard_path, ENV_SCOREBOARD, default_scoreboard_path()
        ),
        adb_path=_resolve(adb_path, ENV_ADB, "adb"),
        fastboot_path=_resolve(fastboot_path, ENV_FASTBOOT, "fastboot"),
        learning=learning,
        timeout=timeout if timeout is not None else DEFAULT_TIMEOUT,
        verbose=verbose,
    )
