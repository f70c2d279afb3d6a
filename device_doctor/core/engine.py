"""Diagnosis engine: rules in, ranked findings out, one learned fix applied."""

from __future__ import annotations

import logging
from typing import Optional

from device_doctor.core.actions import Action, SetModeAction
from device_doctor.core.config import DoctorConfig
from device_doctor.core.context import CallContext
from device_doctor.core.errors import (
    CommandCancelledError,
    DeviceDoctorError,
    PersistenceError,
    UnsupportedTransitionError,
)
from device_doctor.core.models import DeviceState, Diagnosis, FixResult, Mode, Severity
from device_doctor.core.rules import Rule, default_rules
from device_doctor.core.state import collect_state
from device_doctor.core.transport import Transport
from device_doctor.data.scoreboard import Scoreboard

logger = logging.getLogger(__name__)


def sort_diagnoses(diagnoses: list[Diagnosis]) -> list[Diagnosis]:
    """Severity descending, then more candidate actions first.

    Stable, so full ties keep rule registration order.
    """
    return sorted(diagnoses, key=lambda d: (-int(d.severity), -len(d.actions)))


def cost_weight(action: Action) -> float:
    """Base selection weight: cheaper actions weigh slightly more, in (0, 1]."""
    cost = action.cost()
    if cost <= 0:
        return 1.0
    return 1.0 / (1.0 + cost)


class DiagnosisEngine:
    """Runs the rule set against a DeviceState and drives remediation."""

    def __init__(
        self,
        transport: Transport,
        config: Optional[DoctorConfig] = None,
        scoreboard: Optional[Scoreboard] = None,
        rules: Optional[list[Rule]] = None,
    ):
        self.transport = transport
        self.config = config or DoctorConfig()
        self.scoreboard = scoreboard if scoreboard is not None else Scoreboard()
        self.rules = rules if rules is not None else default_rules()

    def collect_state(self, ctx: CallContext, serial: str) -> DeviceState:
        return collect_state(ctx, self.transport, serial)

    def diagnose(self, state: DeviceState) -> list[Diagnosis]:
        found = []
        for rule in self.rules:
            diagnosis = rule.match(state)
            if diagnosis is not None:
                found.append(diagnosis)
        return sort_diagnoses(found)

    def choose_action(self, diagnosis: Diagnosis) -> Action:
        actions = diagnosis.actions
        if not self.config.learning:
            return actions[0]
        idx = self.scoreboard.pick(
            [a.name() for a in actions],
            lambda i: cost_weight(actions[i]),
        )
        return actions[idx]

    def auto_fix(self, ctx: CallContext, serial: str, state: DeviceState) -> FixResult:
        """Diagnose, pick one remedy for the top finding, apply it, learn.

        Device failures are returned in ``FixResult.error``. A cancellation
        is recorded like any failure and then re-raised.
        """
        diagnoses = self.diagnose(state)
        if not diagnoses:
            return FixResult(
                diagnosis=Diagnosis(
                    name="ok",
                    severity=Severity.INFO,
                    message="No issues detected",
                )
            )

        top = diagnoses[0]
        if not top.actions:
            return FixResult(diagnosis=top)

        chosen = self.choose_action(top)
        if not chosen.can_apply(state):
            return FixResult(
                diagnosis=top,
                action=chosen,
                error=UnsupportedTransitionError(chosen.name(), state.mode),
            )

        logger.info("applying %s to %s (%s)", chosen.name(), serial, state.mode)
        error: Optional[DeviceDoctorError] = None
        try:
            chosen.apply(ctx, self.transport, serial)
        except DeviceDoctorError as e:
            error = e
            if getattr(e, "output", ""):
                logger.debug("captured output:\n%s", e.output)

        self.scoreboard.update(chosen.name(), error is None)
        save_error = self.save_scoreboard()

        if isinstance(error, CommandCancelledError):
            raise error
        return FixResult(
            diagnosis=top, action=chosen, error=error, save_error=save_error
        )

    def set_mode(
        self, ctx: CallContext, serial: str, state: DeviceState, target: Mode
    ) -> SetModeAction:
        """Apply a requested transition directly. Not scored."""
        action = SetModeAction(target)
        if not action.can_apply(state):
            raise UnsupportedTransitionError(action.name(), state.mode)
        action.apply(ctx, self.transport, serial)
        return action

    # ── Scoreboard persistence ───────────────────────────────────────

    def load_scoreboard(self) -> Optional[PersistenceError]:
        try:
            self.scoreboard.load(self.config.scoreboard_path)
        except PersistenceError as e:
            logger.debug("scoreboard not loaded: %s", e)
            return e
        return None

    def save_scoreboard(self) -> Optional[PersistenceError]:
        try:
            self.scoreboard.save(self.config.scoreboard_path)
        except PersistenceError as e:
            logger.warning("failed to save scoreboard: %s", e)
            return e
        return None
