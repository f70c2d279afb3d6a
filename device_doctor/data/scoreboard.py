"""Scoreboard: learned action weights, JSON at ~/.device-doctor/scoreboard.json."""

from __future__ import annotations

import json
import logging
import math
import os
import random
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from device_doctor.core.errors import PersistenceError

logger = logging.getLogger(__name__)

_DEFAULT_PATH = os.path.join(
    str(Path.home()), ".device-doctor", "scoreboard.json"
)

SCORE_MIN = -20.0
SCORE_MAX = 50.0
SUCCESS_REWARD = 1.0
FAILURE_PENALTY = 0.25
MULTIPLIER_MIN = 0.3
MULTIPLIER_MAX = 3.0

PathLike = Union[str, "os.PathLike[str]"]


def default_scoreboard_path() -> str:
    return _DEFAULT_PATH


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def score_multiplier(score: float) -> float:
    """Map a learned score onto a selection multiplier in [0.3, 3.0]."""
    return _clamp(1.0 + score / 10.0, MULTIPLIER_MIN, MULTIPLIER_MAX)


def weighted_index(weights: Sequence[float], draw: float) -> int:
    """Roulette selection over ``weights`` with ``draw`` in [0, 1).

    Negative weights count as zero. When nothing carries weight the
    answer is 0.
    """
    weights = [max(0.0, w) for w in weights]
    total = sum(weights)
    if total <= 0:
        return 0
    target = draw * total
    acc = 0.0
    for i, w in enumerate(weights):
        acc += w
        if acc >= target:
            return i
    return len(weights) - 1


class Scoreboard:
    """Per-process copy of the learned action scores.

    Concurrent processes each save their own copy; the last save wins.
    """

    def __init__(
        self,
        scores: Optional[dict[str, float]] = None,
        rng: Optional[random.Random] = None,
    ):
        self._lock = threading.Lock()
        self._scores: dict[str, float] = {
            k: _clamp(float(v), SCORE_MIN, SCORE_MAX)
            for k, v in (scores or {}).items()
        }
        self._rng = rng or random.Random()

    def get(self, action: str) -> float:
        with self._lock:
            return self._scores.get(action, 0.0)

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            return dict(self._scores)

    def update(self, action: str, success: bool) -> float:
        """Reward a success by +1.0, penalize a failure by 0.25. Returns the new score."""
        with self._lock:
            value = self._scores.get(action, 0.0)
            value += SUCCESS_REWARD if success else -FAILURE_PENALTY
            value = _clamp(value, SCORE_MIN, SCORE_MAX)
            self._scores[action] = value
            return value

    def pick(
        self,
        keys: Sequence[str],
        base_weight: Callable[[int], float],
        draw: Optional[float] = None,
    ) -> int:
        """Choose an index into ``keys``, biased by learned scores.

        ``base_weight(i)`` should be non-negative. ``draw`` fixes the
        random value in [0, 1); by default it comes from the board's rng.
        """
        snap = self.snapshot()
        weights = [
            base_weight(i) * score_multiplier(snap.get(key, 0.0))
            for i, key in enumerate(keys)
        ]
        if draw is None:
            draw = self._rng.random()
        return weighted_index(weights, draw)

    def top(self, n: int = 0) -> list[tuple[str, float]]:
        """(action, score) pairs, best first. ``n <= 0`` returns all."""
        rows = sorted(self.snapshot().items(), key=lambda kv: kv[1], reverse=True)
        if n > 0:
            return rows[:n]
        return rows

    # ── Persistence ──────────────────────────────────────────────────

    def load(self, path: PathLike) -> None:
        """Replace the in-memory scores with the file's.

        Raises PersistenceError on a missing or corrupt file, leaving the
        current scores untouched.
        """
        try:
            raw = Path(path).read_text()
        except OSError as e:
            raise PersistenceError(path, f"cannot read scoreboard: {e}") from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise PersistenceError(path, f"corrupt scoreboard: {e}") from e

        scores = _parse_scores(path, data)
        with self._lock:
            self._scores = scores

    def save(self, path: PathLike) -> None:
        """Write ``{"scores": {...}}``. Only the scores field survives."""
        payload = {"scores": self.snapshot()}
        try:
            p = Path(path)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(json.dumps(payload, indent=2, sort_keys=True))
        except OSError as e:
            raise PersistenceError(path, f"cannot write scoreboard: {e}") from e


def _parse_scores(path: PathLike, data: object) -> dict[str, float]:
    if not isinstance(data, dict):
        raise PersistenceError(path, "corrupt scoreboard: expected a JSON object")
    raw_scores = data.get("scores")
    if raw_scores is None:
        raw_scores = {}
    if not isinstance(raw_scores, dict):
        raise PersistenceError(path, "corrupt scoreboard: 'scores' must be an object")

    scores: dict[str, float] = {}
    for key, value in raw_scores.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PersistenceError(
                path, f"corrupt scoreboard: score for {key!r} is not a number"
            )
        value = float(value)
        if not math.isfinite(value):
            raise PersistenceError(
                path, f"corrupt scoreboard: score for {key!r} is not finite"
            )
        scores[key] = _clamp(value, SCORE_MIN, SCORE_MAX)
    return scores
