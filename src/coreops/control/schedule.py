# ──────────────────────────────────────────────────────────────────────
# CoreOps — Time Step Schedule
# © 1998–2026 Miroslav Šotek. All rights reserved.
# Contact: www.anulum.li | protoscience@anulum.li
# ORCID: https://orcid.org/0009-0009-3560-0851
# License: GNU AGPL v3 | Commercial licensing available
# ──────────────────────────────────────────────────────────────────────
"""Finite, ordered sequence of (elapsed, duration) pairs for a transient."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple

import numpy as np

from coreops.core.errors import ConfigurationError, SequenceExhausted

# Relative slack on the step size when deciding whether time remains.
STEP_TOLERANCE = 1e-9


class TimeStepSchedule:
    """Time points of a transient, computed from an integer step index.

    Elapsed times are never accumulated: step ``k`` ends at
    ``min(k * step, total)`` (or at the k-th breakpoint for variable steps),
    so the durations always telescope to ``total_duration`` exactly.
    """

    def __init__(self, total_duration: Optional[float] = None, step_duration: Optional[float] = None) -> None:
        self._breakpoints: Optional[np.ndarray] = None
        self._total = 0.0
        self._step = 0.0
        self._index = 0
        if total_duration is not None or step_duration is not None:
            if total_duration is None or step_duration is None:
                raise ConfigurationError("total_duration and step_duration must be given together.")
            self.configure(total_duration, step_duration)

    @classmethod
    def from_durations(cls, durations: Iterable[float]) -> "TimeStepSchedule":
        steps = [float(d) for d in durations]
        if not steps:
            raise ConfigurationError("at least one step duration is required.")
        for d in steps:
            if not math.isfinite(d) or d <= 0.0:
                raise ConfigurationError("step durations must be finite and > 0.")
        sched = cls()
        sched._breakpoints = np.cumsum(np.asarray(steps, dtype=np.float64))
        sched._total = float(sched._breakpoints[-1])
        sched._step = min(steps)
        sched._index = 0
        return sched

    def configure(self, total_duration: float, step_duration: float) -> None:
        total = float(total_duration)
        step = float(step_duration)
        if not math.isfinite(step) or step <= 0.0:
            raise ConfigurationError("step_duration must be finite and > 0.")
        if not math.isfinite(total) or total <= 0.0:
            raise ConfigurationError("total_duration must be finite and > 0.")
        self._breakpoints = None
        self._total = total
        self._step = step
        self._index = 0

    @property
    def configured(self) -> bool:
        return self._total > 0.0

    @property
    def total_duration(self) -> float:
        return self._total

    @property
    def step_duration(self) -> float:
        return self._step

    @property
    def step_count(self) -> int:
        if self._breakpoints is not None:
            return int(self._breakpoints.size)
        if not self.configured:
            return 0
        return int(math.ceil(self._total / self._step - STEP_TOLERANCE))

    @property
    def elapsed(self) -> float:
        return self._time_at(self._index)

    @property
    def remaining(self) -> float:
        return self._total - self.elapsed

    def _time_at(self, index: int) -> float:
        if index <= 0:
            return 0.0
        if self._breakpoints is not None:
            return float(self._breakpoints[min(index, self._breakpoints.size) - 1])
        if index >= self.step_count:
            return self._total
        return min(index * self._step, self._total)

    def has_next(self) -> bool:
        if not self.configured:
            return False
        return self.elapsed < self._total - STEP_TOLERANCE * self._step

    def peek(self) -> Tuple[float, float]:
        """Return the next (elapsed, duration) pair without consuming it."""
        if not self.has_next():
            raise SequenceExhausted(
                f"schedule exhausted at t={self.elapsed:g}s of {self._total:g}s"
            )
        start = self._time_at(self._index)
        end = self._time_at(self._index + 1)
        return end, end - start

    def advance(self) -> Tuple[float, float]:
        pair = self.peek()
        self._index += 1
        return pair

    def reset(self) -> None:
        self._index = 0

    def durations(self) -> List[float]:
        """All step durations of the configured schedule."""
        times = [self._time_at(k) for k in range(self.step_count + 1)]
        return [b - a for a, b in zip(times[:-1], times[1:])]

    def __iter__(self):
        while self.has_next():
            yield self.advance()


def is_whole_multiple(value: float, step: float) -> bool:
    """True when ``value`` is an integer number of ``step`` within tolerance."""
    ratio = float(value) / float(step)
    return abs(ratio - round(ratio)) <= STEP_TOLERANCE * max(1.0, abs(ratio)) and round(ratio) >= 1

