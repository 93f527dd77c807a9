"""Cooperative scheduling and wall-clock budget for long running builders."""

from __future__ import annotations

import time
from typing import Callable

from ...config import settings
from ...exceptions import BuildTimeoutError


class Checkpoint:
    """Yield control every ``yield_every`` steps and enforce an optional time budget."""

    def __init__(
        self,
        *,
        yield_every: int | None = None,
        time_budget_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.yield_every = yield_every or settings.cooperative_yield_every
        self.time_budget_seconds = time_budget_seconds
        self._clock = clock
        self.steps = 0
        self._deadline: float | None = None

    def start(self) -> None:
        self.steps = 0
        if self.time_budget_seconds is not None:
            self._deadline = self._clock() + self.time_budget_seconds

    def tick(self) -> None:
        self.steps += 1
        if self.steps % self.yield_every:
            return
        time.sleep(0)
        if self._deadline is not None and self._clock() > self._deadline:
            raise BuildTimeoutError(
                f"Time budget of {self.time_budget_seconds}s exhausted after {self.steps} steps."
            )
