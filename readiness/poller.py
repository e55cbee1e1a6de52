"""
Retry/poll loop.

Drives probe-and-aggregate attempts for one target until a terminal state:

    Polling -> Healthy     aggregator says Healthy
    Polling -> Unhealthy   aggregator says Unhealthy (fast-fail, deadline ignored)
    Polling -> TimedOut    deadline elapsed, or the session was cancelled

Probes of one attempt run sequentially in declared order. The only blocking
points are the probes' own network calls and the inter-attempt wait, which
wakes early on cancellation.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from readiness.aggregator import aggregate
from readiness.core.exceptions import DeadlineExceededError
from readiness.core.logging import get_logger, target_var
from readiness.models import (
    AttemptRecord,
    ProbeResult,
    TargetResult,
    TerminalState,
    Verdict,
)
from readiness.probes import ProbeContext, execute_probe
from readiness.registry import Target

logger = get_logger("poller")

Clock = Callable[[], float]
# Waits up to the given seconds; returns True if woken by cancellation
Waiter = Callable[[float], bool]


@dataclass
class PollLoop:
    """
    Poll one target against its deadline.

    ``clock`` and ``wait`` default to the monotonic clock and the cancel
    event; tests inject a fake pair to run scenarios without sleeping.
    """

    target: Target
    context: ProbeContext
    deadline: float
    interval: float
    cancel_event: threading.Event = field(default_factory=threading.Event)
    clock: Clock = time.monotonic
    wait: Waiter | None = None

    def __post_init__(self) -> None:
        if self.wait is None:
            self.wait = self.cancel_event.wait

    def run_attempt(self) -> list[ProbeResult]:
        """Run every probe of the target once, in declared order."""
        return [execute_probe(probe, self.context) for probe in self.target.probes]

    def _pause(self, started: float) -> None:
        """Sleep until the next attempt or raise DeadlineExceededError."""
        elapsed = self.clock() - started
        remaining = self.deadline - elapsed
        if self.cancel_event.is_set():
            raise DeadlineExceededError(self.target.name, elapsed, cancelled=True)
        if remaining <= 0:
            raise DeadlineExceededError(self.target.name, elapsed)

        # Clip the last wait so one final attempt runs at the deadline
        if self.wait(min(self.interval, remaining)):
            raise DeadlineExceededError(
                self.target.name, self.clock() - started, cancelled=True
            )

    def run(self) -> TargetResult:
        token = target_var.set(self.target.name)
        try:
            return self._run()
        finally:
            target_var.reset(token)

    def _run(self) -> TargetResult:
        started = self.clock()
        history: list[AttemptRecord] = []
        results: list[ProbeResult] = []
        reason = "not attempted"
        attempt = 0

        logger.info(
            f"Polling {self.target.name} "
            f"(deadline {self.deadline:.0f}s, interval {self.interval:.1f}s)"
        )

        while True:
            if self.cancel_event.is_set():
                return self._timed_out(
                    started, attempt, results, history, reason, cancelled=True
                )

            attempt += 1
            results = self.run_attempt()
            assessment = aggregate(self.target, results)
            reason = assessment.reason
            elapsed = self.clock() - started
            history.append(
                AttemptRecord(attempt, assessment.verdict, assessment.reason, elapsed)
            )
            logger.info(
                f"Attempt {attempt}: {assessment.verdict.value} ({assessment.reason})"
            )

            if assessment.verdict == Verdict.HEALTHY:
                return self._terminal(
                    TerminalState.HEALTHY, assessment.reason, attempt, elapsed,
                    results, history,
                )

            if assessment.verdict == Verdict.UNHEALTHY:
                logger.warning(f"{self.target.name} unhealthy: {assessment.reason}")
                return self._terminal(
                    TerminalState.UNHEALTHY, assessment.reason, attempt, elapsed,
                    results, history, fast_fail=assessment.fast_fail,
                )

            try:
                self._pause(started)
            except DeadlineExceededError as e:
                logger.warning(e.message)
                return self._timed_out(
                    started, attempt, results, history, reason,
                    cancelled=e.cancelled,
                )

    def _timed_out(
        self,
        started: float,
        attempts: int,
        results: list[ProbeResult],
        history: list[AttemptRecord],
        last_reason: str,
        cancelled: bool = False,
    ) -> TargetResult:
        elapsed = self.clock() - started
        prefix = "cancelled" if cancelled else f"not ready after {elapsed:.0f}s"
        return self._terminal(
            TerminalState.TIMED_OUT, f"{prefix}: {last_reason}", attempts, elapsed,
            results, history, cancelled=cancelled,
        )

    def _terminal(
        self,
        state: TerminalState,
        reason: str,
        attempts: int,
        elapsed: float,
        results: list[ProbeResult],
        history: list[AttemptRecord],
        fast_fail: bool = False,
        cancelled: bool = False,
    ) -> TargetResult:
        return TargetResult(
            target=self.target.name,
            state=state,
            reason=reason,
            attempts=attempts,
            elapsed=elapsed,
            results=tuple(results),
            history=tuple(history),
            fast_fail=fast_fail,
            cancelled=cancelled,
        )
