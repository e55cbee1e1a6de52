"""
Readiness data model.

Probe results, verdicts and the session report. Everything here is
immutable once produced except the SessionReport, which is filled by the
session under its own lock and frozen when every target has terminated.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProbeKind(str, Enum):
    """Capability tag of a probe."""

    CONTAINER_STATE = "container-state"
    TCP_REACHABILITY = "tcp-reachability"
    HTTP_STATUS = "http-status"
    AUTHENTICATED_API = "authenticated-api"
    LOG_SCAN = "log-scan"
    COMMAND = "command"


# Kinds that prove the service itself answers, not just the process or socket
FUNCTIONAL_KINDS = frozenset(
    {
        ProbeKind.HTTP_STATUS,
        ProbeKind.AUTHENTICATED_API,
        ProbeKind.LOG_SCAN,
        ProbeKind.COMMAND,
    }
)


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NOT_APPLICABLE = "not_applicable"


class Verdict(str, Enum):
    """Tri-state readiness of one target at one point in time."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    INDETERMINATE = "indeterminate"


class TerminalState(str, Enum):
    """Final state of a target's poll loop."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single probe invocation."""

    probe: str
    kind: ProbeKind
    outcome: Outcome
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    # Explicit negative signal (exited container, rejected credentials)
    hard: bool = False
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome == Outcome.FAILURE

    def to_dict(self) -> dict[str, Any]:
        return {
            "probe": self.probe,
            "kind": self.kind.value,
            "outcome": self.outcome.value,
            "message": self.message,
            "hard": self.hard,
            "duration_seconds": round(self.duration, 3),
            "details": self.details,
        }


@dataclass(frozen=True)
class Assessment:
    """Aggregator output for one attempt."""

    verdict: Verdict
    reason: str
    fast_fail: bool = False


@dataclass(frozen=True)
class AttemptRecord:
    number: int
    verdict: Verdict
    reason: str
    elapsed: float


@dataclass(frozen=True)
class TargetResult:
    """Terminal outcome of one target's poll loop."""

    target: str
    state: TerminalState
    reason: str
    attempts: int
    elapsed: float
    # Results of the final attempt, in declared probe order
    results: tuple[ProbeResult, ...] = ()
    history: tuple[AttemptRecord, ...] = ()
    fast_fail: bool = False
    cancelled: bool = False

    @property
    def verdict(self) -> Verdict:
        """TimedOut is reported as Unhealthy."""
        if self.state == TerminalState.HEALTHY:
            return Verdict.HEALTHY
        return Verdict.UNHEALTHY

    @property
    def passed(self) -> bool:
        return self.state == TerminalState.HEALTHY

    @property
    def timed_out(self) -> bool:
        return self.state == TerminalState.TIMED_OUT

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "verdict": self.verdict.value,
            "state": self.state.value,
            "reason": self.reason,
            "fast_fail": self.fast_fail,
            "cancelled": self.cancelled,
            "attempts": self.attempts,
            "elapsed_seconds": round(self.elapsed, 3),
            "results": [r.to_dict() for r in self.results],
            "history": [
                {
                    "attempt": h.number,
                    "verdict": h.verdict.value,
                    "reason": h.reason,
                    "elapsed_seconds": round(h.elapsed, 3),
                }
                for h in self.history
            ],
        }


class SessionReport:
    """
    Per-target terminal results of one verification session.

    Target tasks finish concurrently, so writes go through ``record()``
    under a lock. ``freeze()`` is called once every target has terminated;
    later writes raise.
    """

    def __init__(self) -> None:
        self._results: dict[str, TargetResult] = {}
        self._skipped: list[str] = []
        self._lock = threading.Lock()
        self._frozen = False
        self.elapsed: float = 0.0

    def record(self, result: TargetResult) -> None:
        with self._lock:
            if self._frozen:
                raise RuntimeError("SessionReport is frozen")
            self._results[result.target] = result

    def skip(self, target: str) -> None:
        with self._lock:
            if self._frozen:
                raise RuntimeError("SessionReport is frozen")
            self._skipped.append(target)

    def freeze(self, elapsed: float) -> None:
        with self._lock:
            self.elapsed = elapsed
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def results(self) -> dict[str, TargetResult]:
        with self._lock:
            return dict(self._results)

    @property
    def skipped(self) -> list[str]:
        with self._lock:
            return list(self._skipped)

    def __getitem__(self, target: str) -> TargetResult:
        with self._lock:
            return self._results[target]

    def __contains__(self, target: object) -> bool:
        with self._lock:
            return target in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def passed(self) -> bool:
        """True if every verified target is Healthy."""
        return all(r.passed for r in self.results.values())

    @property
    def failures(self) -> list[TargetResult]:
        return [r for r in self.results.values() if not r.passed]

    def to_dict(self) -> dict[str, Any]:
        results = self.results
        return {
            "passed": self.passed,
            "elapsed_seconds": round(self.elapsed, 3),
            "summary": {
                "healthy": sum(1 for r in results.values() if r.passed),
                "unhealthy": sum(
                    1 for r in results.values()
                    if r.state == TerminalState.UNHEALTHY
                ),
                "timed_out": sum(1 for r in results.values() if r.timed_out),
                "skipped": len(self.skipped),
            },
            "targets": {name: r.to_dict() for name, r in results.items()},
            "skipped": self.skipped,
        }
