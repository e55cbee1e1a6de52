"""
Probe base class and the probe boundary.

A probe is an immutable declaration (what to check and with which
parameters) plus a ``run`` method performing exactly one network or runtime
call sequence. ``execute_probe`` is the boundary every invocation goes
through: whatever a probe raises comes back as a Failure result.
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from readiness.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ReadinessError,
    TransportError,
)
from readiness.core.logging import get_logger
from readiness.models import Outcome, ProbeKind, ProbeResult

if TYPE_CHECKING:
    from readiness.runtime import ContainerRuntime

logger = get_logger("probes")


@dataclass(frozen=True)
class ProbeContext:
    """
    Per-target inputs shared by the probes of one target.

    ``runtime`` and ``http`` are session-wide handles; probes only read
    through them. ``runtime`` is None when the container runtime could not
    be reached at session start.
    """

    target: str
    host: str
    container: str
    runtime: "ContainerRuntime | None" = None
    http: httpx.Client | None = None
    tcp_timeout: float = 2.0
    http_timeout: float = 10.0
    good_indicators: tuple[str, ...] = ()
    bad_indicators: tuple[str, ...] = ()

    def require_runtime(self) -> "ContainerRuntime":
        if self.runtime is None:
            raise TransportError("Container runtime unavailable")
        return self.runtime

    def require_http(self) -> httpx.Client:
        if self.http is None:
            raise TransportError("HTTP client unavailable")
        return self.http

    def render(self, template: str) -> str:
        """Substitute ``{host}`` in a URL template."""
        return template.replace("{host}", self.host)


@dataclass(frozen=True, kw_only=True)
class Probe:
    """Base class for all probe declarations."""

    kind: ClassVar[ProbeKind]

    name: str = ""

    @property
    def label(self) -> str:
        return self.name or f"{self.kind.value}:{self.describe()}"

    def describe(self) -> str:
        """Short parameter summary used in default labels."""
        return ""

    def validate(self) -> None:
        """Raise ConfigurationError on missing or contradictory parameters."""

    def run(self, ctx: ProbeContext) -> ProbeResult:
        raise NotImplementedError

    # Result helpers

    def success(self, message: str, **details: Any) -> ProbeResult:
        return ProbeResult(self.label, self.kind, Outcome.SUCCESS, message, details)

    def failure(self, message: str, hard: bool = False, **details: Any) -> ProbeResult:
        return ProbeResult(
            self.label, self.kind, Outcome.FAILURE, message, details, hard=hard
        )

    def not_applicable(self, message: str, **details: Any) -> ProbeResult:
        return ProbeResult(
            self.label, self.kind, Outcome.NOT_APPLICABLE, message, details
        )


def execute_probe(probe: Probe, ctx: ProbeContext) -> ProbeResult:
    """Run one probe, converting anything it raises into a Failure."""
    start = time.monotonic()
    try:
        result = probe.run(ctx)
    except AuthenticationError as e:
        result = probe.failure(e.message, hard=True, error=e.error_code, **e.details)
    except ReadinessError as e:
        result = probe.failure(e.message, error=e.error_code, **e.details)
    except Exception as e:  # noqa: BLE001 - nothing escapes a probe
        logger.debug(f"Probe {probe.label} raised", exc_info=True)
        result = probe.failure(f"{type(e).__name__}: {e}", error="UNEXPECTED")

    result = dataclasses.replace(result, duration=time.monotonic() - start)
    logger.debug(
        f"{probe.label}: {result.outcome.value} ({result.message}) "
        f"in {result.duration:.2f}s"
    )
    return result


def positive(value: float | None, what: str) -> None:
    if value is not None and value <= 0:
        raise ConfigurationError(f"{what} must be positive, got {value}")
