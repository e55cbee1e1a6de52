"""Container log indicator scan."""

from __future__ import annotations

from dataclasses import dataclass

from readiness.core.exceptions import ConfigurationError
from readiness.models import ProbeKind, ProbeResult
from readiness.probes.base import Probe, ProbeContext


def find_indicators(text: str, vocabulary: tuple[str, ...]) -> list[str]:
    """Return the vocabulary entries present in text (case-insensitive)."""
    lowered = text.lower()
    return [word for word in vocabulary if word and word.lower() in lowered]


@dataclass(frozen=True, kw_only=True)
class LogScanProbe(Probe):
    """
    Scan the container log tail for good and bad indicators.

    Success needs at least one good indicator and no bad one. An empty tail
    says nothing about the service and yields NotApplicable. When ``good``
    or ``bad`` are not given, the target's vocabulary is used.
    """

    kind = ProbeKind.LOG_SCAN

    tail: int = 50
    good: tuple[str, ...] | None = None
    bad: tuple[str, ...] | None = None
    container: str | None = None

    def describe(self) -> str:
        return self.container or f"tail={self.tail}"

    def validate(self) -> None:
        if self.tail <= 0:
            raise ConfigurationError(f"{self.label}: tail must be positive")

    def run(self, ctx: ProbeContext) -> ProbeResult:
        name = self.container or ctx.container
        good = self.good if self.good is not None else ctx.good_indicators
        bad = self.bad if self.bad is not None else ctx.bad_indicators

        raw = ctx.require_runtime().logs(name, self.tail)
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)

        if not text.strip():
            return self.not_applicable(f"No log output from {name}", container=name)

        bad_hits = find_indicators(text, bad)
        if bad_hits:
            return self.failure(
                f"{name} logs contain {', '.join(repr(b) for b in bad_hits)}",
                container=name,
                bad=bad_hits,
            )

        good_hits = find_indicators(text, good)
        if good_hits:
            return self.success(
                f"{name} logs contain {good_hits[0]!r}",
                container=name,
                good=good_hits,
            )

        return self.failure(
            f"No good indicator in last {self.tail} lines of {name}",
            container=name,
        )
