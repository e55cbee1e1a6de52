"""Container runtime probes: lifecycle state and in-container commands."""

from __future__ import annotations

from dataclasses import dataclass

from readiness.core.exceptions import ConfigurationError, ContainerNotFoundError
from readiness.models import ProbeKind, ProbeResult
from readiness.probes.base import Probe, ProbeContext


@dataclass(frozen=True, kw_only=True)
class ContainerStateProbe(Probe):
    """
    Check the container is running.

    An exited or dead container is a hard failure (the target fast-fails).
    A missing, created, restarting or too-young container is a soft failure
    that keeps the target polling. The runtime health descriptor, when the
    container has one, is passed through in ``details["health"]``.
    """

    kind = ProbeKind.CONTAINER_STATE

    container: str | None = None
    # Seconds the container must have been up for (0 disables)
    min_uptime: float = 0.0

    def describe(self) -> str:
        return self.container or ""

    def validate(self) -> None:
        if self.min_uptime < 0:
            raise ConfigurationError(
                f"min_uptime must not be negative, got {self.min_uptime}"
            )

    def run(self, ctx: ProbeContext) -> ProbeResult:
        name = self.container or ctx.container
        runtime = ctx.require_runtime()

        try:
            inspection = runtime.inspect(name)
        except ContainerNotFoundError:
            return self.failure(
                f"Container {name} not found", container=name, present=False
            )

        health = inspection.health.status if inspection.health else None
        details = {
            "container": name,
            "present": True,
            "running": inspection.running,
            "status": inspection.status,
            "health": health,
        }

        if inspection.terminal:
            return self.failure(
                f"Container {name} {inspection.status} "
                f"(exit code {inspection.exit_code})",
                hard=True,
                exit_code=inspection.exit_code,
                **details,
            )

        if not inspection.running:
            return self.failure(
                f"Container {name} not running (status: {inspection.status})",
                **details,
            )

        uptime = inspection.uptime()
        if uptime is not None:
            details["uptime"] = round(uptime, 1)
        if self.min_uptime and uptime is not None and uptime < self.min_uptime:
            return self.failure(
                f"Container {name} started {uptime:.0f}s ago "
                f"(stable after {self.min_uptime:.0f}s)",
                **details,
            )

        suffix = f", health: {health}" if health else ""
        return self.success(f"Container {name} running{suffix}", **details)


@dataclass(frozen=True, kw_only=True)
class CommandProbe(Probe):
    """Run a command inside the container and look for an expected output."""

    kind = ProbeKind.COMMAND

    command: tuple[str, ...] = ()
    expect: str = ""
    container: str | None = None

    def describe(self) -> str:
        return " ".join(self.command[:2])

    def validate(self) -> None:
        if not self.command:
            raise ConfigurationError(f"{self.label}: command is required")

    def run(self, ctx: ProbeContext) -> ProbeResult:
        name = self.container or ctx.container
        result = ctx.require_runtime().exec(name, self.command)
        output = result.output.strip()
        details = {"container": name, "exit_code": result.exit_code, "output": output[-500:]}

        if result.exit_code != 0:
            return self.failure(
                f"{self.command[0]} exited with {result.exit_code}", **details
            )
        if self.expect and self.expect.lower() not in output.lower():
            return self.failure(
                f"{self.command[0]} output lacks {self.expect!r}", **details
            )
        return self.success(f"{self.command[0]} ok", **details)


