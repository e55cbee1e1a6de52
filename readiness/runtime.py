"""
Container runtime client.

Thin read-only wrapper around the Docker SDK exposing the three calls the
probes need: inspect, logs and exec. SDK errors are translated into
TransportError / ContainerNotFoundError so probes deal with one taxonomy.
The client handle is created once per session and shared by every target
thread; none of the calls mutate it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol, Sequence

import docker
from docker.errors import DockerException, NotFound

from readiness.core.exceptions import ContainerNotFoundError, TransportError
from readiness.core.logging import get_logger

if TYPE_CHECKING:
    from docker.models.containers import Container

logger = get_logger("runtime")

_FRACTION = re.compile(r"\.(\d+)")

# States after which a container will not come back without intervention
TERMINAL_STATES = frozenset({"exited", "dead", "removing"})


@dataclass(frozen=True)
class HealthDescriptor:
    """Runtime-level health check state of a container."""

    status: str
    logs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContainerInspection:
    """Subset of ``docker inspect`` the probes rely on."""

    name: str
    running: bool
    status: str
    health: HealthDescriptor | None = None
    started_at: datetime | None = None
    mounts: tuple[str, ...] = ()
    env: tuple[str, ...] = ()
    exit_code: int | None = None

    @property
    def terminal(self) -> bool:
        return not self.running and self.status.lower() in TERMINAL_STATES

    def uptime(self, now: datetime | None = None) -> float | None:
        if self.started_at is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self.started_at).total_seconds()


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    output: str = ""


class ContainerRuntime(Protocol):
    """Interface the probes consume."""

    def inspect(self, name: str) -> ContainerInspection: ...

    def logs(self, name: str, tail: int) -> bytes: ...

    def exec(self, name: str, command: Sequence[str]) -> ExecResult: ...


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a Docker RFC 3339 timestamp (nanosecond precision, Z suffix)."""
    if not value or value.startswith("0001-01-01"):
        return None
    text = value.strip().replace("Z", "+00:00")
    # datetime only understands microseconds
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def inspection_from_attrs(name: str, attrs: dict[str, Any]) -> ContainerInspection:
    """Build a ContainerInspection from raw ``Container.attrs``."""
    state = attrs.get("State") or {}
    health_raw = state.get("Health")
    health = None
    if health_raw:
        health = HealthDescriptor(
            status=str(health_raw.get("Status", "unknown")).lower(),
            logs=tuple(
                str(entry.get("Output", "")).strip()
                for entry in (health_raw.get("Log") or [])[-5:]
            ),
        )

    mounts = tuple(
        str(m.get("Destination", "")) for m in (attrs.get("Mounts") or [])
    )
    env = tuple((attrs.get("Config") or {}).get("Env") or [])

    return ContainerInspection(
        name=name,
        running=bool(state.get("Running", False)),
        status=str(state.get("Status", "unknown")).lower(),
        health=health,
        started_at=parse_timestamp(state.get("StartedAt")),
        mounts=mounts,
        env=env,
        exit_code=state.get("ExitCode"),
    )


class DockerRuntime:
    """ContainerRuntime backed by the Docker SDK."""

    def __init__(self, client: docker.DockerClient):
        self.client = client

    @classmethod
    def from_settings(cls, docker_host: str | None = None) -> "DockerRuntime":
        try:
            if docker_host:
                client = docker.DockerClient(base_url=docker_host)
            else:
                client = docker.from_env()
        except DockerException as e:
            raise TransportError(f"Cannot reach container runtime: {e}") from e
        return cls(client)

    def close(self) -> None:
        self.client.close()

    def _get(self, name: str) -> "Container":
        try:
            return self.client.containers.get(name)
        except NotFound as e:
            raise ContainerNotFoundError(
                f"Container '{name}' not found", details={"container": name}
            ) from e
        except DockerException as e:
            raise TransportError(
                f"Error inspecting container '{name}': {e}",
                details={"container": name},
            ) from e

    def inspect(self, name: str) -> ContainerInspection:
        container = self._get(name)
        return inspection_from_attrs(name, container.attrs or {})

    def logs(self, name: str, tail: int) -> bytes:
        container = self._get(name)
        try:
            return container.logs(tail=max(1, int(tail)), stdout=True, stderr=True)
        except DockerException as e:
            raise TransportError(f"Error fetching logs of '{name}': {e}") from e

    def exec(self, name: str, command: Sequence[str]) -> ExecResult:
        container = self._get(name)
        try:
            exit_code, output = container.exec_run(
                list(command), stdout=True, stderr=True
            )
        except DockerException as e:
            raise TransportError(f"Error executing in '{name}': {e}") from e

        if isinstance(output, (bytes, bytearray)):
            text = output.decode("utf-8", errors="replace")
        else:
            text = str(output or "")
        return ExecResult(exit_code=int(exit_code or 0), output=text)
