"""
Target registry.

Targets are immutable declarations: which probes to run in which order,
which ports must answer, which log vocabulary applies and how long to wait.
Adding a target means registering data, never writing new branching logic.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Sequence

import httpx

from readiness.core.exceptions import ConfigurationError
from readiness.core.logging import get_logger
from readiness.models import FUNCTIONAL_KINDS, ProbeKind
from readiness.probes import (
    AuthenticatedApiProbe,
    CommandProbe,
    ContainerStateProbe,
    HttpStatusProbe,
    LogScanProbe,
    Probe,
    TcpProbe,
)

logger = get_logger("registry")


@dataclass(frozen=True)
class Target:
    """One deployed service under verification."""

    name: str
    probes: tuple[Probe, ...]
    expected_ports: tuple[int, ...] = ()
    container: str | None = None
    host: str | None = None
    deadline: float | None = None
    interval: float | None = None
    good_indicators: tuple[str, ...] = ()
    bad_indicators: tuple[str, ...] = ()
    # Skipped in short mode
    slow: bool = False
    # Provisioner output holding this target's endpoint
    endpoint_output: str | None = None
    description: str = ""

    @property
    def container_name(self) -> str:
        return self.container or self.name

    @property
    def has_functional_probes(self) -> bool:
        return any(p.kind in FUNCTIONAL_KINDS for p in self.probes)

    @property
    def auth(self) -> AuthenticatedApiProbe | None:
        """The authentication descriptor, if the target declares one."""
        return next(
            (p for p in self.probes if isinstance(p, AuthenticatedApiProbe)), None
        )

    def validate(self) -> None:
        """Raise ConfigurationError if the declaration cannot be verified."""
        if not self.name:
            raise ConfigurationError("Target name is required")
        if not self.probes:
            raise ConfigurationError(f"{self.name}: no probes declared")

        for probe in self.probes:
            try:
                probe.validate()
            except ConfigurationError as e:
                raise ConfigurationError(
                    f"{self.name}: {e.message}", details={"target": self.name}
                ) from e

        tcp_ports = {p.port for p in self.probes if isinstance(p, TcpProbe)}
        missing = [p for p in self.expected_ports if p not in tcp_ports]
        if missing:
            raise ConfigurationError(
                f"{self.name}: expected port(s) {missing} have no tcp probe",
                details={"target": self.name, "ports": missing},
            )
        extra = sorted(tcp_ports - set(self.expected_ports))
        if extra:
            raise ConfigurationError(
                f"{self.name}: tcp probe(s) on {extra} not listed in expected ports",
                details={"target": self.name, "ports": extra},
            )

        if not tcp_ports and not self.has_functional_probes:
            raise ConfigurationError(
                f"{self.name}: container state alone cannot prove readiness; "
                f"declare a tcp or functional probe"
            )

        for probe in self.probes:
            if isinstance(probe, LogScanProbe):
                good = probe.good if probe.good is not None else self.good_indicators
                if not good:
                    raise ConfigurationError(
                        f"{self.name}: log-scan probe has no good indicators"
                    )

        if self.deadline is not None and self.deadline <= 0:
            raise ConfigurationError(f"{self.name}: deadline must be positive")
        if self.interval is not None and self.interval <= 0:
            raise ConfigurationError(f"{self.name}: interval must be positive")
        if (
            self.deadline is not None
            and self.interval is not None
            and self.interval > self.deadline
        ):
            raise ConfigurationError(
                f"{self.name}: interval {self.interval}s exceeds deadline {self.deadline}s"
            )

    def probe_kinds(self) -> list[ProbeKind]:
        return [p.kind for p in self.probes]


def endpoint_host(value: str) -> str:
    """Extract the host from a provisioner output (URL or host[:port])."""
    value = value.strip()
    if "://" in value:
        try:
            return httpx.URL(value).host
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"Invalid endpoint URL {value!r}") from e
    return value.rsplit(":", 1)[0] if value.count(":") == 1 else value


class TargetRegistry:
    """Name to Target mapping, sealed before a session starts polling."""

    def __init__(self, targets: Iterable[Target] = ()):
        self._targets: dict[str, Target] = {}
        self._sealed = False
        for target in targets:
            self.register(target)

    def register(self, target: Target) -> None:
        if self._sealed:
            raise ConfigurationError("Registry is sealed")
        target.validate()
        if target.name in self._targets:
            raise ConfigurationError(f"Target {target.name!r} registered twice")
        self._targets[target.name] = target

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> Target:
        try:
            return self._targets[name]
        except KeyError:
            known = ", ".join(sorted(self._targets)) or "none"
            raise ConfigurationError(
                f"Unknown target {name!r} (known: {known})"
            ) from None

    def select(self, names: Sequence[str] | None = None) -> list[Target]:
        """Targets by name in the order given, or all in registration order."""
        if not names:
            return list(self._targets.values())
        return [self.get(name) for name in dict.fromkeys(names)]

    @property
    def names(self) -> list[str]:
        return list(self._targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def _derive(self, targets: Iterable[Target]) -> "TargetRegistry":
        return TargetRegistry(targets)

    def with_overrides(
        self,
        deadlines: Mapping[str, float] | None = None,
        intervals: Mapping[str, float] | None = None,
    ) -> "TargetRegistry":
        """
        New registry with per-target timing overridden.

        The ``*`` key applies to every target without its own entry.
        """
        deadlines = dict(deadlines or {})
        intervals = dict(intervals or {})
        for name in [*deadlines, *intervals]:
            if name != "*":
                self.get(name)

        def pick(values: dict[str, float], target: Target, current: float | None):
            return values.get(target.name, values.get("*", current))

        return self._derive(
            dataclasses.replace(
                t,
                deadline=pick(deadlines, t, t.deadline),
                interval=pick(intervals, t, t.interval),
            )
            for t in self
        )

    def resolve_endpoints(self, outputs: Mapping[str, str]) -> "TargetRegistry":
        """New registry with hosts taken from provisioner outputs."""
        resolved = []
        for target in self:
            if not target.endpoint_output:
                resolved.append(target)
                continue
            value = outputs.get(target.endpoint_output, "")
            if not value:
                raise ConfigurationError(
                    f"{target.name}: provisioner output "
                    f"{target.endpoint_output!r} missing or empty",
                    details={"target": target.name, "output": target.endpoint_output},
                )
            host = endpoint_host(value)
            logger.debug(f"{target.name}: endpoint {host} from {target.endpoint_output}")
            resolved.append(dataclasses.replace(target, host=host))
        return self._derive(resolved)


# =============================================================================
# BUILT-IN CATALOG
# =============================================================================

COMMON_BAD = (
    "panic:",
    "fatal error:",
    "segmentation fault",
    "core dumped",
)


def _havoc() -> Target:
    return Target(
        name="havoc",
        container="havoc-c2",
        description="Havoc teamserver",
        expected_ports=(40056, 8443),
        deadline=30.0,
        interval=3.0,
        endpoint_output="havoc_url",
        good_indicators=("teamserver", "listening", "started", "démarrage", "havoc"),
        bad_indicators=(*COMMON_BAD, "error: failed to start teamserver"),
        probes=(
            ContainerStateProbe(),
            TcpProbe(port=40056),
            TcpProbe(port=8443),
            HttpStatusProbe(url="https://{host}:8443/", status_range=(200, 499)),
            LogScanProbe(tail=50),
        ),
    )


def _sliver() -> Target:
    return Target(
        name="sliver",
        container="sliver-c2",
        description="Sliver server (multiplayer)",
        expected_ports=(31337,),
        deadline=30.0,
        interval=3.0,
        endpoint_output="sliver_url",
        good_indicators=("sliver", "server", "starting", "loaded", "listening"),
        bad_indicators=(
            *COMMON_BAD,
            "failed to start server",
            "bind: address already in use",
        ),
        probes=(
            ContainerStateProbe(),
            TcpProbe(port=31337),
            CommandProbe(command=("sliver", "version"), expect="sliver"),
            LogScanProbe(tail=50),
        ),
    )


def _empire() -> Target:
    return Target(
        name="empire",
        container="empire-c2",
        description="Empire REST API",
        expected_ports=(1337,),
        deadline=120.0,
        interval=3.0,
        endpoint_output="empire_url",
        good_indicators=(
            "uvicorn running",
            "application startup complete",
            "server process",
            "empire",
            "listening",
        ),
        bad_indicators=(
            *COMMON_BAD,
            "traceback",
            "failed to start",
            "bind: address already in use",
        ),
        probes=(
            ContainerStateProbe(),
            TcpProbe(port=1337),
            HttpStatusProbe(url="http://{host}:1337/docs", status_range=(200, 299)),
            AuthenticatedApiProbe(
                auth_url="http://{host}:1337/token",
                follow_url="http://{host}:1337/api/v2/users",
                credentials={"username": "empireadmin", "password": "password123"},
                payload_format="form",
            ),
            LogScanProbe(tail=50),
        ),
    )


def _metasploit() -> Target:
    return Target(
        name="metasploit",
        container="metasploit-c2",
        description="Metasploit RPC daemon, database and handler",
        expected_ports=(8080, 5432, 4444),
        deadline=180.0,
        interval=5.0,
        slow=True,
        endpoint_output="metasploit_url",
        good_indicators=("metasploit est prêt", "msfrpcd", "multi/handler"),
        bad_indicators=("fatal", "permission denied"),
        probes=(
            ContainerStateProbe(),
            TcpProbe(port=8080),
            TcpProbe(port=5432),
            TcpProbe(port=4444),
            HttpStatusProbe(url="http://{host}:8080/api/", status_range=(200, 499)),
            CommandProbe(
                command=("pg_isready", "-h", "localhost", "-p", "5432", "-U", "msf"),
                expect="accepting connections",
            ),
            LogScanProbe(tail=200),
        ),
    )


def _mythic() -> Target:
    return Target(
        name="mythic",
        container="mythic-server",
        description="Mythic server, UI, PostgreSQL and RabbitMQ",
        expected_ports=(7443, 5432, 5672),
        deadline=300.0,
        interval=5.0,
        slow=True,
        endpoint_output="mythic_url",
        good_indicators=("listening", "server", "started", "connected"),
        bad_indicators=(
            *COMMON_BAD,
            "failed to start",
            "bind: address already in use",
        ),
        probes=(
            ContainerStateProbe(container="mythic-postgres"),
            ContainerStateProbe(container="mythic-rabbitmq"),
            ContainerStateProbe(container="mythic-server"),
            ContainerStateProbe(container="mythic-react"),
            TcpProbe(port=7443),
            TcpProbe(port=5432),
            TcpProbe(port=5672),
            CommandProbe(
                container="mythic-postgres",
                command=("pg_isready", "-U", "mythic_user", "-d", "mythic_db"),
                expect="accepting connections",
            ),
            CommandProbe(container="mythic-rabbitmq", command=("rabbitmqctl", "status")),
            HttpStatusProbe(url="https://{host}:7443/", status_range=(200, 399)),
            LogScanProbe(container="mythic-server", tail=50),
        ),
    )


def builtin_targets() -> list[Target]:
    return [_havoc(), _sliver(), _empire(), _metasploit(), _mythic()]


def default_registry() -> TargetRegistry:
    """Registry holding the built-in lab catalog."""
    return TargetRegistry(builtin_targets())
