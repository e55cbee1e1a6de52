"""
Registry file schema.

Targets can be declared in a JSON document instead of (or on top of) the
built-in catalog:

    {
      "extend_builtin": true,
      "targets": [
        {
          "name": "covenant",
          "container": "covenant-c2",
          "expected_ports": [7443],
          "deadline": 90,
          "good_indicators": ["now listening on"],
          "probes": [
            {"kind": "container-state"},
            {"kind": "tcp-reachability", "port": 7443},
            {"kind": "http-status", "url": "https://{host}:7443/", "status_range": [200, 499]},
            {"kind": "log-scan", "tail": 100}
          ]
        }
      ]
    }
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from readiness.core.exceptions import ConfigurationError
from readiness.probes import (
    AuthenticatedApiProbe,
    CommandProbe,
    ContainerStateProbe,
    HttpStatusProbe,
    LogScanProbe,
    Probe,
    TcpProbe,
)
from readiness.registry import Target, TargetRegistry, builtin_targets


class _ProbeSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = ""


class ContainerStateSpec(_ProbeSpec):
    kind: Literal["container-state"]
    container: Optional[str] = None
    min_uptime: float = Field(default=0.0, ge=0)

    def to_probe(self) -> Probe:
        return ContainerStateProbe(
            name=self.name, container=self.container, min_uptime=self.min_uptime
        )


class TcpSpec(_ProbeSpec):
    kind: Literal["tcp-reachability"]
    port: int = Field(..., gt=0, lt=65536)
    host: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0)

    def to_probe(self) -> Probe:
        return TcpProbe(
            name=self.name, port=self.port, host=self.host, timeout=self.timeout
        )


class HttpStatusSpec(_ProbeSpec):
    kind: Literal["http-status"]
    url: str = Field(..., min_length=1)
    method: str = "GET"
    status_range: tuple[int, int] = (200, 399)
    also_accept: list[int] = Field(default_factory=list)
    timeout: Optional[float] = Field(default=None, gt=0)

    def to_probe(self) -> Probe:
        return HttpStatusProbe(
            name=self.name,
            url=self.url,
            method=self.method.upper(),
            status_range=self.status_range,
            also_accept=frozenset(self.also_accept),
            timeout=self.timeout,
        )


class AuthenticatedApiSpec(_ProbeSpec):
    kind: Literal["authenticated-api"]
    auth_url: str = Field(..., min_length=1)
    follow_url: str = Field(..., min_length=1)
    credentials: dict[str, str] = Field(..., min_length=1)
    payload_format: Literal["form", "json"] = "json"
    token_field: str = "access_token"
    follow_method: str = "GET"
    status_range: tuple[int, int] = (200, 299)
    timeout: Optional[float] = Field(default=None, gt=0)

    def to_probe(self) -> Probe:
        return AuthenticatedApiProbe(
            name=self.name,
            auth_url=self.auth_url,
            follow_url=self.follow_url,
            credentials=dict(self.credentials),
            payload_format=self.payload_format,
            token_field=self.token_field,
            follow_method=self.follow_method.upper(),
            status_range=self.status_range,
            timeout=self.timeout,
        )


class LogScanSpec(_ProbeSpec):
    kind: Literal["log-scan"]
    tail: int = Field(default=50, gt=0)
    good: Optional[list[str]] = None
    bad: Optional[list[str]] = None
    container: Optional[str] = None

    def to_probe(self) -> Probe:
        return LogScanProbe(
            name=self.name,
            tail=self.tail,
            good=tuple(self.good) if self.good is not None else None,
            bad=tuple(self.bad) if self.bad is not None else None,
            container=self.container,
        )


class CommandSpec(_ProbeSpec):
    kind: Literal["command"]
    command: list[str] = Field(..., min_length=1)
    expect: str = ""
    container: Optional[str] = None

    def to_probe(self) -> Probe:
        return CommandProbe(
            name=self.name,
            command=tuple(self.command),
            expect=self.expect,
            container=self.container,
        )


ProbeSpec = Annotated[
    Union[
        ContainerStateSpec,
        TcpSpec,
        HttpStatusSpec,
        AuthenticatedApiSpec,
        LogScanSpec,
        CommandSpec,
    ],
    Field(discriminator="kind"),
]


class TargetSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: str = ""
    container: Optional[str] = None
    host: Optional[str] = None
    expected_ports: list[int] = Field(default_factory=list)
    deadline: Optional[float] = Field(default=None, gt=0)
    interval: Optional[float] = Field(default=None, gt=0)
    good_indicators: list[str] = Field(default_factory=list)
    bad_indicators: list[str] = Field(default_factory=list)
    slow: bool = False
    endpoint_output: Optional[str] = None
    probes: list[ProbeSpec] = Field(..., min_length=1)

    def to_target(self) -> Target:
        return Target(
            name=self.name,
            description=self.description,
            container=self.container,
            host=self.host,
            expected_ports=tuple(self.expected_ports),
            deadline=self.deadline,
            interval=self.interval,
            good_indicators=tuple(self.good_indicators),
            bad_indicators=tuple(self.bad_indicators),
            slow=self.slow,
            endpoint_output=self.endpoint_output,
            probes=tuple(spec.to_probe() for spec in self.probes),
        )


class RegistryFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Keep built-in targets not redefined by this file
    extend_builtin: bool = False
    targets: list[TargetSpec] = Field(default_factory=list)


def load_registry(path: Path | str) -> TargetRegistry:
    """Build a registry from a JSON registry file."""
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read registry file {path}: {e}") from e

    try:
        document = RegistryFile.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid registry file {path}",
            details={"errors": e.errors(include_url=False)},
        ) from e

    declared = [spec.to_target() for spec in document.targets]
    if not document.extend_builtin:
        return TargetRegistry(declared)

    overridden = {t.name for t in declared}
    kept = [t for t in builtin_targets() if t.name not in overridden]
    return TargetRegistry([*kept, *declared])
