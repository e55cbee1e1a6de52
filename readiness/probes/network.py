"""TCP reachability probe."""

from __future__ import annotations

import socket
from dataclasses import dataclass

from readiness.core.exceptions import ConfigurationError
from readiness.models import ProbeKind, ProbeResult
from readiness.probes.base import Probe, ProbeContext, positive


@dataclass(frozen=True, kw_only=True)
class TcpProbe(Probe):
    """Dial host:port and close the connection immediately."""

    kind = ProbeKind.TCP_REACHABILITY

    port: int
    host: str | None = None
    timeout: float | None = None

    def describe(self) -> str:
        return str(self.port)

    def validate(self) -> None:
        if not 0 < int(self.port) < 65536:
            raise ConfigurationError(f"{self.label}: invalid port {self.port}")
        positive(self.timeout, f"{self.label} timeout")

    def run(self, ctx: ProbeContext) -> ProbeResult:
        host = self.host or ctx.host
        timeout = self.timeout or ctx.tcp_timeout
        details = {"host": host, "port": self.port}

        try:
            conn = socket.create_connection((host, self.port), timeout=timeout)
        except socket.timeout:
            return self.failure(
                f"{host}:{self.port} timed out after {timeout:.1f}s", **details
            )
        except ConnectionRefusedError:
            return self.failure(f"{host}:{self.port} connection refused", **details)
        except OSError as e:
            return self.failure(f"{host}:{self.port} unreachable: {e}", **details)

        conn.close()
        return self.success(f"{host}:{self.port} open", **details)
