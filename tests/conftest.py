"""Pytest configuration and fixtures."""

from __future__ import annotations

import socket
from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Sequence

import httpx
import pytest

from readiness.core.config import Settings
from readiness.core.exceptions import ContainerNotFoundError
from readiness.probes import ProbeContext
from readiness.runtime import ContainerInspection, ExecResult, HealthDescriptor


# =============================================================================
# FAKE CONTAINER RUNTIME
# =============================================================================


class FakeRuntime:
    """In-memory ContainerRuntime."""

    def __init__(self) -> None:
        self.containers: dict[str, ContainerInspection] = {}
        self.log_output: dict[str, bytes] = {}
        self.exec_results: dict[str, ExecResult] = {}
        self.calls: list[tuple[str, str]] = []

    def add(
        self,
        name: str,
        status: str = "running",
        health: str | None = None,
        uptime: float | None = 120.0,
        exit_code: int | None = 0,
    ) -> None:
        started_at = (
            datetime.now(timezone.utc) - timedelta(seconds=uptime)
            if uptime is not None
            else None
        )
        self.containers[name] = ContainerInspection(
            name=name,
            running=status == "running",
            status=status,
            health=HealthDescriptor(status=health) if health else None,
            started_at=started_at,
            exit_code=exit_code,
        )

    def inspect(self, name: str) -> ContainerInspection:
        self.calls.append(("inspect", name))
        if name not in self.containers:
            raise ContainerNotFoundError(f"Container '{name}' not found")
        return self.containers[name]

    def logs(self, name: str, tail: int) -> bytes:
        self.calls.append(("logs", name))
        if name not in self.containers:
            raise ContainerNotFoundError(f"Container '{name}' not found")
        return self.log_output.get(name, b"")

    def exec(self, name: str, command: Sequence[str]) -> ExecResult:
        self.calls.append(("exec", name))
        if name not in self.containers:
            raise ContainerNotFoundError(f"Container '{name}' not found")
        return self.exec_results.get(name, ExecResult(exit_code=0, output=""))


class FakeClock:
    """Monotonic clock whose waits advance time instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.waits: list[float] = []
        self._hooks: list[tuple[float, Callable[[], None]]] = []

    def __call__(self) -> float:
        return self.now

    def at(self, when: float, action: Callable[[], None]) -> None:
        self._hooks.append((when, action))

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        due = [hook for hook in self._hooks if hook[0] <= self.now]
        for hook in due:
            self._hooks.remove(hook)
            hook[1]()
        return False


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        _env_file=None,
        tcp_timeout=0.5,
        http_timeout=1.0,
        default_deadline=5.0,
        default_interval=0.5,
    )


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def http_handler() -> dict[str, Callable[[httpx.Request], httpx.Response]]:
    """Route table (``METHOD url``) served by the mock transport."""
    return {}


@pytest.fixture
def http_client(
    http_handler: dict[str, Callable[[httpx.Request], httpx.Response]],
) -> Generator[httpx.Client, None, None]:
    def dispatch(request: httpx.Request) -> httpx.Response:
        key = f"{request.method} {str(request.url).split('?')[0]}"
        handler = http_handler.get(key)
        if handler is None:
            raise httpx.ConnectError("connection refused", request=request)
        return handler(request)

    with httpx.Client(transport=httpx.MockTransport(dispatch)) as client:
        yield client


@pytest.fixture
def listening_port() -> Generator[int, None, None]:
    """A localhost port accepting connections."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(16)
    yield server.getsockname()[1]
    server.close()


@pytest.fixture
def reserved_socket() -> Generator[socket.socket, None, None]:
    """A bound but not listening socket: connections are refused until listen()."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    yield sock
    sock.close()


@pytest.fixture
def make_context(
    runtime: FakeRuntime, http_client: httpx.Client
) -> Callable[..., ProbeContext]:
    def factory(**overrides) -> ProbeContext:
        values = {
            "target": "alpha",
            "host": "127.0.0.1",
            "container": "alpha-c2",
            "runtime": runtime,
            "http": http_client,
            "tcp_timeout": 0.5,
            "http_timeout": 1.0,
            "good_indicators": ("listening", "started"),
            "bad_indicators": ("panic:", "fatal error:"),
        }
        values.update(overrides)
        return ProbeContext(**values)

    return factory
