"""Tests for the retry/poll loop."""

import threading

import httpx
import pytest

from readiness.core.logging import target_var
from readiness.models import TerminalState, Verdict
from readiness.poller import PollLoop
from readiness.probes import ContainerStateProbe, HttpStatusProbe, TcpProbe
from readiness.registry import Target


def tcp_target(port: int) -> Target:
    return Target(name="alpha", expected_ports=(port,), probes=(TcpProbe(port=port),))


@pytest.fixture
def reserved_port(reserved_socket):
    return reserved_socket.getsockname()[1]


def make_loop(target, context, clock, deadline=30.0, interval=2.0, **kwargs):
    return PollLoop(
        target=target,
        context=context,
        deadline=deadline,
        interval=interval,
        clock=clock,
        wait=kwargs.pop("wait", clock.wait),
        **kwargs,
    )


class TestTerminalStates:
    """Scenarios driving the loop to each terminal state."""

    def test_port_opening_mid_deadline_becomes_healthy(
        self, reserved_socket, reserved_port, make_context, clock
    ):
        """Port opens at t=10 with deadline 30 and interval 2."""
        clock.at(10, lambda: reserved_socket.listen(5))
        loop = make_loop(tcp_target(reserved_port), make_context(), clock)

        result = loop.run()

        assert result.state == TerminalState.HEALTHY
        assert result.attempts == 6
        assert result.elapsed == pytest.approx(10.0)
        assert [h.verdict for h in result.history[:-1]] == [Verdict.INDETERMINATE] * 5

    def test_exited_container_fast_fails_on_first_attempt(
        self, reserved_port, runtime, make_context, clock
    ):
        runtime.add("alpha-c2", status="exited", exit_code=1)
        target = Target(
            name="alpha",
            expected_ports=(reserved_port,),
            probes=(
                ContainerStateProbe(),
                TcpProbe(port=reserved_port),
                HttpStatusProbe(url="http://{host}:1337/"),
            ),
        )

        result = make_loop(target, make_context(), clock).run()

        assert result.state == TerminalState.UNHEALTHY
        assert result.fast_fail
        assert result.attempts == 1
        assert clock.waits == []

    def test_functional_check_overrides_unhealthy_descriptor(
        self, listening_port, runtime, http_handler, make_context, clock
    ):
        runtime.add("alpha-c2", health="unhealthy")
        http_handler["GET http://127.0.0.1:1337/"] = lambda r: httpx.Response(200)
        target = Target(
            name="alpha",
            expected_ports=(listening_port,),
            probes=(
                ContainerStateProbe(),
                TcpProbe(port=listening_port),
                HttpStatusProbe(url="http://{host}:1337/"),
            ),
        )

        result = make_loop(target, make_context(), clock).run()

        assert result.state == TerminalState.HEALTHY
        assert result.attempts == 1

    def test_deadline_exhausted_times_out(self, reserved_port, make_context, clock):
        result = make_loop(tcp_target(reserved_port), make_context(), clock).run()

        assert result.state == TerminalState.TIMED_OUT
        assert result.verdict == Verdict.UNHEALTHY
        assert not result.cancelled
        assert result.attempts == 16
        assert result.elapsed == pytest.approx(30.0)
        assert result.reason.startswith("not ready after 30s")
        assert str(reserved_port) in result.reason

    def test_last_wait_clipped_to_remaining_time(
        self, reserved_port, make_context, clock
    ):
        loop = make_loop(
            tcp_target(reserved_port), make_context(), clock, deadline=5.0
        )

        result = loop.run()

        assert clock.waits == [2.0, 2.0, 1.0]
        assert result.attempts == 4

    def test_history_matches_attempts(self, reserved_port, make_context, clock):
        result = make_loop(
            tcp_target(reserved_port), make_context(), clock, deadline=6.0
        ).run()

        assert len(result.history) == result.attempts
        assert [h.number for h in result.history] == list(range(1, result.attempts + 1))


class TestCancellation:
    """Tests for cancelling a poll loop."""

    def test_cancel_before_start(self, reserved_port, make_context, clock):
        event = threading.Event()
        event.set()
        loop = make_loop(
            tcp_target(reserved_port), make_context(), clock, cancel_event=event
        )

        result = loop.run()

        assert result.state == TerminalState.TIMED_OUT
        assert result.cancelled
        assert result.attempts == 0

    def test_cancel_during_wait(self, reserved_port, make_context, clock):
        event = threading.Event()

        def interrupted(seconds):
            event.set()
            return True

        loop = make_loop(
            tcp_target(reserved_port),
            make_context(),
            clock,
            cancel_event=event,
            wait=interrupted,
        )

        result = loop.run()

        assert result.state == TerminalState.TIMED_OUT
        assert result.cancelled
        assert result.attempts == 1
        assert result.reason.startswith("cancelled")

    def test_default_wait_uses_cancel_event(self, reserved_port, make_context):
        event = threading.Event()
        loop = PollLoop(
            target=tcp_target(reserved_port),
            context=make_context(),
            deadline=1.0,
            interval=0.5,
            cancel_event=event,
        )
        assert loop.wait == event.wait


class TestAttempts:
    """Tests for single attempts."""

    def test_probes_run_in_declared_order(
        self, listening_port, runtime, make_context, clock
    ):
        runtime.add("alpha-c2")
        probes = (
            TcpProbe(port=listening_port),
            ContainerStateProbe(),
            HttpStatusProbe(url="http://{host}:1/"),
        )
        target = Target(name="alpha", expected_ports=(listening_port,), probes=probes)
        loop = make_loop(target, make_context(), clock)

        results = loop.run_attempt()

        assert [r.probe for r in results] == [p.label for p in probes]

    def test_target_context_reset_after_run(self, listening_port, make_context, clock):
        make_loop(tcp_target(listening_port), make_context(), clock).run()
        assert target_var.get() is None
