"""
Verification session.

Runs one poll loop per target on a thread pool, records each terminal
result as it arrives and freezes the report once every target is done.
There is no session-level retry or deadline: the session lasts as long as
its slowest target.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Sequence

import httpx

from readiness.core.config import Settings
from readiness.core.exceptions import TransportError
from readiness.core.logging import get_logger
from readiness.models import SessionReport, TargetResult, TerminalState
from readiness.poller import PollLoop
from readiness.probes import ProbeContext
from readiness.registry import Target, TargetRegistry
from readiness.runtime import ContainerRuntime, DockerRuntime

logger = get_logger("session")

ResultCallback = Callable[[TargetResult], None]


class VerificationSession:
    """
    Verify a set of targets concurrently.

    The runtime and HTTP client are created once (or injected) and shared by
    every target thread. Call ``cancel()`` from another thread to abandon
    the session: targets still polling are recorded as TimedOut.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        settings: Settings,
        runtime: ContainerRuntime | None = None,
        http_client: httpx.Client | None = None,
        on_result: ResultCallback | None = None,
    ):
        self.registry = registry
        self.settings = settings
        self.runtime = runtime
        self.http_client = http_client
        self.on_result = on_result
        self.report = SessionReport()
        self._cancel = threading.Event()
        self._owned: list[Callable[[], None]] = []

    # -------------------------------------------------------------------------
    # Shared handles
    # -------------------------------------------------------------------------

    def _open_handles(self) -> None:
        if self.runtime is None:
            try:
                docker_runtime = DockerRuntime.from_settings(self.settings.docker_host)
            except TransportError as e:
                # Container probes will report the runtime as unavailable
                logger.warning(f"{e.message}; container probes will fail")
            else:
                self.runtime = docker_runtime
                self._owned.append(docker_runtime.close)

        if self.http_client is None:
            self.http_client = httpx.Client(
                verify=self.settings.verify_tls,
                timeout=self.settings.http_timeout,
                follow_redirects=False,
            )
            self._owned.append(self.http_client.close)

    def _close_handles(self) -> None:
        for close in self._owned:
            try:
                close()
            except Exception:  # noqa: BLE001 - best-effort teardown
                logger.debug("Error closing shared handle", exc_info=True)
        self._owned.clear()

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    def context_for(self, target: Target) -> ProbeContext:
        return ProbeContext(
            target=target.name,
            host=target.host or self.settings.default_host,
            container=target.container_name,
            runtime=self.runtime,
            http=self.http_client,
            tcp_timeout=self.settings.tcp_timeout,
            http_timeout=self.settings.http_timeout,
            good_indicators=target.good_indicators,
            bad_indicators=target.bad_indicators,
        )

    def loop_for(self, target: Target) -> PollLoop:
        return PollLoop(
            target=target,
            context=self.context_for(target),
            deadline=target.deadline or self.settings.default_deadline,
            interval=target.interval or self.settings.default_interval,
            cancel_event=self._cancel,
        )

    def cancel(self) -> None:
        logger.warning("Cancelling verification session")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _record(self, result: TargetResult) -> None:
        self.report.record(result)
        if self.on_result is None:
            return
        try:
            self.on_result(result)
        except Exception:  # noqa: BLE001 - a callback must not drop other results
            logger.exception(f"Result callback failed for {result.target}")

    def _crashed(self, target: Target, error: BaseException) -> TargetResult:
        return TargetResult(
            target=target.name,
            state=TerminalState.UNHEALTHY,
            reason=f"verification crashed: {type(error).__name__}: {error}",
            attempts=0,
            elapsed=0.0,
        )

    def _collect(self, futures: dict[Future, Target]) -> None:
        for future in as_completed(futures):
            target = futures[future]
            try:
                result = future.result()
            except Exception as e:  # noqa: BLE001 - isolate targets
                logger.exception(f"Poll loop for {target.name} crashed")
                result = self._crashed(target, e)
            self._record(result)

    def run(self, names: Sequence[str] | None = None) -> SessionReport:
        """Verify the named targets (all when None) and return the frozen report."""
        targets = self.registry.select(names)
        self.registry.seal()

        if self.settings.short_mode:
            for target in targets:
                if target.slow:
                    logger.info(f"Short mode: skipping {target.name}")
                    self.report.skip(target.name)
            targets = [t for t in targets if not t.slow]

        started = time.monotonic()
        self._open_handles()
        try:
            if targets:
                loops = {t.name: self.loop_for(t) for t in targets}
                # One thread per target: a queued loop would start its deadline late
                with ThreadPoolExecutor(
                    max_workers=len(loops), thread_name_prefix="readiness"
                ) as executor:
                    futures = {
                        executor.submit(loop.run): loop.target for loop in loops.values()
                    }
                    try:
                        self._collect(futures)
                    except KeyboardInterrupt:
                        # Loops notice the event at their next wait
                        self.cancel()
                        self._collect(
                            {f: t for f, t in futures.items() if t.name not in self.report}
                        )
        finally:
            self._close_handles()
            self.report.freeze(time.monotonic() - started)

        logger.info(
            f"Session finished in {self.report.elapsed:.1f}s: "
            f"{len(self.report) - len(self.report.failures)}/{len(self.report)} healthy"
        )
        return self.report
