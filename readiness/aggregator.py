"""
Signal aggregation.

Reconciles container lifecycle state, network reachability and functional
checks from one attempt into a tri-state verdict. Rules, in precedence
order:

1. A container reported exited/dead is Unhealthy (fast-fail). So is any
   other hard negative, such as rejected credentials.
2. The functional check: every declared container running, every expected
   port reachable, and at least one functional probe (http, authenticated
   api, log scan, command) succeeded when any is configured. With none
   configured, reachability suffices.
   A passing functional check is Healthy whatever the runtime health
   descriptor says.
3. A runtime descriptor of ``unhealthy`` with a failing functional check is
   Unhealthy (fast-fail).
4. Anything else is Indeterminate.

The aggregator is a pure function of the target declaration and the
results; calling it twice on the same inputs yields the same assessment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from readiness.models import (
    FUNCTIONAL_KINDS,
    Assessment,
    ProbeKind,
    ProbeResult,
    Verdict,
)

if TYPE_CHECKING:
    from readiness.registry import Target


def runtime_health(results: Sequence[ProbeResult]) -> str | None:
    """
    Combined runtime health descriptor of the target's containers.

    ``unhealthy`` if any container reports it, ``healthy`` if every
    container that has a descriptor reports it, otherwise the first other
    status seen (``starting``), or None when no container has one.
    """
    statuses = [
        r.details.get("health")
        for r in results
        if r.kind == ProbeKind.CONTAINER_STATE and r.details.get("health")
    ]
    if not statuses:
        return None
    if "unhealthy" in statuses:
        return "unhealthy"
    if all(s == "healthy" for s in statuses):
        return "healthy"
    return next(s for s in statuses if s != "healthy")


def unreachable_ports(target: "Target", results: Sequence[ProbeResult]) -> list[int]:
    """Expected ports without a successful tcp result on this attempt."""
    open_ports = {
        r.details.get("port")
        for r in results
        if r.kind == ProbeKind.TCP_REACHABILITY and r.succeeded
    }
    return [port for port in target.expected_ports if port not in open_ports]


def aggregate(target: "Target", results: Sequence[ProbeResult]) -> Assessment:
    """Reduce one attempt's probe results to a verdict."""
    # Rule 1: explicit negatives
    for result in results:
        if result.hard and result.failed:
            return Assessment(Verdict.UNHEALTHY, result.message, fast_fail=True)

    # Rule 2: functional check
    stopped = [
        r for r in results
        if r.kind == ProbeKind.CONTAINER_STATE and not r.succeeded
    ]
    closed = unreachable_ports(target, results)
    functional = [r for r in results if r.kind in FUNCTIONAL_KINDS]
    functional_ok = [r for r in functional if r.succeeded]

    if not target.has_functional_probes:
        reachable = any(r.kind == ProbeKind.TCP_REACHABILITY for r in results)
        functional_passed = not stopped and not closed and reachable
        evidence = "all expected ports open"
    else:
        functional_passed = not stopped and not closed and bool(functional_ok)
        evidence = functional_ok[0].message if functional_ok else ""

    health = runtime_health(results)

    if functional_passed:
        if health == "unhealthy":
            return Assessment(
                Verdict.HEALTHY,
                f"{evidence} (runtime health check reports unhealthy)",
            )
        return Assessment(Verdict.HEALTHY, evidence)

    if stopped:
        why = stopped[0].message
    elif closed:
        why = f"port(s) {', '.join(str(p) for p in closed)} not reachable"
    elif functional:
        failing = [r for r in functional if not r.succeeded]
        why = failing[0].message if failing else "no functional signal"
    else:
        why = "no reachability signal"

    # Rule 3: runtime says unhealthy and the service does not answer
    if health == "unhealthy":
        return Assessment(
            Verdict.UNHEALTHY,
            f"runtime health check unhealthy and {why}",
            fast_fail=True,
        )

    # Rule 4
    return Assessment(Verdict.INDETERMINATE, why)
