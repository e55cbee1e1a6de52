"""
Session report rendering.

Text output is one pass/fail line per target, optionally followed by the
probe outcomes that justified the verdict. The JSON document carries the
same content for CI artifacts.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

from readiness.models import Outcome, SessionReport, TargetResult, TerminalState

_ICONS = {
    TerminalState.HEALTHY: "✅",
    TerminalState.UNHEALTHY: "❌",
    TerminalState.TIMED_OUT: "⏱️",
}

_OUTCOME_MARKS = {
    Outcome.SUCCESS: "+",
    Outcome.FAILURE: "-",
    Outcome.NOT_APPLICABLE: "?",
}


def format_line(result: TargetResult) -> str:
    """One-line pass/fail summary of a target."""
    icon = _ICONS[result.state]
    status = "PASS" if result.passed else "FAIL"
    if result.timed_out:
        kind = "cancelled" if result.cancelled else "timed out"
    elif result.fast_fail:
        kind = "fast-fail"
    else:
        kind = result.state.value
    return (
        f"  {icon} {status} {result.target}: {kind} after {result.attempts} "
        f"attempt(s) in {result.elapsed:.1f}s - {result.reason}"
    )


def format_details(result: TargetResult) -> list[str]:
    """Probe outcomes of the final attempt, in execution order."""
    lines = []
    for probe in result.results:
        mark = _OUTCOME_MARKS[probe.outcome]
        lines.append(f"       {mark} {probe.probe}: {probe.message}")
    return lines


def render_text(report: SessionReport, verbose: bool = False) -> str:
    lines = ["", "=" * 60, "READINESS VERIFICATION", "=" * 60]

    for result in report.results.values():
        lines.append(format_line(result))
        if verbose or not result.passed:
            lines.extend(format_details(result))

    for name in report.skipped:
        lines.append(f"  ⏭️  SKIP {name}: slow deployment check (short mode)")

    results = report.results
    healthy = sum(1 for r in results.values() if r.passed)
    lines.append("=" * 60)
    lines.append(
        f"{healthy}/{len(results)} target(s) ready in {report.elapsed:.1f}s"
        + (f", {len(report.skipped)} skipped" if report.skipped else "")
    )
    lines.append("")
    return "\n".join(lines)


def print_report(report: SessionReport, stream: TextIO, verbose: bool = False) -> None:
    stream.write(render_text(report, verbose=verbose))
    stream.write("\n")


def to_json(report: SessionReport) -> str:
    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        **report.to_dict(),
    }
    return json.dumps(payload, indent=2, default=str)


def save(report: SessionReport, path: Path) -> Path:
    """Write the JSON report and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_json(report), encoding="utf-8")
    return path
