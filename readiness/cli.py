"""
Command line entry point.

    readiness verify [TARGET ...]    verify named targets (all by default)
    readiness list                   show registered targets

Exit codes: 0 every target ready, 1 a target is unhealthy or timed out,
2 configuration error.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence, TextIO

from readiness import report as report_output
from readiness.core.config import Settings, get_settings
from readiness.core.exceptions import ConfigurationError, ProvisionerError
from readiness.core.logging import get_logger, setup_logging
from readiness.provisioner import Provisioner, TerraformProvisioner
from readiness.registry import TargetRegistry, default_registry
from readiness.schemas import load_registry
from readiness.session import VerificationSession

logger = get_logger("cli")

EXIT_OK = 0
EXIT_NOT_READY = 1
EXIT_CONFIG = 2


def parse_timing(values: Sequence[str] | None, option: str) -> dict[str, float]:
    """Parse repeated ``[NAME=]SECONDS`` options; a bare value applies to all."""
    parsed: dict[str, float] = {}
    for value in values or []:
        name, sep, seconds = value.rpartition("=")
        key = name.strip() if sep else "*"
        try:
            number = float(seconds)
        except ValueError:
            raise ConfigurationError(
                f"{option} expects [NAME=]SECONDS, got {value!r}"
            ) from None
        if number <= 0:
            raise ConfigurationError(f"{option} must be positive, got {value!r}")
        parsed[key or "*"] = number
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="readiness",
        description="Verify deployed services reached a stable, functioning state.",
    )
    parser.add_argument("--registry", type=Path, help="JSON registry file")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    )
    parser.add_argument(
        "--log-format", choices=("text", "json"), help="Log output format"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    verify = sub.add_parser("verify", help="Run the verification session")
    verify.add_argument("targets", nargs="*", help="Target names (default: all)")
    verify.add_argument(
        "--deadline",
        action="append",
        metavar="[NAME=]SECONDS",
        help="Per-target deadline override (repeatable)",
    )
    verify.add_argument(
        "--interval",
        action="append",
        metavar="[NAME=]SECONDS",
        help="Per-target delay between attempts (repeatable)",
    )
    verify.add_argument(
        "--short", action="store_true", help="Skip slow deployment checks"
    )
    verify.add_argument(
        "--terraform-dir", type=Path, help="Read target endpoints from terraform outputs"
    )
    verify.add_argument("--json", action="store_true", help="Print the JSON report")
    verify.add_argument("--output", type=Path, help="Also write the JSON report here")
    verify.add_argument(
        "-v", "--verbose", action="store_true", help="Show probe detail for every target"
    )

    sub.add_parser("list", help="List registered targets")
    return parser


def apply_arguments(settings: Settings, args: argparse.Namespace) -> Settings:
    update: dict = {}
    if args.log_level:
        update["log_level"] = args.log_level
    if args.log_format:
        update["log_format"] = args.log_format
    if args.registry:
        update["registry_file"] = args.registry
    if getattr(args, "short", False):
        update["short_mode"] = True
    if getattr(args, "terraform_dir", None):
        update["terraform_dir"] = args.terraform_dir
    return settings.model_copy(update=update) if update else settings


def build_registry(settings: Settings) -> TargetRegistry:
    if settings.registry_file:
        return load_registry(settings.registry_file)
    return default_registry()


def resolve_endpoints(
    registry: TargetRegistry, provisioner: Provisioner
) -> TargetRegistry:
    """Point targets at the hosts published in the provisioner outputs."""
    return registry.resolve_endpoints(provisioner.outputs())


def _list(registry: TargetRegistry, out: TextIO) -> int:
    for target in registry:
        flags = " (slow)" if target.slow else ""
        kinds = ", ".join(k.value for k in dict.fromkeys(target.probe_kinds()))
        ports = ", ".join(str(p) for p in target.expected_ports) or "-"
        out.write(f"{target.name}{flags}: ports {ports}; probes {kinds}\n")
    return EXIT_OK


def _verify(
    registry: TargetRegistry,
    settings: Settings,
    args: argparse.Namespace,
    out: TextIO,
) -> int:
    registry = registry.with_overrides(
        deadlines=parse_timing(args.deadline, "--deadline"),
        intervals=parse_timing(args.interval, "--interval"),
    )

    if settings.terraform_dir:
        provisioner = TerraformProvisioner(
            settings.terraform_dir, binary=settings.terraform_binary
        )
        registry = resolve_endpoints(registry, provisioner)

    session = VerificationSession(registry, settings)
    result = session.run(args.targets or None)

    if args.json:
        out.write(report_output.to_json(result) + "\n")
    else:
        report_output.print_report(result, out, verbose=args.verbose)
    if args.output:
        path = report_output.save(result, args.output)
        logger.info(f"Report written to {path}")

    return EXIT_OK if result.passed else EXIT_NOT_READY


def main(argv: Sequence[str] | None = None, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    args = build_parser().parse_args(argv)

    try:
        settings = apply_arguments(get_settings(), args)
    except ValueError as e:
        sys.stderr.write(f"Invalid settings: {e}\n")
        return EXIT_CONFIG
    setup_logging(settings)

    try:
        registry = build_registry(settings)
        if args.command == "list":
            return _list(registry, out)
        return _verify(registry, settings, args, out)
    except (ConfigurationError, ProvisionerError) as e:
        logger.error(e.message)
        for key, value in e.details.items():
            logger.error(f"  {key}: {value}")
        return EXIT_CONFIG


if __name__ == "__main__":
    sys.exit(main())
