"""
Infrastructure provisioner client.

Verification only reads outputs (the connection endpoints of each target).
Validate, plan, apply and destroy are exposed for operator tooling.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any, Callable, Protocol

from readiness.core.exceptions import ProvisionerError
from readiness.core.logging import get_logger

logger = get_logger("provisioner")

Runner = Callable[..., subprocess.CompletedProcess]


class Provisioner(Protocol):
    def outputs(self) -> dict[str, str]: ...


class TerraformProvisioner:
    """Run the terraform CLI against one working directory."""

    def __init__(
        self,
        working_dir: Path | str,
        binary: str = "terraform",
        runner: Runner = subprocess.run,
        timeout: float = 600.0,
    ):
        self.working_dir = Path(working_dir)
        self.binary = binary
        self.runner = runner
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        cmd = [self.binary, f"-chdir={self.working_dir}", *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            result = self.runner(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ProvisionerError(f"{self.binary} not installed") from e
        except subprocess.TimeoutExpired as e:
            raise ProvisionerError(
                f"{self.binary} {args[0]} timed out after {self.timeout:.0f}s"
            ) from e

        if result.returncode != 0:
            raise ProvisionerError(
                f"{self.binary} {args[0]} failed (exit {result.returncode})",
                details={"stderr": (result.stderr or "").strip()[-2000:]},
            )
        return result.stdout or ""

    def outputs(self) -> dict[str, str]:
        """Return terraform outputs flattened to strings."""
        raw = self._run("output", "-json")
        try:
            payload: Any = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise ProvisionerError(f"Unparseable terraform output: {e}") from e
        if not isinstance(payload, dict):
            raise ProvisionerError(
                f"Expected a JSON object from terraform output, "
                f"got {type(payload).__name__}"
            )

        outputs: dict[str, str] = {}
        for name, entry in payload.items():
            value = entry.get("value") if isinstance(entry, dict) else entry
            if value is None:
                outputs[name] = ""
            elif isinstance(value, str):
                outputs[name] = value
            else:
                outputs[name] = json.dumps(value)
        return outputs

    def validate(self) -> None:
        self._run("validate", "-no-color")

    def plan(self, plan_file: str | None = None) -> None:
        args = ["plan", "-input=false", "-no-color"]
        if plan_file:
            args.append(f"-out={plan_file}")
        self._run(*args)

    def apply(self, variables: dict[str, Any] | None = None) -> dict[str, str]:
        args = ["apply", "-auto-approve", "-input=false", "-no-color"]
        for key, value in (variables or {}).items():
            args.append(f"-var={key}={value}")
        self._run(*args)
        return self.outputs()

    def destroy(self) -> None:
        self._run("destroy", "-auto-approve", "-input=false", "-no-color")
