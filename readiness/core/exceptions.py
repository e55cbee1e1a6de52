"""Verifier exception taxonomy.

Transport and authentication errors never leave a probe: the probe boundary
turns them into Failure results. Deadline errors never leave a poll loop.
Configuration and provisioner errors are fatal before polling starts.
"""

from __future__ import annotations

from typing import Any


class ReadinessError(Exception):
    """Base verifier exception with a structured payload."""

    error_code: str = "READINESS_ERROR"
    message: str = "Readiness verification error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error_code,
            "message": self.message,
            **({"details": self.details} if self.details else {}),
        }


class ConfigurationError(ReadinessError):
    """Target declared with contradictory or missing probe parameters."""

    error_code = "CONFIGURATION_ERROR"
    message = "Invalid target configuration"


class TransportError(ReadinessError):
    """Dial, HTTP or container runtime call failed."""

    error_code = "TRANSPORT_ERROR"
    message = "Transport failure"


class ContainerNotFoundError(TransportError):
    """Container runtime has no container with the requested name."""

    error_code = "CONTAINER_NOT_FOUND"
    message = "Container not found"


class AuthenticationError(ReadinessError):
    """Credentials rejected by the target."""

    error_code = "AUTHENTICATION_FAILED"
    message = "Credentials rejected"


class DeadlineExceededError(ReadinessError):
    """Poll loop ran out of time (or was cancelled) before a verdict."""

    error_code = "DEADLINE_EXCEEDED"
    message = "Deadline exceeded"

    def __init__(self, target: str, elapsed: float, cancelled: bool = False):
        self.target = target
        self.elapsed = elapsed
        self.cancelled = cancelled
        reason = "cancelled" if cancelled else "deadline exceeded"
        super().__init__(
            f"{target}: {reason} after {elapsed:.1f}s",
            details={"target": target, "elapsed": elapsed, "cancelled": cancelled},
        )


class ProvisionerError(ReadinessError):
    """Infrastructure provisioner command failed."""

    error_code = "PROVISIONER_ERROR"
    message = "Provisioner command failed"
