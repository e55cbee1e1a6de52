"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings, get_settings
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ContainerNotFoundError,
    DeadlineExceededError,
    ProvisionerError,
    ReadinessError,
    TransportError,
)
from .logging import get_logger, setup_logging, target_var


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "ContainerNotFoundError",
    "DeadlineExceededError",
    "ProvisionerError",
    "ReadinessError",
    "Settings",
    "TransportError",
    "get_logger",
    "get_settings",
    "setup_logging",
    "target_var",
]
