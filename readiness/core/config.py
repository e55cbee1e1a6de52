"""Verifier settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Verifier settings loaded from READINESS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="READINESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: Literal["text", "json"] = Field(
        default="text", description="Log output format: text or json"
    )

    # Container runtime
    docker_host: Optional[str] = Field(
        default=None,
        description="Docker daemon URL (falls back to the SDK's own environment)",
    )

    # Transport
    default_host: str = Field(
        default="127.0.0.1", description="Host probed when a target names none"
    )
    tcp_timeout: float = Field(default=2.0, gt=0, description="TCP dial timeout")
    http_timeout: float = Field(default=10.0, gt=0, description="HTTP request timeout")
    verify_tls: bool = Field(
        default=False,
        description="Verify TLS certificates (lab services are self-signed)",
    )

    # Polling
    default_deadline: float = Field(
        default=60.0, gt=0, description="Per-target deadline when none is declared"
    )
    default_interval: float = Field(
        default=3.0, gt=0, description="Delay between attempts when none is declared"
    )
    short_mode: bool = Field(
        default=False, description="Skip targets flagged as slow deployments"
    )

    # Sources
    registry_file: Optional[Path] = Field(
        default=None, description="JSON file declaring targets"
    )
    terraform_dir: Optional[Path] = Field(
        default=None, description="Terraform working dir providing endpoints"
    )
    terraform_binary: str = Field(default="terraform")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper


@lru_cache
def get_settings() -> Settings:
    """Cached settings factory."""
    return Settings()
