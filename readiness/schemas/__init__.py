"""Pydantic schemas for on-disk configuration."""

from readiness.schemas.registry_file import RegistryFile, TargetSpec, load_registry

__all__ = ["RegistryFile", "TargetSpec", "load_registry"]
