"""
Configuration models — validated shape of ``.toolpack.yaml``.

Loaded by ``toolpack.core.config.loader``.  Every field has a default
so an empty file (or no file at all) yields a usable configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_REGISTRY_URL = "https://github.com/toolpack-dev/toolpack-registry"
DEFAULT_BRANCH = "main"
DEFAULT_WORKSPACE = ".claude"

GiB = 1024 * 1024 * 1024
MiB = 1024 * 1024


class SecurityLimits(BaseModel):
    """Archive limits checked before any byte is written."""

    max_total_uncompressed_bytes: int = 1 * GiB
    max_entry_count: int = 10_000
    max_single_entry_bytes: int = 500 * MiB
    max_compression_ratio: float = 100.0

    @field_validator(
        "max_total_uncompressed_bytes",
        "max_entry_count",
        "max_single_entry_bytes",
        "max_compression_ratio",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v


class RegistryConfig(BaseModel):
    """Where the catalog lives."""

    url: str = DEFAULT_REGISTRY_URL
    branch: str = DEFAULT_BRANCH
    auth_token: str | None = None


class LocalConfig(BaseModel):
    """Local workspace settings."""

    default_path: str = DEFAULT_WORKSPACE
    cache_ttl_seconds: int = 3600
    download_timeout_seconds: float = 600.0


class AppConfig(BaseModel):
    """Root configuration model."""

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    local: LocalConfig = Field(default_factory=LocalConfig)
    limits: SecurityLimits = Field(default_factory=SecurityLimits)
