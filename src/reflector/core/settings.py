"""Settings for the reflector metadata core.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    The core has very little to configure, but the shared-registry slot
    names must agree between independently loaded copies, so they live
    here rather than as constants scattered across modules.

    - **Pydantic validation:** Type-checked at load time
    - **Environment-driven:** ``REFLECTOR_*`` env vars and .env files
    - **Sensible defaults:** Works out of the box

Features:
    - **ReflectorSettings:** log level/format, host slot names, walk bound
    - **get_settings():** cached instance, ``force_reload`` for tests

Examples:
    >>> from reflector.core.settings import get_settings
    >>> get_settings().registry_slot
    '__reflector_metadata_registry__'

Tags:
    settings, configuration, pydantic, environment, reflector-core

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReflectorSettings(BaseSettings):
    """Settings shared by every reflector component.

    Fields
    ──────
    log_level          : structlog log level
    log_format         : ``console`` or ``json``
    registry_slot      : host attribute holding the shared ProviderRegistry
    legacy_slot        : host attribute holding a registry-unaware facility
    publish_registry   : install a newly created registry on the host
    max_ancestor_depth : upper bound on the ancestor walk
    """

    model_config = SettingsConfigDict(
        env_prefix="REFLECTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    # ── Shared registry ──────────────────────────────────────────
    registry_slot: str = "__reflector_metadata_registry__"
    legacy_slot: str = "__reflector_metadata__"
    publish_registry: bool = True

    # ── Lookup ───────────────────────────────────────────────────
    max_ancestor_depth: int = Field(
        default=1024,
        ge=1,
        description="Maximum number of ancestors visited by inherited lookups",
    )


_settings: ReflectorSettings | None = None


def get_settings(*, force_reload: bool = False) -> ReflectorSettings:
    """Load and cache a :class:`ReflectorSettings` instance."""
    global _settings
    if _settings is None or force_reload:
        _settings = ReflectorSettings()
    return _settings


def clear_settings_cache() -> None:
    """Drop the cached settings (for testing)."""
    global _settings
    _settings = None


__all__ = ["ReflectorSettings", "get_settings", "clear_settings_cache"]
