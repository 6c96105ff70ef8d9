"""Unified configuration schema for flux_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the Flux connection and logging.

Usage:
    from flux_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    fallbacks = unified.flux.model_dump(exclude_none=True)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .config import DEFAULT_SYNC_INTERVAL, MAX_SYNC_INTERVAL

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class FluxConfig(BaseModel):
    """Flux server connection and sync settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    vault: str | None = Field(
        default=None, description="Workspace root directory"
    )
    endpoint: str | None = Field(
        default=None, description="Flux server URL or host[:port]"
    )
    username: str | None = Field(
        default=None, description="Basic auth username"
    )
    password: str | None = Field(
        default=None, description="Basic auth password"
    )
    enabled: bool = Field(
        default=False, description="Enable automatic syncing"
    )
    sync_interval_seconds: int = Field(
        default=DEFAULT_SYNC_INTERVAL,
        ge=1,
        le=MAX_SYNC_INTERVAL,
        description="Seconds between periodic pulls",
    )
    folder: str | None = Field(
        default=None,
        description="Only sync this vault folder (default: whole vault)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    ``UnifiedConfig()`` (zero-config) is always valid.
    """

    flux: FluxConfig = Field(default_factory=FluxConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults; unknown top-level keys are ignored.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    # An empty YAML section ("flux:") parses as None
    known = {
        k: v
        for k, v in raw_data.items()
        if k in ("flux", "logging") and v is not None
    }
    ignored = sorted(set(raw_data) - {"flux", "logging"})
    if ignored:
        logger.warning("Ignoring unknown config sections: %s", ignored)
    return UnifiedConfig(**known)


def yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Return the non-None ``flux`` values for ``load_config(yaml_fallbacks=...)``."""
    return unified.flux.model_dump(exclude_none=True)
