"""Unified configuration schema for vault_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for sync profiles and logging.

Usage:
    from vault_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
    profile = unified.get_profile("notes")
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field, field_validator

from .sync.models import ConflictAction, EmptyFolderAction

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SyncProfileConfig(BaseModel):
    """One local tree / remote store pair and the policy used to sync it."""

    local_root: str = Field(description="Local sync root directory")
    remote_root: str = Field(
        description="Remote location (a directory for the directory backend)"
    )
    service_type: str = Field(
        default="directory", description="Remote backend name"
    )
    state_dir: str = Field(
        default=".vault_sync",
        description="Directory holding the sync history files",
    )
    password: str | None = Field(
        default=None,
        description="Encryption password (prefer VAULT_SYNC_PASSWORD)",
    )
    concurrency: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent transfers per level (1-100)",
    )
    conflict_action: ConflictAction = Field(
        default=ConflictAction.KEEP_NEWER,
        description="How to resolve paths changed on both sides",
    )
    empty_folder: EmptyFolderAction = Field(
        default=EmptyFolderAction.SKIP,
        description="What to do with folders that keep no child",
    )
    skip_size_larger_than: int = Field(
        default=-1,
        description="Size ceiling in bytes for transfers; <= 0 disables it",
    )
    sync_config_dir: bool = Field(
        default=False,
        description="Sync the host-config directory even though it is hidden",
    )
    config_dir: str = Field(
        default=".obsidian", description="Host-config directory name"
    )
    sync_underscore_items: bool = Field(
        default=False, description="Sync '_'-prefixed files and folders"
    )
    ignore_paths: list[str] = Field(
        default_factory=list,
        description="Regular expressions of paths to exclude (full match)",
    )

    model_config = {"frozen": True}

    @field_validator("ignore_paths")
    @classmethod
    def _validate_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(
                    f"Invalid ignore pattern '{pattern}': {exc}"
                ) from exc
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid; it simply has no sync profiles.
    """

    sync: dict[str, SyncProfileConfig] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def get_profile(self, name: str) -> SyncProfileConfig:
        """Return the sync profile called *name*.

        Raises:
            KeyError: If no such profile is configured.
        """
        try:
            return self.sync[name]
        except KeyError:
            available = ", ".join(sorted(self.sync)) or "none"
            raise KeyError(
                f"Unknown sync profile '{name}' (available: {available})"
            ) from None


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully -- anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    unified = UnifiedConfig(**raw_data)
    logger.debug("Loaded %d sync profiles", len(unified.sync))
    return unified
