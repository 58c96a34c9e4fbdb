"""Runtime configuration for one sync run.

Combines a YAML sync profile with secrets and overrides coming from CLI
args, environment variables and ``.env`` files.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML profile > Built-in defaults

Environment variables:
    VAULT_SYNC_PASSWORD: Encryption password (optional, default: unencrypted)
    VAULT_SYNC_CONCURRENCY: Max concurrent transfers per level (optional, 1-100)
    VAULT_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .config_schema import SyncProfileConfig

logger = logging.getLogger(__name__)


@dataclass
class Config:
    profile_name: str
    profile: SyncProfileConfig
    password: str = ""
    concurrency: int = 5
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If roots are missing or overlap, or concurrency is out
            of range.
    """
    local_root = config.profile.local_root.strip()
    remote_root = config.profile.remote_root.strip()
    if not local_root:
        raise ValueError(
            f"Profile '{config.profile_name}' has an empty local_root."
        )
    if not remote_root:
        raise ValueError(
            f"Profile '{config.profile_name}' has an empty remote_root."
        )

    local_path = Path(local_root).expanduser().resolve()
    remote_path = Path(remote_root).expanduser().resolve()
    if local_path == remote_path:
        raise ValueError(
            f"Profile '{config.profile_name}': local_root and remote_root "
            f"must differ (both are {local_path})"
        )

    if not (1 <= config.concurrency <= 100):
        raise ValueError(
            f"Invalid concurrency {config.concurrency}: must be a number between 1 and 100"
        )

    if config.profile.password and not os.getenv("VAULT_SYNC_PASSWORD"):
        logger.warning(
            "Profile '%s' stores its password in the config file; "
            "prefer VAULT_SYNC_PASSWORD.",
            config.profile_name,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    profile_name: str,
    profile: SyncProfileConfig,
    password: str | None = None,
    concurrency: int | None = None,
    debug: bool = False,
) -> Config:
    """Resolve the runtime configuration of one profile.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML profile > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        profile_name: Name of the sync profile.
        profile: The profile loaded from YAML.
        password: Override password (CLI).
        concurrency: Override concurrency (CLI).
        debug: Enable debug logging (CLI flag).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is invalid after checking all sources.
    """
    final_password = (
        password or os.getenv("VAULT_SYNC_PASSWORD") or profile.password or ""
    )

    if concurrency is not None:
        final_concurrency = concurrency
    else:
        raw = os.getenv("VAULT_SYNC_CONCURRENCY")
        if raw is not None:
            try:
                final_concurrency = int(raw)
            except ValueError:
                raise ValueError(
                    f"Invalid VAULT_SYNC_CONCURRENCY '{raw}': must be a number between 1 and 100"
                ) from None
        else:
            final_concurrency = profile.concurrency

    if debug:
        final_debug = True
    else:
        final_debug = bool(_get_bool_env("VAULT_SYNC_DEBUG"))

    config = Config(
        profile_name=profile_name,
        profile=profile.model_copy(update={"concurrency": final_concurrency}),
        password=final_password,
        concurrency=final_concurrency,
        debug=final_debug,
    )

    validate_config(config)

    return config
