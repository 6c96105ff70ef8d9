"""Settings for the Flux sync engine and its hosts.

Reads connection settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    FLUX_VAULT: Workspace root directory (optional, default: current directory)
    FLUX_ENDPOINT: Flux server URL or bare host[:port] (optional)
    FLUX_USERNAME: Basic auth username (optional)
    FLUX_PASSWORD: Basic auth password (optional)
    FLUX_ENABLED: Enable syncing (optional, default: false)
    FLUX_SYNC_INTERVAL: Pull interval in seconds (optional, default: 30)
    FLUX_FOLDER: Restrict syncing to one folder of the vault (optional)
    FLUX_DEBUG: Enable debug logging (optional, default: false)
"""

import ipaddress
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL = 30
MAX_SYNC_INTERVAL = 86400

_LOCALHOST_HOSTS = {"localhost", "::1"}


def _is_loopback(host: str) -> bool:
    host = host.strip("[]").lower()
    if host in _LOCALHOST_HOSTS:
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def resolve_base_url(endpoint: str) -> str:
    """Turn a configured endpoint into a base URL without trailing slash.

    A bare ``host[:port]`` gets ``http://`` when the host is loopback and
    ``https://`` otherwise. Returns ``""`` when nothing is configured.

    Examples:
        >>> resolve_base_url("localhost:8080")
        'http://localhost:8080'
        >>> resolve_base_url("flux.example.com/")
        'https://flux.example.com'
    """
    url = (endpoint or "").strip()
    if not url:
        return ""
    if not url.startswith(("http://", "https://")):
        host = urlparse(f"//{url}").hostname or ""
        scheme = "http" if _is_loopback(host) else "https"
        url = f"{scheme}://{url}"
    return url.rstrip("/")


@dataclass
class SyncSettings:
    """Host-owned settings the engine holds a live reference to.

    Attributes:
        endpoint: Server URL or bare host[:port].
        username: Basic auth username (empty for no auth).
        password: Basic auth password (empty for no auth).
        enabled: Master switch for event-driven and periodic syncing.
        sync_interval_seconds: Pull interval of the periodic reconcile.
        folder: Vault folder the engine is restricted to ("" = whole vault).
    """

    endpoint: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    enabled: bool = False
    sync_interval_seconds: int = DEFAULT_SYNC_INTERVAL
    folder: str = ""

    @property
    def base_url(self) -> str:
        return resolve_base_url(self.endpoint)

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    @property
    def active(self) -> bool:
        """True when syncing is both enabled and pointed at a server."""
        return self.enabled and self.configured


@dataclass
class Config:
    vault_dir: str
    settings: SyncSettings
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the endpoint scheme is unsupported, the interval is
            out of range, or the vault directory does not exist.
    """
    settings = config.settings
    settings.endpoint = settings.endpoint.strip()

    if "://" in settings.endpoint and not settings.endpoint.startswith(
        ("http://", "https://")
    ):
        raise ValueError(
            f"Invalid Flux endpoint '{settings.endpoint}': must use http:// or https://"
        )

    if settings.endpoint and not urlparse(settings.base_url).hostname:
        raise ValueError(
            f"Invalid Flux endpoint '{settings.endpoint}': must include a hostname"
        )

    if not (1 <= settings.sync_interval_seconds <= MAX_SYNC_INTERVAL):
        raise ValueError(
            f"Invalid sync interval {settings.sync_interval_seconds}: "
            f"must be between 1 and {MAX_SYNC_INTERVAL} seconds"
        )

    vault = Path(config.vault_dir).expanduser()
    if not vault.is_dir():
        raise ValueError(f"Vault directory not found: {config.vault_dir}")
    config.vault_dir = str(vault.resolve())

    if settings.enabled and not settings.configured:
        logger.warning(
            "Sync is enabled but no endpoint is configured; nothing will sync"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _pick_bool(
    cli_value: bool | None, env_key: str, fallback: object
) -> bool:
    if cli_value is not None:
        return cli_value
    env_value = _get_bool_env(env_key)
    if env_value is not None:
        return env_value
    return bool(fallback)


def load_config(
    vault: str | None = None,
    endpoint: str | None = None,
    username: str | None = None,
    password: str | None = None,
    enabled: bool | None = None,
    interval: int | None = None,
    folder: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        vault: Override workspace root directory.
        endpoint: Override server endpoint.
        username: Override basic auth username.
        password: Override basic auth password.
        enabled: Override the enabled flag (``None`` = not given).
        interval: Override the pull interval in seconds.
        folder: Override the synced vault folder.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from the YAML config ``flux`` section.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed after checking all sources.
    """
    fb = yaml_fallbacks or {}

    vault_dir = vault or os.getenv("FLUX_VAULT") or fb.get("vault") or "."
    final_endpoint = (
        endpoint or os.getenv("FLUX_ENDPOINT") or fb.get("endpoint") or ""
    )
    final_username = (
        username or os.getenv("FLUX_USERNAME") or fb.get("username") or ""
    )
    final_password = (
        password or os.getenv("FLUX_PASSWORD") or fb.get("password") or ""
    )
    final_folder = (
        folder
        if folder is not None
        else os.getenv("FLUX_FOLDER") or fb.get("folder") or ""
    )

    final_enabled = _pick_bool(
        enabled, "FLUX_ENABLED", fb.get("enabled", False)
    )
    final_debug = _pick_bool(
        True if debug else None, "FLUX_DEBUG", fb.get("debug", False)
    )

    interval_raw = os.getenv("FLUX_SYNC_INTERVAL")
    if interval is not None:
        final_interval = interval
    elif interval_raw is not None:
        try:
            final_interval = int(interval_raw)
        except ValueError:
            raise ValueError(
                f"Invalid FLUX_SYNC_INTERVAL '{interval_raw}': must be a number of seconds"
            ) from None
    else:
        final_interval = int(
            fb.get("sync_interval_seconds", DEFAULT_SYNC_INTERVAL)
        )

    config = Config(
        vault_dir=vault_dir,
        settings=SyncSettings(
            endpoint=final_endpoint,
            username=final_username,
            password=final_password,
            enabled=final_enabled,
            sync_interval_seconds=final_interval,
            folder=final_folder,
        ),
        debug=final_debug,
    )

    validate_config(config)

    return config
