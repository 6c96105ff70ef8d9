"""YAML config files for flux-sync.

Finds the project and user config files, merges them (the project file
replaces whole top-level sections of the user file) and expands
``${VAR}`` references against the environment.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "FLUX_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".flux"

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to *default*, or to ``""`` when no
    default is given. An unterminated ``${`` is kept as is.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Apply interpolate_env_vars to every string in a parsed YAML tree."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


def discover_config_files() -> list[Path]:
    """Config files that exist, most specific first.

    Candidates are the file named by ``FLUX_SYNC_CONFIG``, then
    ``.flux/config.yml`` and ``.flux/config.yaml`` under the working
    directory, then the per-user ``~/.config/flux_sync/config.yml``.
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / PROJECT_CONFIG_DIR / "config.yml")
    candidates.append(cwd / PROJECT_CONFIG_DIR / "config.yaml")
    candidates.append(
        Path.home() / ".config" / "flux_sync" / "config.yml"
    )

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# flux-sync configuration
#
# Connection settings can also be set via environment variables:
#   FLUX_ENDPOINT, FLUX_USERNAME, FLUX_PASSWORD, FLUX_ENABLED,
#   FLUX_SYNC_INTERVAL, FLUX_FOLDER, FLUX_VAULT
#
# flux:
#   vault: ~/Notes
#   endpoint: https://flux.example.com
#   username: me
#   password: ${FLUX_PASSWORD}
#   enabled: true
#   sync_interval_seconds: 30
#   folder: Flux
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the config file that is (or would be) in effect.

    The highest-precedence existing file wins; otherwise the project-level
    default ``CWD / .flux / config.yml``. Does not create anything.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return a config file path, writing the starter template when missing.

    With no *target*, an already discovered file is returned untouched and
    a new file goes to ``resolve_config_path()``.
    """
    existing = discover_config_files()
    if existing and target is None:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    if config_path.exists():
        return config_path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)

    return config_path


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one dict.

    The user file is read first and each more specific file replaces its
    top-level sections wholesale. Environment references are expanded
    after the merge. No files means an empty dict.
    """
    paths = discover_config_files()

    if not paths:
        logger.debug("No flux-sync config files found")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            with open(path, encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Ignoring %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
