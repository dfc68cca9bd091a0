"""
Configuration loader — merges shopinstall.yml, environment, and flags.

Precedence (highest first):
    CLI overrides  >  environment variables  >  config file  >  defaults

The config file is optional.  When present it is read with PyYAML and
validated against the ``InstallerConfig`` schema; any problem becomes
an ``InvalidConfiguration`` error before a single tool is touched.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from shopinstall.core.errors import InvalidConfiguration
from shopinstall.core.models.config import InstallerConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "shopinstall.yml"

# Environment variable → config field.  Names kept from the shell installers.
ENV_FIELDS: dict[str, str] = {
    "INSTALL_METHOD": "method",
    "AUTO_YES": "auto_yes",
    "PACKAGE": "package",
    "VERSION": "version",
    "TARGET_DIR": "target_path",
    "INSTALL_RETRIES": "retry_count",
    "SHOPINSTALL_LOG_DIR": "log_dir",
}

# Boolean variables that disable a feature when truthy
ENV_NEGATED: dict[str, str] = {
    "INSTALL_NO_FALLBACK": "fallback_enabled",
}

_BOOL_FIELDS = {"auto_yes", "fallback_enabled", "local_fallback_enabled"}
_TRUE = {"1", "true", "yes", "on", "y"}
_FALSE = {"0", "false", "no", "off", "n"}


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for shopinstall.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to shopinstall.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def parse_bool(name: str, raw: str) -> bool:
    """Parse a boolean environment value.

    Raises:
        InvalidConfiguration: If the value is not a recognised boolean.
    """
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise InvalidConfiguration(f"{name} must be a boolean (true/false), got '{raw}'")


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a plain mapping."""
    if not path.is_file():
        raise InvalidConfiguration(f"Config file not found: {path}")

    logger.debug("Loading installer config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InvalidConfiguration(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfiguration(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}"
        )

    # The YAML may wrap everything under an "installer" key or be flat
    section = data.get("installer", data)
    if not isinstance(section, dict):
        raise InvalidConfiguration(f"'installer' in {path} must be a mapping")
    return dict(section)


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Extract config values from environment variables.

    Empty values are ignored so ``INSTALL_METHOD=`` means "unset".
    """
    values: dict[str, Any] = {}
    for var, field in ENV_FIELDS.items():
        raw = env.get(var, "")
        if not raw.strip():
            continue
        values[field] = parse_bool(var, raw) if field in _BOOL_FIELDS else raw.strip()
    for var, field in ENV_NEGATED.items():
        raw = env.get(var, "")
        if raw.strip():
            values[field] = not parse_bool(var, raw)
    return values


def load_config(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    search: bool = True,
) -> InstallerConfig:
    """Build the installer configuration.

    Args:
        path: Explicit config file.  If None and ``search`` is True,
            shopinstall.yml is searched upward from cwd.
        env: Environment mapping (default: ``os.environ``).
        overrides: Values from CLI flags.  ``None`` values are ignored.
        search: Whether to look for a config file when ``path`` is None.

    Returns:
        Validated InstallerConfig.

    Raises:
        InvalidConfiguration: If any layer holds an invalid value.
    """
    data: dict[str, Any] = {}

    if path is None and search:
        path = find_config_file()
    if path is not None:
        data.update(read_config_file(path))

    data.update(env_overrides(os.environ if env is None else env))

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        config = InstallerConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidConfiguration(f"Invalid installer configuration: {e}") from e

    logger.debug(
        "Config: method=%s package=%s target=%s retries=%d",
        config.method.value if config.method else "auto",
        config.package_spec,
        config.target_path,
        config.retry_count,
    )
    return config
