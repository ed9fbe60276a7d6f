"""Settings loader: YAML file, then ``${VAR}`` interpolation, then ``EXGATE_*`` overrides.

Secrets are meant to stay out of the file::

    exchanges:
      bybit:
        credentials:
          api_key: ${BYBIT_API_KEY}
          api_secret: ${BYBIT_API_SECRET}

Any setting can also be overridden by a variable named after its path, with
``__`` between levels: ``EXGATE_MARKET__FIAT=USD`` or
``EXGATE_EXCHANGES__KORBIT__ENABLED=false``.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .settings import Settings

logger = logging.getLogger(__name__)

ENV_PREFIX = "EXGATE_"
DEFAULT_CONFIG = "config.yml"

# variables that configure the process rather than the settings tree
_RESERVED = {"CONFIG", "LOG_LEVEL", "LOG_DIR"}

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def _interpolate(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _interpolate(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_interpolate(item) for item in value]
    if not isinstance(value, str):
        return value

    def replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        if default is not None:
            return default
        raise ConfigurationError(f"Environment variable {name} referenced in config is not set")

    return _PLACEHOLDER.sub(replace, value)


def _parse_env_value(raw: str) -> Any:
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw


def _env_overrides(prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Nested dict built from ``PREFIX_A__B__C=value`` variables."""
    overrides: dict[str, Any] = {}
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix):
            continue
        remainder = key[len(prefix) :]
        if remainder in _RESERVED:
            continue

        path = [part.lower() for part in remainder.split("__") if part]
        if not path:
            continue

        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = _parse_env_value(raw_value)
    return overrides


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.warning("config file %s not found, using defaults", path)
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Error parsing YAML file {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config root must be a mapping, got: {type(loaded)!r}")
    return loaded


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        config_path: YAML file; defaults to ``$EXGATE_CONFIG`` or ``./config.yml``.
            A missing file yields the defaults.

    Raises:
        ConfigurationError: unreadable file, unset ``${VAR}`` or invalid values.
    """
    if config_path is None:
        config_path = os.environ.get(f"{ENV_PREFIX}CONFIG", DEFAULT_CONFIG)

    path = Path(config_path)
    data = _merge(_interpolate(_read_file(path)), _env_overrides())

    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    logger.debug("loaded settings from %s: %d exchange(s)", path, len(settings.exchanges))
    return settings
