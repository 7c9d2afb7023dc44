"""Configuration manager for varbind using TOML files."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

import toml

from . import config
from .errors import ConfigError

logger = logging.getLogger(__name__)

VALID_MODES = ("direct", "representative-only")
VALID_REPRESENTATIVE = ("nearest", "outermost")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class SearchConfig:
    """Tunables for a search, read from the ``[search]`` section."""

    progress_interval: int = config.DEFAULT_PROGRESS_INTERVAL
    skip_hidden: bool = True
    skip_locked: bool = True
    representative: str = config.DEFAULT_REPRESENTATIVE
    default_mode: str = config.DEFAULT_MODE
    log_level: str = config.DEFAULT_LOG_LEVEL

    def validate(self) -> None:
        if (
            isinstance(self.progress_interval, bool)
            or not isinstance(self.progress_interval, int)
            or self.progress_interval < 1
        ):
            raise ConfigError("progress_interval must be a positive integer")
        for name in ("skip_hidden", "skip_locked"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be true or false")
        if self.representative not in VALID_REPRESENTATIVE:
            raise ConfigError(f"representative must be one of {', '.join(VALID_REPRESENTATIVE)}")
        if self.default_mode not in VALID_MODES:
            raise ConfigError(f"default_mode must be one of {', '.join(VALID_MODES)}")
        if not isinstance(self.log_level, str) or self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s: %s", config.CONFIG_FILE, exc)
        return {}


def _save_full_config(payload: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    config.ensure_base_dirs()
    try:
        with open(config.CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(payload, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", config.CONFIG_FILE, exc)
        return False


def load_search_config() -> SearchConfig:
    """Load the ``[search]`` section, filling absent keys with defaults.

    Unknown keys are ignored.  Invalid values fall back to the defaults
    with a warning rather than failing the search.
    """
    section = load_full_config().get("search", {})
    known = {f.name for f in fields(SearchConfig)}
    values = {k: v for k, v in section.items() if k in known}
    try:
        loaded = SearchConfig(**values)
        loaded.validate()
    except (ConfigError, TypeError) as exc:
        logger.warning("Ignoring invalid [search] config: %s", exc)
        return SearchConfig()
    return loaded


def save_search_config(search_config: SearchConfig) -> bool:
    """Save the ``[search]`` section, preserving other sections."""
    search_config.validate()
    payload = load_full_config()
    payload["search"] = search_config.to_dict()
    return _save_full_config(payload)


def set_search_value(key: str, raw_value: str) -> SearchConfig:
    """Set one ``[search]`` key from its string form and persist it.

    Raises:
        ConfigError: If the key is unknown or the value is invalid.
    """
    current = load_search_config()
    if key not in {f.name for f in fields(SearchConfig)}:
        raise ConfigError(f"Unknown setting: {key}")

    value: Any = raw_value
    if key == "progress_interval":
        try:
            value = int(raw_value)
        except ValueError as exc:
            raise ConfigError("progress_interval must be an integer") from exc
    elif key in ("skip_hidden", "skip_locked"):
        lowered = raw_value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            value = True
        elif lowered in ("0", "false", "no", "off"):
            value = False
        else:
            raise ConfigError(f"{key} must be true or false")
    elif key == "log_level":
        value = raw_value.upper()

    setattr(current, key, value)
    current.validate()
    if not save_search_config(current):
        raise ConfigError(f"Could not write {config.CONFIG_FILE}")
    return current


def clear_search_config() -> bool:
    """Remove ``[search]`` section from config, resetting to defaults."""
    payload = load_full_config()
    payload.pop("search", None)
    return _save_full_config(payload)
