"""Configuration paths and search defaults for varbind."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("VARBIND_HOME", str(Path.home() / ".varbind"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_PROGRESS_INTERVAL = 10
DEFAULT_MODE = "direct"
DEFAULT_REPRESENTATIVE = "nearest"
DEFAULT_LOG_LEVEL = "WARNING"


def ensure_base_dirs() -> None:
    """Create the base directory for local configuration if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
