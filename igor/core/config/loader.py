"""
Configuration loader — reads igor.yml into an IgorConfig.

Search order when no explicit path is given:

    $IGOR_CONFIG
    $XDG_CONFIG_HOME/igor/igor.yml  (default ~/.config/igor/igor.yml)
    /etc/igor/igor.yml

No file found means built-in defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from igor.core.models.config import IgorConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "igor.yml"
SYSTEM_CONFIG = Path("/etc/igor") / CONFIG_FILE


class ConfigError(Exception):
    """Raised when a config file is unreadable or invalid."""


def candidate_paths() -> list[Path]:
    """Config locations in lookup order."""
    candidates: list[Path] = []
    env_path = os.environ.get("IGOR_CONFIG")
    if env_path:
        candidates.append(Path(env_path))

    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    candidates.append(base / "igor" / CONFIG_FILE)
    candidates.append(SYSTEM_CONFIG)
    return candidates


def find_config_file() -> Path | None:
    """First existing config file, or None."""
    for candidate in candidate_paths():
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> IgorConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file. If None, searches the default locations
            and falls back to defaults when nothing is found.

    Returns:
        Validated IgorConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return IgorConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        return IgorConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
