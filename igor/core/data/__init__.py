"""
Central data registry for static catalogs.

Loads catalogs from ``igor/core/data/catalogs/`` on first access and
caches them for the lifetime of the registry.

Usage::

    from igor.core.data import DataRegistry

    registry = DataRegistry()
    models = registry.nvidia_models   # list[dict]
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent


def _load_json(relative_path: str) -> list | dict:
    """Load a JSON file relative to the data directory."""
    path = _DATA_DIR / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return [] if relative_path.endswith("s.json") else {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class DataRegistry:
    """Central registry for all static data catalogs."""

    @cached_property
    def nvidia_models(self) -> list[dict]:
        """Known NVIDIA GPU models keyed by PCI device id."""
        data = _load_json("catalogs/nvidia_models.json")
        logger.debug("Loaded %d NVIDIA GPU model definitions", len(data))
        return data
