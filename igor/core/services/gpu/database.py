"""
GPU model database — static lookup from PCI device id to model facts.

Backed by ``catalogs/nvidia_models.json``. Every accessor returns
copies, so callers can mutate results without touching the table.
"""

from __future__ import annotations

import logging
import threading

from igor.core.data import DataRegistry
from igor.core.errors import ErrorKind, IgorError
from igor.core.models.gpu import Architecture, GPUModel
from igor.core.models.pci import parse_hex_id
from igor.core.services.gpu.base import GPUDatabase

logger = logging.getLogger(__name__)


class StaticGPUDatabase(GPUDatabase):
    """In-memory model table indexed by device id and by name.

    Args:
        models: Explicit model list. Defaults to the bundled catalog.
    """

    def __init__(self, models: list[GPUModel] | None = None):
        if models is None:
            models = [GPUModel.model_validate(row) for row in DataRegistry().nvidia_models]

        self._lock = threading.RLock()
        self._by_id: dict[str, GPUModel] = {}
        self._by_name: dict[str, GPUModel] = {}
        for model in models:
            self._by_id[parse_hex_id(model.device_id)] = model
            self._by_name[model.name.lower()] = model

    def lookup(self, device_id: str) -> GPUModel | None:
        with self._lock:
            model = self._by_id.get(parse_hex_id(device_id))
            return model.model_copy() if model else None

    def lookup_by_name(self, name: str) -> GPUModel | None:
        """Case-insensitive exact name match."""
        with self._lock:
            model = self._by_name.get(name.strip().lower())
            return model.model_copy() if model else None

    def list_by_architecture(self, arch: Architecture | str) -> list[GPUModel]:
        with self._lock:
            return [m.model_copy() for m in self._by_id.values() if m.architecture == arch]

    def get_min_driver_version(self, device_id: str) -> str:
        """Minimum driver version for a device.

        Raises:
            IgorError: kind not_found for unknown device ids.
        """
        model = self.lookup(device_id)
        if model is None:
            raise IgorError(
                f"unknown device ID: {device_id}",
                op="database.get_min_driver_version",
                kind=ErrorKind.NOT_FOUND,
            )
        return model.min_driver_version

    def all_models(self) -> list[GPUModel]:
        with self._lock:
            return [m.model_copy() for m in self._by_id.values()]

    def count(self) -> int:
        with self._lock:
            return len(self._by_id)
