"""
Persistent volume registry.

The whole name → record map is one JSON document. It is read once at
startup and rewritten in full after every mutation.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

from pydantic import ValidationError

from .exceptions import PersistenceError, StateCorruptError
from .models import VolumeRecord

logger = logging.getLogger("glustervol.state")


class VolumeStore(ABC):
    """Where the registry lives between process restarts."""

    @abstractmethod
    def load(self) -> Dict[str, VolumeRecord]:
        """Read the persisted registry.

        Returns:
            Mapping of volume name to record; empty when nothing is stored.

        Raises:
            StateCorruptError: If stored state exists but cannot be decoded.
        """

    @abstractmethod
    def save(self, volumes: Dict[str, VolumeRecord]) -> None:
        """Replace the persisted registry with ``volumes``.

        Raises:
            PersistenceError: If the write fails.
        """


class JsonStateStore(VolumeStore):
    """Registry kept in a single indented JSON file.

    Args:
        path: State file location. Its parent directory is created on
            first save.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, VolumeRecord]:
        if not self.path.exists():
            logger.debug("No state found at %s", self.path)
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StateCorruptError(f"Cannot read state file {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise StateCorruptError(
                f"State file {self.path} must contain a JSON object, "
                f"got {type(data).__name__}"
            )

        volumes: Dict[str, VolumeRecord] = {}
        for name, raw in data.items():
            try:
                volumes[name] = VolumeRecord.model_validate(raw)
            except ValidationError as exc:
                raise StateCorruptError(
                    f"Invalid record for volume {name} in {self.path}: {exc}"
                ) from exc

        logger.info("Loaded %d volume(s) from %s", len(volumes), self.path)
        return volumes

    def save(self, volumes: Dict[str, VolumeRecord]) -> None:
        data = {name: record.model_dump(mode="json") for name, record in volumes.items()}
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Cannot write state file {self.path}: {exc}") from exc
        logger.debug("Saved %d volume(s) to %s", len(volumes), self.path)
