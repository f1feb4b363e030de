"""Shared test fixtures for glustervol."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from glustervol.exceptions import MountCommandError, PersistenceError
from glustervol.models import PluginConfig, VolumeRecord
from glustervol.mounter import MountBackend, subdir_path
from glustervol.state import VolumeStore


class MemoryStore(VolumeStore):
    """VolumeStore kept in memory; records every save."""

    def __init__(self, volumes: Optional[Dict[str, VolumeRecord]] = None) -> None:
        self.volumes = {k: v.model_copy(deep=True) for k, v in (volumes or {}).items()}
        self.saves: List[Dict[str, VolumeRecord]] = []
        self.fail_saves = False

    def load(self) -> Dict[str, VolumeRecord]:
        return {k: v.model_copy(deep=True) for k, v in self.volumes.items()}

    def save(self, volumes: Dict[str, VolumeRecord]) -> None:
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.volumes = {k: v.model_copy(deep=True) for k, v in volumes.items()}
        self.saves.append(self.volumes)


class FakeMounter(MountBackend):
    """MountBackend that only creates directories and counts calls."""

    def __init__(self) -> None:
        self.attached: List[str] = []
        self.detached: List[str] = []
        self.attach_error: Optional[Exception] = None
        self.detach_error: Optional[Exception] = None

    def attach(self, record: VolumeRecord) -> str:
        self.attached.append(record.name)
        if self.attach_error is not None:
            raise self.attach_error
        subdir = subdir_path(record)
        os.makedirs(subdir, exist_ok=True)
        return subdir

    def detach(self, path: str) -> None:
        self.detached.append(path)
        if self.detach_error is not None:
            raise self.detach_error


@pytest.fixture
def plugin_root(tmp_path: Path) -> Path:
    """Provide a temporary plugin root directory."""
    root = tmp_path / "mnt"
    root.mkdir()
    return root


@pytest.fixture
def config(plugin_root: Path) -> PluginConfig:
    return PluginConfig(
        root=plugin_root,
        default_servers="gfs1,gfs2",
        default_volname="gv0",
        log_dir=plugin_root / "log",
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def mounter() -> FakeMounter:
    return FakeMounter()


@pytest.fixture
def driver(config: PluginConfig, store: MemoryStore, mounter: FakeMounter):
    from glustervol.driver import VolumeDriver

    return VolumeDriver(config, store=store, backend=mounter)


@pytest.fixture
def mount_failure() -> MountCommandError:
    return MountCommandError("glusterfs command execute failed: exit status 32 (boom)", returncode=32)
