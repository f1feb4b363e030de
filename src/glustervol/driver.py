"""
Volume Driver — the mount lifecycle state machine.

Every volume moves between three states:

    absent ──create──▶ registered (0 refs) ──mount──▶ mounted (N refs)
       ▲                     │  ▲                         │
       └──────remove─────────┘  └──────unmount (last)─────┘

The share is mounted on the 0 → 1 transition and unmounted when the
count falls back to zero; everything in between is bookkeeping. One
lock guards the whole registry, held across the mount subprocess, so
no two mounts ever race on this host.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from typing import Any, Dict, List, Mapping, Optional

from .addressing import derive_mountpoint
from .exceptions import (
    PersistenceError,
    VolumeError,
    VolumeInUseError,
    VolumeIOError,
    VolumeNotEmptyError,
    VolumeNotFoundError,
    VolumeValidationError,
)
from .models import Capabilities, PluginConfig, VolumeInfo, VolumeRecord
from .mounter import GlusterfsMounter, MountBackend, ensure_directory
from .state import JsonStateStore, VolumeStore

logger = logging.getLogger("glustervol.driver")

# Create options the driver interprets itself; everything else is a mount flag.
OPT_SUBDIR = "subdir"
OPT_VOLNAME = "volname"
OPT_SERVERS = "servers"


def _log_error(exc: VolumeError) -> VolumeError:
    logger.error("%s", exc)
    return exc


def split_servers(value: str) -> List[str]:
    """Split a comma-separated server list, dropping empty entries."""
    return [s.strip() for s in value.split(",") if s.strip()]


def is_dir_empty(path: str) -> bool:
    """Whether ``path`` is a directory with no entries.

    Raises:
        OSError: If the directory cannot be listed.
    """
    with os.scandir(path) as entries:
        return next(entries, None) is None


class VolumeDriver:
    """Reference-counted GlusterFS volume registry.

    All operations serialize on a single lock for their full duration,
    including the blocking mount/umount call and the state write.

    Args:
        config: Plugin configuration (paths and create defaults).
        store: Registry persistence. Defaults to the JSON state file
            under ``config.root``.
        backend: Mount backend. Defaults to the system mount command.

    Raises:
        StateCorruptError: If the persisted registry cannot be loaded.
    """

    def __init__(
        self,
        config: Optional[PluginConfig] = None,
        store: Optional[VolumeStore] = None,
        backend: Optional[MountBackend] = None,
    ) -> None:
        self.config = config or PluginConfig()
        self._store = store or JsonStateStore(self.config.state_path)
        self._backend = backend or GlusterfsMounter(
            fstype=self.config.fstype, log_dir=self.config.log_dir
        )
        self._lock = threading.Lock()

        logger.debug("New driver rooted at %s", self.config.volumes_dir)
        self._volumes: Dict[str, VolumeRecord] = self._store.load()
        # Mounts never survive a restart as far as the registry is concerned.
        for record in self._volumes.values():
            record.connections = 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _save_state(self) -> None:
        """Persist the registry; failures are logged, never raised."""
        try:
            self._store.save(self._volumes)
        except PersistenceError as exc:
            logger.error("Failed to save state: %s", exc)

    def _lookup(self, name: str) -> VolumeRecord:
        record = self._volumes.get(name)
        if record is None:
            raise _log_error(VolumeNotFoundError(name))
        return record

    # ------------------------------------------------------------------
    # Volume plugin operations
    # ------------------------------------------------------------------

    def create(self, name: str, options: Optional[Mapping[str, Any]] = None) -> VolumeRecord:
        """Register (or overwrite) a volume.

        Args:
            name: Volume name.
            options: ``subdir``, ``volname`` and ``servers`` override the
                configured defaults; any other entry becomes a mount
                option (``key=value``, or ``key`` alone when empty). Values
                that are not strings are converted with ``str``.

        Returns:
            A copy of the stored record.

        Raises:
            VolumeValidationError: If subdir, volname or servers resolve
                to empty.
        """
        logger.debug("create %s %r", name, options)

        with self._lock:
            subdir = name
            volname = self.config.default_volname
            servers = split_servers(self.config.default_servers)
            extra: List[str] = []

            for key, value in (options or {}).items():
                value = "" if value is None else str(value)
                if key == OPT_SUBDIR:
                    subdir = value
                elif key == OPT_VOLNAME:
                    volname = value
                elif key == OPT_SERVERS:
                    servers = split_servers(value)
                elif value:
                    extra.append(f"{key}={value}")
                else:
                    extra.append(key)

            if not subdir:
                raise _log_error(VolumeValidationError("'subdir' option required"))
            if not volname:
                raise _log_error(VolumeValidationError("'volname' option required"))
            if not servers:
                raise _log_error(VolumeValidationError("'servers' option required"))

            record = VolumeRecord(
                name=name,
                volname=volname,
                subdir=subdir,
                servers=servers,
                options=extra,
                mountpoint=derive_mountpoint(self.config.volumes_dir, name, volname, subdir),
            )
            self._volumes[name] = record
            self._save_state()
            return record.model_copy(deep=True)

    def remove(self, name: str) -> None:
        """Delete a volume and its (empty) mountpoint directory.

        Raises:
            VolumeNotFoundError: Unknown volume.
            VolumeInUseError: The volume is still referenced.
            VolumeNotEmptyError: The mountpoint has entries or cannot be
                listed.
            VolumeIOError: The mountpoint could not be deleted.
        """
        logger.debug("remove %s", name)

        with self._lock:
            record = self._lookup(name)

            if record.connections != 0:
                raise _log_error(VolumeInUseError(name))

            try:
                empty = is_dir_empty(record.mountpoint)
            except OSError as exc:
                logger.debug("Emptiness check of %s failed: %s", record.mountpoint, exc)
                empty = False

            if not empty:
                raise _log_error(VolumeNotEmptyError(name))

            try:
                shutil.rmtree(record.mountpoint)
            except OSError as exc:
                raise _log_error(VolumeIOError(str(exc))) from exc

            del self._volumes[name]
            self._save_state()

    def mount(self, name: str) -> str:
        """Take a reference on a volume, mounting it on first use.

        Returns:
            Path of the volume's subdirectory inside the mounted share.

        Raises:
            VolumeNotFoundError: Unknown volume.
            VolumeIOError: The mountpoint cannot be prepared.
            MountCommandError: The mount command failed.
        """
        logger.debug("mount %s", name)

        with self._lock:
            record = self._lookup(name)

            if record.connections == 0:
                try:
                    ensure_directory(record.mountpoint)
                    record.subdir_mountpoint = self._backend.attach(record)
                except VolumeError as exc:
                    raise _log_error(exc)

            record.connections += 1
            self._save_state()
            return record.subdir_mountpoint

    def unmount(self, name: str) -> None:
        """Drop a reference, unmounting when the last one goes.

        The count is clamped to zero even if the unmount command fails;
        that failure is still raised afterwards.

        Raises:
            VolumeNotFoundError: Unknown volume.
            MountCommandError: The umount command failed.
        """
        logger.debug("unmount %s", name)

        with self._lock:
            record = self._lookup(name)
            record.connections -= 1

            if record.connections > 0:
                self._save_state()
                return

            try:
                self._backend.detach(record.mountpoint)
            except VolumeError as exc:
                raise _log_error(exc)
            finally:
                record.connections = 0
                self._save_state()

    def path(self, name: str) -> str:
        """Mountpoint of a volume."""
        logger.debug("path %s", name)
        with self._lock:
            return self._lookup(name).mountpoint

    def get(self, name: str) -> VolumeInfo:
        """Name and active subdirectory path of a volume."""
        logger.debug("get %s", name)
        with self._lock:
            record = self._lookup(name)
            return VolumeInfo(name=name, mountpoint=record.subdir_mountpoint)

    def list(self) -> List[VolumeInfo]:
        """Every registered volume with its mountpoint."""
        logger.debug("list")
        with self._lock:
            return [
                VolumeInfo(name=name, mountpoint=record.mountpoint)
                for name, record in self._volumes.items()
            ]

    def capabilities(self) -> Capabilities:
        logger.debug("capabilities")
        return Capabilities(scope="local")

    def volumes(self) -> Dict[str, VolumeRecord]:
        """Snapshot copy of the full registry."""
        with self._lock:
            return {name: r.model_copy(deep=True) for name, r in self._volumes.items()}
