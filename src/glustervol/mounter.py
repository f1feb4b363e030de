"""
Mount backends — the part that actually talks to the OS.

GlusterfsMounter shells out to ``mount -t glusterfs`` and ``umount``.
When a mount fails, the GlusterFS client usually explains why in its
own per-mountpoint log file rather than on stderr, so that log is
pulled into the error and then emptied for the next attempt.
"""

from __future__ import annotations

import logging
import os
import stat
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from .exceptions import MountCommandError, VolumeIOError
from .models import DEFAULT_LOG_DIR, VolumeRecord

logger = logging.getLogger("glustervol.mounter")


def ensure_directory(path: str, label: str = "") -> None:
    """Create ``path`` (with parents) unless it already is a directory.

    Args:
        path: Directory to ensure.
        label: Prefix for the error message (e.g. ``"subdir "``).

    Raises:
        VolumeIOError: If the path exists as something other than a
            directory, or cannot be inspected or created.
    """
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        try:
            os.makedirs(path, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise VolumeIOError(str(exc)) from exc
        return
    except OSError as exc:
        raise VolumeIOError(str(exc)) from exc

    if not stat.S_ISDIR(st.st_mode):
        raise VolumeIOError(f"{label}{path} already exist and it's not a directory")


def subdir_path(record: VolumeRecord) -> str:
    """Path of the record's subdirectory inside its mountpoint.

    Leading slashes are ignored, so an absolute subdir is still taken
    relative to the share.

    Raises:
        VolumeIOError: If the subdir resolves outside the mountpoint.
    """
    base = os.path.normpath(record.mountpoint)
    path = os.path.normpath(os.path.join(base, record.subdir.lstrip("/")))
    if os.path.commonpath([base, path]) != base:
        raise VolumeIOError(f"subdir {record.subdir} escapes mountpoint {record.mountpoint}")
    return path


class MountBackend(ABC):
    """Attach and detach the backing share of a volume."""

    @abstractmethod
    def attach(self, record: VolumeRecord) -> str:
        """Mount the share behind ``record`` at its mountpoint.

        Args:
            record: Volume to mount. Its mountpoint directory exists.

        Returns:
            The subdirectory path containers should use.

        Raises:
            MountCommandError: If the mount fails.
            VolumeIOError: If the subdirectory cannot be prepared.
        """

    @abstractmethod
    def detach(self, path: str) -> None:
        """Unmount whatever is mounted at ``path``.

        Raises:
            MountCommandError: If the unmount fails.
        """


class GlusterfsMounter(MountBackend):
    """Mount backend driving the system ``mount``/``umount`` commands.

    Args:
        fstype: Filesystem type passed to ``mount -t``.
        log_dir: Directory where the client writes per-mountpoint logs.
    """

    def __init__(
        self,
        fstype: str = "glusterfs",
        log_dir: Optional[Path] = None,
    ) -> None:
        self.fstype = fstype
        self.log_dir = Path(log_dir or DEFAULT_LOG_DIR)

    # ------------------------------------------------------------------
    # Command construction
    # ------------------------------------------------------------------

    def build_mount_command(self, record: VolumeRecord) -> List[str]:
        """Build the argv for mounting ``record``.

        Returns:
            ``["mount", "-t", fstype, "-o", opt, ..., source, mountpoint]``
        """
        cmd = ["mount", "-t", self.fstype]
        for option in record.options:
            cmd.extend(["-o", option])
        cmd.extend([record.source, record.mountpoint])
        return cmd

    def diagnostic_log_path(self, mountpoint: str) -> Path:
        """Client log file for a mountpoint.

        ``/mnt/volumes/ab/cd`` logs to ``<log_dir>/mnt-volumes-ab-cd.log``.
        """
        return self.log_dir / (mountpoint.replace("/", "-").strip("-") + ".log")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self, cmd: List[str]) -> Tuple[Optional[int], str]:
        """Run ``cmd`` to completion, returning exit status and output.

        The exit status is None when the command could not be started.
        """
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            return None, str(exc)
        return result.returncode, (result.stdout or "").strip()

    def _read_diagnostics(self, mountpoint: str) -> Tuple[Optional[str], str]:
        """Fetch and truncate the client log for a failed mount.

        Returns:
            ``(log_data, reason)`` — log_data is None when the log could
            not be read, and reason says why.
        """
        log_path = self.diagnostic_log_path(mountpoint)
        try:
            log_data = log_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Unable to read mount log %s: %s", log_path, exc)
            return None, str(exc)

        try:
            log_path.write_text("", encoding="utf-8")
        except OSError as exc:
            logger.warning("Unable to truncate mount log %s: %s", log_path, exc)
        return log_data, ""

    # ------------------------------------------------------------------
    # MountBackend
    # ------------------------------------------------------------------

    def attach(self, record: VolumeRecord) -> str:
        subdir = subdir_path(record)
        cmd = self.build_mount_command(record)
        returncode, output = self._run(cmd)

        if returncode != 0:
            status = f"exit status {returncode}" if returncode is not None else "not executed"
            log_path = self.diagnostic_log_path(record.mountpoint)
            log_data, reason = self._read_diagnostics(record.mountpoint)
            if log_data is not None:
                message = (
                    f"{self.fstype} command execute failed: {status} ({output}) \n{log_data}"
                )
            else:
                message = (
                    f"{self.fstype} command execute failed: {status} ({output}) "
                    f"Unable to fetch log data {log_path} because {reason}"
                )
            raise MountCommandError(
                message, returncode=returncode, output=output, log_data=log_data
            )

        try:
            ensure_directory(subdir, label="subdir ")
        except VolumeIOError:
            # Leave nothing mounted behind a record that stays unmounted.
            try:
                self.detach(record.mountpoint)
            except MountCommandError as exc:
                logger.error("Rollback unmount of %s failed: %s", record.mountpoint, exc)
            raise

        logger.info("Mounted %s at %s", record.source, record.mountpoint)
        return subdir

    def detach(self, path: str) -> None:
        returncode, output = self._run(["umount", path])
        if returncode != 0:
            status = f"exit status {returncode}" if returncode is not None else "not executed"
            raise MountCommandError(
                f"umount {path} failed: {status} ({output})",
                returncode=returncode,
                output=output,
            )
        logger.info("Unmounted %s", path)
