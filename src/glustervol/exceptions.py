"""Exception hierarchy for volume plugin operations.

Every error a caller can see derives from VolumeError. Its string form
is the message returned over the plugin protocol.
"""

from __future__ import annotations

from typing import Optional


class VolumeError(Exception):
    """Base exception for all volume plugin errors."""


class VolumeValidationError(VolumeError):
    """A required volume field was empty after applying options."""


class VolumeNotFoundError(VolumeError):
    """No volume is registered under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"volume {name} not found")
        self.name = name


class VolumeInUseError(VolumeError):
    """Remove attempted while containers still reference the volume."""

    def __init__(self, name: str) -> None:
        super().__init__(f"volume {name} is currently used by a container")
        self.name = name


class VolumeNotEmptyError(VolumeError):
    """Remove attempted on a mountpoint that is not (provably) empty."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Directory for volume {name} where the volume is mounted is not empty. "
            "This would result in complete removal of all data. Please stop all "
            "containers that mount the same volume and subdirectory and try again."
        )
        self.name = name


class VolumeIOError(VolumeError):
    """Creating, inspecting or deleting a local directory failed."""


class MountCommandError(VolumeError):
    """The external mount or umount command failed.

    Attributes:
        returncode: Exit status, or None if the command could not run.
        output: Combined stdout/stderr of the command.
        log_data: Client log content recovered for the failure, if any.
    """

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        output: str = "",
        log_data: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output
        self.log_data = log_data


class PersistenceError(VolumeError):
    """Writing the state file failed."""


class StateCorruptError(PersistenceError):
    """The state file exists but cannot be read back."""
