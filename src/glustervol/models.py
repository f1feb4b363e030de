"""
Pydantic models for the volume registry and plugin configuration.

A VolumeRecord is everything the plugin knows about one named volume:
where it comes from on the cluster, where it lands on this host, and
how many containers are holding it right now.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from . import PLUGIN_ROOT

DEFAULT_SOCKET_PATH = Path("/run/docker/plugins/glusterfs.sock")
DEFAULT_LOG_DIR = Path("/var/log/glusterfs")
STATE_FILE_NAME = "gfs-state.json"


class VolumeRecord(BaseModel):
    """One named volume and its live reference count.

    Identity fields are fixed at creation. ``subdir_mountpoint`` is filled
    in on the first successful mount and goes stale once ``connections``
    drops back to zero.
    """

    name: str
    volname: str
    subdir: str
    servers: list[str] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)
    mountpoint: str = ""
    subdir_mountpoint: str = ""
    connections: int = 0

    @property
    def source(self) -> str:
        """Mount source in ``server1,server2:/volname`` form."""
        return f"{','.join(self.servers)}:/{self.volname}"

    @property
    def is_mounted(self) -> bool:
        return self.connections > 0


class VolumeInfo(BaseModel):
    """Name/path pair handed back by get and list."""

    name: str
    mountpoint: str = ""


class Capabilities(BaseModel):
    """Static plugin capabilities."""

    scope: str = "local"


class PluginConfig(BaseModel):
    """Runtime configuration for the volume plugin."""

    root: Path = Path(PLUGIN_ROOT)
    default_servers: str = ""
    default_volname: str = ""
    fstype: str = "glusterfs"
    log_dir: Path = DEFAULT_LOG_DIR
    socket_path: Path = DEFAULT_SOCKET_PATH
    socket_group: str = "root"
    debug: bool = False

    @property
    def volumes_dir(self) -> Path:
        """Directory under which every volume mountpoint is derived."""
        return self.root / "volumes"

    @property
    def state_path(self) -> Path:
        """Location of the persisted registry."""
        return self.root / "state" / STATE_FILE_NAME
