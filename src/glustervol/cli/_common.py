"""Shared utilities for the CLI command modules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from .. import PLUGIN_ROOT
from ..models import PluginConfig

console = Console()

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def state_path_for(root: str) -> Path:
    """State file location for a plugin root directory."""
    return PluginConfig(root=Path(root).expanduser()).state_path


def setup_logging(debug: bool, log_file: Optional[Path] = None) -> None:
    """Configure console (and optionally file) logging.

    Args:
        debug: Log at DEBUG instead of INFO.
        log_file: Extra file to append log records to.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


__all__ = ["PLUGIN_ROOT", "console", "setup_logging", "state_path_for"]
