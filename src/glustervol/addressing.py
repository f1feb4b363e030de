"""Deterministic mountpoint derivation.

Each identity field is hashed on its own and becomes one path level, so
two volumes that differ in any single field never share a directory.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Union


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def derive_mountpoint(
    root: Union[str, Path], name: str, volname: str, subdir: str
) -> str:
    """Compute the mountpoint for a volume identity.

    Args:
        root: Directory the digests are nested under.
        name: Volume name.
        volname: Backing GlusterFS share.
        subdir: Subdirectory within the share.

    Returns:
        ``<root>/<sha256(name)>/<sha256(volname)>/<sha256(subdir)>``
    """
    return os.path.join(str(root), _digest(name), _digest(volname), _digest(subdir))
