"""
glustervol — GlusterFS volume plugin for container runtimes.

Named volumes backed by a GlusterFS share, mounted once on the host
and shared by every container that references them.
"""

import os

__version__ = "0.1.0"

PLUGIN_ROOT = os.environ.get("GLUSTERVOL_ROOT", "/mnt")
