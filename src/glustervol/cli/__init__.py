"""
glustervol CLI — run the plugin and look at its registry.

The main Click group is defined here; each command group lives in its
own module and is attached through a register function.

Entry point: glustervol.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="glustervol")
def main():
    """glustervol — GlusterFS volume plugin for container runtimes."""


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .serve import register_serve_commands
from .volumes import register_volume_commands

register_serve_commands(main)
register_volume_commands(main)
