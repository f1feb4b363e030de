"""Serve command: run the volume plugin on its unix socket."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

import click
from rich.markup import escape

from ._common import console, setup_logging

logger = logging.getLogger("glustervol.cli.serve")


def register_serve_commands(main: click.Group) -> None:
    """Register the serve command."""

    @main.command("serve")
    @click.option(
        "--config",
        "config_file",
        default=None,
        type=click.Path(dir_okay=False),
        help="YAML config file (default: $GLUSTERVOL_CONFIG).",
    )
    @click.option("--root", default=None, type=click.Path(), help="Plugin root directory.")
    @click.option("--servers", default=None, help="Default comma-separated server list.")
    @click.option("--volname", default=None, help="Default GlusterFS volume name.")
    @click.option("--socket", "socket_path", default=None, type=click.Path(), help="Plugin socket path.")
    @click.option("--group", "socket_group", default=None, help="Group owning the plugin socket.")
    @click.option("--debug", is_flag=True, default=False, help="Enable debug logging.")
    @click.option("--log-file", default=None, type=click.Path(), help="Also log to this file.")
    def serve(
        config_file: Optional[str],
        root: Optional[str],
        servers: Optional[str],
        volname: Optional[str],
        socket_path: Optional[str],
        socket_group: Optional[str],
        debug: bool,
        log_file: Optional[str],
    ):
        """Run the GlusterFS volume plugin.

        Environment variables SERVERS, VOLNAME and DEBUG set the create
        defaults and log level; flags override them.

        \b
        Examples:

            glustervol serve

            SERVERS=gfs1,gfs2 VOLNAME=gv0 glustervol serve --debug
        """
        from ..config import load_config
        from ..driver import VolumeDriver
        from ..exceptions import StateCorruptError
        from ..plugin import PluginServer, VolumePluginAPI

        config = load_config(
            Path(config_file) if config_file else None,
            root=root,
            default_servers=servers,
            default_volname=volname,
            socket_path=socket_path,
            socket_group=socket_group,
            debug=True if debug else None,
        )
        setup_logging(config.debug, Path(log_file).expanduser() if log_file else None)

        try:
            driver = VolumeDriver(config)
        except StateCorruptError as exc:
            logger.critical("%s", exc)
            console.print(f"[bold red]Cannot load volume state:[/] {escape(str(exc))}")
            sys.exit(1)

        server = PluginServer(
            VolumePluginAPI(driver),
            socket_path=config.socket_path,
            socket_group=config.socket_group,
        )
        try:
            server.start()
        except OSError as exc:
            logger.critical("Failed to start plugin server: %s", exc)
            console.print(f"[bold red]Cannot listen on {config.socket_path}:[/] {escape(str(exc))}")
            sys.exit(1)

        stop = threading.Event()

        def _handle_signal(signum, frame):
            logger.info("Received signal %s — stopping", signal.Signals(signum).name)
            stop.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, _handle_signal)

        console.print(
            f"[green]Serving[/] on [cyan]{config.socket_path}[/] "
            f"[dim](root {config.root}, Ctrl+C to stop)[/]"
        )
        try:
            while not stop.is_set():
                stop.wait(timeout=1)
        finally:
            server.shutdown()
