"""
Docker volume plugin protocol.

Docker talks to volume plugins with JSON POSTs over a unix socket:
``/Plugin.Activate`` once, then ``/VolumeDriver.<Op>`` per request.
Failures are reported in-band as ``{"Err": "<message>"}``.

VolumePluginAPI maps those endpoints onto a VolumeDriver and knows
nothing about sockets; PluginServer puts it on the wire.
"""

from __future__ import annotations

import grp
import json
import logging
import os
import socketserver
import threading
from http.server import BaseHTTPRequestHandler
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .driver import VolumeDriver
from .exceptions import VolumeError

logger = logging.getLogger("glustervol.plugin")

CONTENT_TYPE = "application/vnd.docker.plugins.v1.1+json"


class UnknownEndpointError(KeyError):
    """No handler is registered for the requested path."""


class VolumePluginAPI:
    """Translate plugin protocol payloads into driver calls.

    Args:
        driver: The volume driver that does the work.
    """

    def __init__(self, driver: VolumeDriver) -> None:
        self.driver = driver
        self._routes: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "/Plugin.Activate": self._activate,
            "/VolumeDriver.Create": self._create,
            "/VolumeDriver.Remove": self._remove,
            "/VolumeDriver.Mount": self._mount,
            "/VolumeDriver.Unmount": self._unmount,
            "/VolumeDriver.Path": self._path,
            "/VolumeDriver.Get": self._get,
            "/VolumeDriver.List": self._list,
            "/VolumeDriver.Capabilities": self._capabilities,
        }

    @property
    def endpoints(self) -> list[str]:
        return list(self._routes)

    def handle(self, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Dispatch one protocol request.

        Args:
            endpoint: Request path, e.g. ``/VolumeDriver.Mount``.
            payload: Decoded JSON body.

        Returns:
            Response body. Driver errors become ``{"Err": message}``.

        Raises:
            UnknownEndpointError: If the endpoint is not part of the protocol.
        """
        route = self._routes.get(endpoint)
        if route is None:
            raise UnknownEndpointError(endpoint)
        try:
            return route(payload or {})
        except VolumeError as exc:
            return {"Err": str(exc)}

    # ------------------------------------------------------------------
    # Endpoint handlers
    # ------------------------------------------------------------------

    def _activate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"Implements": ["VolumeDriver"]}

    def _create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.driver.create(payload.get("Name", ""), payload.get("Opts") or {})
        return {"Err": ""}

    def _remove(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.driver.remove(payload.get("Name", ""))
        return {"Err": ""}

    def _mount(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        path = self.driver.mount(payload.get("Name", ""))
        return {"Mountpoint": path, "Err": ""}

    def _unmount(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.driver.unmount(payload.get("Name", ""))
        return {"Err": ""}

    def _path(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"Mountpoint": self.driver.path(payload.get("Name", "")), "Err": ""}

    def _get(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        info = self.driver.get(payload.get("Name", ""))
        return {"Volume": {"Name": info.name, "Mountpoint": info.mountpoint}, "Err": ""}

    def _list(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        volumes = [{"Name": v.name, "Mountpoint": v.mountpoint} for v in self.driver.list()]
        return {"Volumes": volumes, "Err": ""}

    def _capabilities(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"Capabilities": {"Scope": self.driver.capabilities().scope}}


class _UnixHTTPServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True


def _make_handler(api: VolumePluginAPI) -> type:
    class PluginHandler(BaseHTTPRequestHandler):
        """HTTP handler for the plugin protocol."""

        def do_POST(self):
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length else b""
            try:
                payload = json.loads(body) if body.strip() else {}
            except json.JSONDecodeError as exc:
                self._json_response({"Err": f"invalid request body: {exc}"}, status=400)
                return
            if not isinstance(payload, dict):
                self._json_response({"Err": "request body must be a JSON object"}, status=400)
                return

            try:
                response = api.handle(self.path, payload)
            except UnknownEndpointError:
                self._json_response({"Err": f"unknown endpoint {self.path}"}, status=404)
                return
            except Exception as exc:
                logger.exception("Unhandled error serving %s", self.path)
                self._json_response({"Err": str(exc)}, status=500)
                return
            self._json_response(response)

        def _json_response(self, data: dict, status: int = 200):
            body = json.dumps(data).encode()
            self.send_response(status)
            self.send_header("Content-Type", CONTENT_TYPE)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def address_string(self):
            return "unix"

        def log_message(self, format, *args):
            logger.debug("API: %s", format % args)

    return PluginHandler


class PluginServer:
    """Serve a VolumePluginAPI on a unix socket.

    Args:
        api: Protocol adapter to serve.
        socket_path: Socket file to create (a stale one is replaced).
        socket_group: Group that gets read/write access to the socket.
    """

    def __init__(
        self,
        api: VolumePluginAPI,
        socket_path: Path,
        socket_group: Optional[str] = "root",
    ) -> None:
        self.api = api
        self.socket_path = Path(socket_path)
        self.socket_group = socket_group
        self._server: Optional[_UnixHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def _set_permissions(self) -> None:
        os.chmod(self.socket_path, 0o660)
        if not self.socket_group:
            return
        try:
            gid = grp.getgrnam(self.socket_group).gr_gid
            os.chown(self.socket_path, -1, gid)
        except KeyError:
            logger.warning("Group %s not found; socket group unchanged", self.socket_group)
        except PermissionError as exc:
            logger.warning("Cannot set socket group %s: %s", self.socket_group, exc)

    def start(self) -> None:
        """Bind the socket and start serving in a background thread."""
        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        self.socket_path.unlink(missing_ok=True)

        self._server = _UnixHTTPServer(str(self.socket_path), _make_handler(self.api))
        self._set_permissions()

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="plugin-api",
            daemon=True,
        )
        self._thread.start()
        logger.info("listening on %s", self.socket_path)

    def shutdown(self) -> None:
        """Stop serving and remove the socket file."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread:
            self._thread.join(timeout=5)
        self._server = None
        self.socket_path.unlink(missing_ok=True)
        logger.info("Plugin server stopped")
