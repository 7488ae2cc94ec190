"""
Output surface boundary.

An output surface is a second browser page opened on ``<public_url>/#<route>/<token>``.
The page connects back over ``/ws/output/<token>`` and renders whatever snapshot
it last received. ``OutputSurface`` is the server-side handle of one such page.
"""

import logging
import time
import uuid
import webbrowser
from collections.abc import Callable
from typing import Any, Protocol

from showflow.config import Config
from showflow.messages import OutputSnapshot

logger = logging.getLogger(__name__)


class SnapshotSink(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class OutputSurface:
    def __init__(
        self,
        token: str,
        url: str,
        attach_timeout_s: float = 15.0,
        heartbeat_timeout_s: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.token = token
        self.url = url
        self._attach_timeout_s = attach_timeout_s
        self._heartbeat_timeout_s = heartbeat_timeout_s
        self._clock = clock
        self._opened_at = clock()
        self._last_seen: float | None = None
        self._sink: SnapshotSink | None = None
        self._closed = False
        self.snapshot: OutputSnapshot | None = None

    @property
    def attached(self) -> bool:
        return self._sink is not None

    @property
    def closed(self) -> bool:
        if self._closed:
            return True
        now = self._clock()
        if self._last_seen is None:
            return now - self._opened_at > self._attach_timeout_s
        return now - self._last_seen > self._heartbeat_timeout_s

    async def attach(self, sink: SnapshotSink) -> None:
        """Bind the page's socket and replay the last snapshot to it."""
        self._sink = sink
        self._last_seen = self._clock()
        logger.info("Output surface %s attached", self.token)
        if self.snapshot is not None:
            await self._send(self.snapshot)

    def heartbeat(self) -> None:
        self._last_seen = self._clock()

    def detach(self, sink: SnapshotSink) -> None:
        """Socket of the page went away. Only the currently attached one closes the surface."""
        if self._sink is not sink:
            logger.debug("Stale socket left output surface %s", self.token)
            return
        self.close()

    def close(self) -> None:
        if not self._closed:
            logger.info("Output surface %s closed", self.token)
        self._closed = True
        self._sink = None

    async def render(self, snapshot: OutputSnapshot) -> None:
        self.snapshot = snapshot
        if self._sink is not None:
            await self._send(snapshot)

    async def _send(self, snapshot: OutputSnapshot) -> None:
        sink = self._sink
        if sink is None:
            return
        try:
            await sink.send_json(snapshot.to_message())
        except Exception as exc:
            # Best effort: liveness is decided by the monitor, not by send errors
            logger.warning("Snapshot to output surface %s dropped: %s", self.token, exc)


class SurfaceHost:
    """Opens output surfaces and resolves routing tokens back to their handles."""

    def __init__(
        self,
        public_url: str,
        route: str = "output",
        launcher: Callable[[str], bool] = webbrowser.open_new,
        attach_timeout_s: float = 15.0,
        heartbeat_timeout_s: float = 5.0,
    ) -> None:
        self._public_url = public_url.rstrip("/")
        self._route = route
        self._launcher = launcher
        self._attach_timeout_s = attach_timeout_s
        self._heartbeat_timeout_s = heartbeat_timeout_s
        self._surfaces: dict[str, OutputSurface] = {}

    def url_for(self, token: str) -> str:
        return f"{self._public_url}/#{self._route}/{token}"

    def open(self) -> OutputSurface | None:
        """Launch a new surface page. Returns None when the launcher refuses."""
        token = uuid.uuid4().hex
        url = self.url_for(token)
        try:
            opened = self._launcher(url)
        except webbrowser.Error as exc:
            logger.warning("Output surface launch failed: %s", exc)
            opened = False
        if not opened:
            logger.warning("Output surface creation refused for %s", url)
            return None

        self._surfaces = {t: s for t, s in self._surfaces.items() if not s.closed}
        surface = OutputSurface(
            token,
            url,
            attach_timeout_s=self._attach_timeout_s,
            heartbeat_timeout_s=self._heartbeat_timeout_s,
        )
        self._surfaces[token] = surface
        logger.info("Output surface opened at %s", url)
        return surface

    def get(self, token: str) -> OutputSurface | None:
        surface = self._surfaces.get(token)
        if surface is None or surface.closed:
            return None
        return surface


def manual_launcher(url: str) -> bool:
    logger.info("Open the output surface on the display machine: %s", url)
    return True


def create_surface_host(cfg: Config) -> SurfaceHost:
    launcher = webbrowser.open_new if cfg.output.launcher == "browser" else manual_launcher
    return SurfaceHost(
        cfg.server.public_url,
        route=cfg.output.route,
        launcher=launcher,
        attach_timeout_s=cfg.output.attach_timeout_s,
        heartbeat_timeout_s=cfg.output.heartbeat_timeout_s,
    )
