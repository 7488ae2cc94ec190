import logging

from showflow.bus import EventBus
from showflow.messages import OutputSnapshot, OutputStatus
from showflow.monitor import ConnectionMonitor
from showflow.surface import OutputSurface, SurfaceHost

logger = logging.getLogger(__name__)


class OutputChannel:
    """
    One-way snapshot channel to the program monitor and the output surface.

    The local program monitor always receives every snapshot. The remote
    surface receives it only while connected; otherwise it is dropped, not
    queued. Disconnection is learned from the monitor alone.
    """

    def __init__(self, host: SurfaceHost, bus: EventBus, poll_interval_s: float = 1.0) -> None:
        self._host = host
        self._bus = bus
        self._surface: OutputSurface | None = None
        self.status = OutputStatus.DISCONNECTED
        self.monitor = ConnectionMonitor(self._surface_gone, interval_s=poll_interval_s)

    @property
    def surface(self) -> OutputSurface | None:
        return self._surface

    async def connect(self, snapshot: OutputSnapshot) -> OutputStatus:
        if self.status is OutputStatus.CONNECTED and self._surface is not None and not self._surface.closed:
            logger.info("Output surface %s already open, re-pushing", self._surface.token)
            await self._surface.render(snapshot)
            return self.status

        surface = self._host.open()
        if surface is None:
            self.monitor.stop()
            self._surface = None
            await self._set_status(OutputStatus.BLOCKED)
            return self.status

        self._surface = surface
        await self._set_status(OutputStatus.CONNECTED)
        self.monitor.start(surface)
        # A fresh surface must never come up blank
        await surface.render(snapshot)
        return self.status

    async def push(self, snapshot: OutputSnapshot) -> None:
        await self._bus.publish_program(snapshot)

        if self.status is not OutputStatus.CONNECTED or self._surface is None:
            logger.debug("Output not connected, snapshot dropped")
            return
        await self._surface.render(snapshot)

    def close(self) -> None:
        self.monitor.stop()
        if self._surface is not None:
            self._surface.close()

    async def _surface_gone(self, surface: OutputSurface) -> None:
        if surface is not self._surface:
            return
        self._surface = None
        await self._set_status(OutputStatus.DISCONNECTED)

    async def _set_status(self, status: OutputStatus) -> None:
        if status is self.status:
            return
        logger.info("Output status %s -> %s", self.status.value, status.value)
        self.status = status
        await self._bus.publish_output_status(status)
