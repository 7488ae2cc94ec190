import asyncio
import logging
from collections.abc import Awaitable, Callable

from showflow.surface import OutputSurface

logger = logging.getLogger(__name__)


class ConnectionMonitor:
    """
    Fixed-period liveness poll of the output surface.

    Reports the surface as gone exactly once, then stops until started again.
    """

    def __init__(
        self,
        on_gone: Callable[[OutputSurface], Awaitable[None]],
        interval_s: float = 1.0,
    ) -> None:
        self.interval_s = interval_s
        self._on_gone = on_gone
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, surface: OutputSurface) -> None:
        self.stop()
        self._task = asyncio.create_task(self._poll(surface))

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _poll(self, surface: OutputSurface) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            if surface.closed:
                logger.info("Output surface %s is gone", surface.token)
                await self._on_gone(surface)
                return
