"""
Operator facade.

Every operator action enters through ``Studio``. It owns the switcher state,
the source registry, the standby slot and the output channel, and makes sure
each change of program or standby content is pushed before the action returns.
"""

import asyncio
import logging
from typing import Any

from aiortc.contrib.media import MediaRelay

from showflow import switcher
from showflow.bus import EventBus
from showflow.capture import (
    CaptureBackend,
    CaptureCancelled,
    CaptureConstraints,
    CaptureError,
    CaptureTarget,
)
from showflow.messages import Notice, NoticeLevel, OutputSnapshot, OutputStatus, ProgramView
from showflow.output import OutputChannel
from showflow.sources import Source, SourceRegistry
from showflow.standby import StandbyDecodeError, StandbyImage, StandbySlot
from showflow.surface import SurfaceHost

logger = logging.getLogger(__name__)


class Studio:
    def __init__(
        self,
        backend: CaptureBackend,
        host: SurfaceHost,
        bus: EventBus,
        constraints: CaptureConstraints | None = None,
        poll_interval_s: float = 1.0,
        standby_format: str = ".png",
        relay: MediaRelay | None = None,
    ) -> None:
        self._bus = bus
        self.state = switcher.SwitcherState()
        self.sources = SourceRegistry(
            backend, constraints, on_ended=self._source_ended, relay=relay
        )
        self.standby = StandbySlot(standby_format)
        self.output = OutputChannel(host, bus, poll_interval_s=poll_interval_s)
        self._pending: set[asyncio.Task[None]] = set()

    # --- sources ---

    async def add_source(self, target: CaptureTarget) -> Source | None:
        try:
            source = await self.sources.add_source(target)
        except CaptureCancelled:
            logger.info("Source picker cancelled")
            return None
        except CaptureError as exc:
            logger.error("Failed to add source: %s", exc)
            await self._notify(str(exc) or "Error adding source.")
            return None

        if source.id == self.sources.first_id:
            self.state = switcher.select_preview(self.state, source.id)
        await self._publish_state()
        return source

    async def remove_source(self, source_id: str) -> None:
        if source_id not in self.sources:
            return
        # State and registry change together, before anything can interleave
        was_live = self.state.program_id == source_id
        self.state = switcher.forget_source(self.state, source_id)
        self.sources.remove_source(source_id)

        if was_live:
            logger.info("Live source %s removed, cut to standby", source_id)
            await self.output.push(self.snapshot())
        await self._publish_state()

    def _source_ended(self, source_id: str) -> None:
        task = asyncio.create_task(self.remove_source(source_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # --- switching ---

    async def select_preview(self, source_id: str) -> bool:
        if source_id not in self.sources:
            logger.warning("Preview selection of unknown source %s ignored", source_id)
            return False
        self.state = switcher.select_preview(self.state, source_id)
        await self._publish_state()
        return True

    async def take(self) -> bool:
        if self.state.preview_id is None:
            return False
        self.state = switcher.take(self.state)
        logger.info("Take: %s is live", self.state.program_id)
        await self.output.push(self.snapshot())
        await self._publish_state()
        return True

    async def cut(self) -> None:
        self.state = switcher.cut(self.state)
        logger.info("Cut to standby")
        await self.output.push(self.snapshot())
        await self._publish_state()

    # --- standby ---

    async def upload_standby(self, data: bytes, filename: str | None = None) -> StandbyImage:
        try:
            image = self.standby.upload(data, filename)
        except StandbyDecodeError as exc:
            logger.error("Standby upload rejected: %s", exc)
            await self._notify(str(exc))
            raise
        await self.output.push(self.snapshot())
        await self._publish_state()
        return image

    # --- output ---

    async def connect_output(self) -> OutputStatus:
        status = await self.output.connect(self.snapshot())
        await self._publish_state()
        return status

    def snapshot(self) -> OutputSnapshot:
        program = self.sources.get(self.state.program_id)
        return OutputSnapshot(
            program=ProgramView(program.id, program.name) if program is not None else None,
            standby=self.standby.data_url(),
        )

    def describe(self) -> dict[str, Any]:
        return {
            "type": "state",
            "phase": self.state.phase.value,
            "preview_id": self.state.preview_id,
            "program_id": self.state.program_id,
            "sources": [
                {
                    "id": source.id,
                    "name": source.name,
                    "preview": source.id == self.state.preview_id,
                    "live": source.id == self.state.program_id,
                }
                for source in self.sources
            ],
            "standby_version": self.standby.image.version if self.standby.image is not None else None,
            "output": self.output.status.value,
        }

    def shutdown(self) -> None:
        self.output.close()
        self.sources.release_all()

    async def _notify(self, message: str, level: NoticeLevel = NoticeLevel.ERROR) -> None:
        await self._bus.publish_notice(Notice(message=message, level=level))

    async def _publish_state(self) -> None:
        await self._bus.publish_state(self.describe())
