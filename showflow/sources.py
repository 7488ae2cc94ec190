import asyncio
import logging
import uuid
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from aiortc.contrib.media import MediaRelay
from aiortc.mediastreams import MediaStreamError

from showflow.capture import (
    CaptureBackend,
    CaptureConstraints,
    CaptureHandle,
    CaptureTarget,
)

logger = logging.getLogger(__name__)


@dataclass
class Source:
    id: str
    name: str
    handle: CaptureHandle

    def release(self) -> None:
        self.handle.stop()


class SourceRegistry:
    """
    Ordered collection of acquired capture sources.

    Insertion order is the gallery order. The registry never reorders entries,
    and it remembers the first source it ever accepted so the caller can make
    exactly that one the initial preview.

    With a relay, every source is read continuously from the moment it is
    added. A capture track only notices the end of its device stream while
    somebody reads it, and gallery sources may have no viewer at all.
    """

    def __init__(
        self,
        backend: CaptureBackend,
        constraints: CaptureConstraints | None = None,
        on_ended: Callable[[str], None] | None = None,
        relay: MediaRelay | None = None,
    ) -> None:
        self._backend = backend
        self._constraints = constraints or CaptureConstraints()
        self._on_ended = on_ended
        self._relay = relay
        self._sources: dict[str, Source] = {}
        self._drains: dict[str, asyncio.Task[None]] = {}
        self.first_id: str | None = None

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[Source]:
        return iter(list(self._sources.values()))

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._sources

    def get(self, source_id: str | None) -> Source | None:
        if source_id is None:
            return None
        return self._sources.get(source_id)

    async def add_source(self, target: CaptureTarget) -> Source:
        """
        Acquire a capture handle and append it as a new source.

        Raises:
            CaptureCancelled: the operator dismissed the picker
            CaptureError: the platform refused or failed
        """
        handle = await self._backend.acquire(target, self._constraints)

        # No awaits below: the append is atomic with respect to other events
        source = Source(
            id=uuid.uuid4().hex,
            name=handle.label or f"Source {len(self._sources) + 1}",
            handle=handle,
        )
        self._sources[source.id] = source
        if self.first_id is None:
            self.first_id = source.id

        handle.video.on("ended", lambda: self._handle_ended(source.id))
        if self._relay is not None:
            self._drains[source.id] = asyncio.create_task(self._drain(source))
        logger.info("Added source %s (%s)", source.name, source.id)
        return source

    def remove_source(self, source_id: str) -> Source | None:
        source = self._sources.pop(source_id, None)
        if source is None:
            return None
        drain = self._drains.pop(source_id, None)
        if drain is not None:
            drain.cancel()
        source.release()
        logger.info("Removed source %s (%s)", source.name, source.id)
        return source

    def release_all(self) -> None:
        for source_id in list(self._sources):
            self.remove_source(source_id)

    async def _drain(self, source: Source) -> None:
        track = self._relay.subscribe(source.handle.video, buffered=False)
        try:
            while True:
                await track.recv()
        except MediaStreamError:
            logger.debug("Capture stream of source %s finished", source.id)
        finally:
            track.stop()

    def _handle_ended(self, source_id: str) -> None:
        # Fires for our own release() too, by then the entry is already gone
        if source_id not in self._sources:
            return
        logger.info("Capture for source %s ended on the device side", source_id)
        if self._on_ended is not None:
            self._on_ended(source_id)
