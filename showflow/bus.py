import asyncio
from collections import defaultdict
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

T = TypeVar("T")
Handler = Callable[[T], Coroutine[Any, Any, None]]

STATE_TOPIC = "studio/state"
NOTICE_TOPIC = "studio/notice"
OUTPUT_STATUS_TOPIC = "output/status"
PROGRAM_TOPIC = "program/snapshot"


class EventBus:
    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler[Any]]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def subscribe(self, topic: str, handler: Handler[T]) -> None:
        async with self._lock:
            self._subscribers[topic].append(handler)  # type: ignore[arg-type]

    async def unsubscribe(self, topic: str, handler: Handler[T]) -> None:
        async with self._lock:
            handlers = self._subscribers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)  # type: ignore[arg-type]

    async def publish(self, topic: str, message: T) -> None:
        async with self._lock:
            handlers = list(self._subscribers.get(topic, []))
        if not handlers:
            return
        await asyncio.gather(*(h(message) for h in handlers))

    async def publish_state(self, state: Any) -> None:
        await self.publish(STATE_TOPIC, state)

    async def publish_notice(self, notice: Any) -> None:
        await self.publish(NOTICE_TOPIC, notice)

    async def publish_output_status(self, status: Any) -> None:
        await self.publish(OUTPUT_STATUS_TOPIC, status)

    async def publish_program(self, snapshot: Any) -> None:
        await self.publish(PROGRAM_TOPIC, snapshot)
