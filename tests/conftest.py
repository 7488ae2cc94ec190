"""Общие заглушки для тестов: захват, треки, окно вывода."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import cv2
import numpy as np
import pytest

from showflow.bus import EventBus
from showflow.capture import CaptureCancelled, CaptureConstraints, CaptureHandle, CaptureTarget
from showflow.studio import Studio
from showflow.surface import SurfaceHost


class DummyTrack:
    """Мок медиатрека без доступа к реальному устройству."""

    def __init__(self, kind: str = "video") -> None:
        self.kind = kind
        self.readyState = "live"
        self.stop_calls = 0
        self._handlers: dict[str, list[Callable[[], Any]]] = {}

    def on(self, event: str, handler: Callable[[], Any]) -> Callable[[], Any]:
        self._handlers.setdefault(event, []).append(handler)
        return handler

    def stop(self) -> None:
        """Как у aiortc: событие ended срабатывает один раз."""

        self.stop_calls += 1
        if self.readyState == "ended":
            return
        self.readyState = "ended"
        for handler in self._handlers.get("ended", []):
            handler()


class DummyBackend:
    """Бэкенд захвата, выдающий заглушки вместо ffmpeg."""

    def __init__(self) -> None:
        self.calls: list[tuple[CaptureTarget, CaptureConstraints]] = []
        self.handles: list[CaptureHandle] = []
        self.error: Exception | None = None

    async def acquire(self, target: CaptureTarget, constraints: CaptureConstraints) -> CaptureHandle:
        self.calls.append((target, constraints))
        if target.device is None:
            raise CaptureCancelled()
        if self.error is not None:
            raise self.error
        handle = CaptureHandle(video=DummyTrack(), audio=DummyTrack("audio"), label=target.label)
        self.handles.append(handle)
        return handle


class RecordingSink:
    """Заглушка WebSocket страницы вывода."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        self.messages.append(data)


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class Recorder:
    """Подписчик шины, запоминающий все сообщения темы."""

    def __init__(self) -> None:
        self.messages: list[Any] = []

    async def __call__(self, message: Any) -> None:
        self.messages.append(message)


@pytest.fixture
def backend() -> DummyBackend:
    return DummyBackend()


@pytest.fixture
def launched() -> list[str]:
    return []


@pytest.fixture
def surface_host(launched: list[str]) -> SurfaceHost:
    def _launcher(url: str) -> bool:
        launched.append(url)
        return True

    return SurfaceHost("http://showflow.test", launcher=_launcher)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def studio(backend: DummyBackend, surface_host: SurfaceHost, bus: EventBus) -> Studio:
    return Studio(backend, surface_host, bus, poll_interval_s=0.01)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_sink() -> Callable[[], RecordingSink]:
    return RecordingSink


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorder() -> Callable[[], Recorder]:
    return Recorder


@pytest.fixture
def png_bytes() -> bytes:
    image = np.zeros((4, 6, 3), dtype=np.uint8)
    image[:, :, 2] = 255
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()
