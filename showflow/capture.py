"""
Screen capture acquisition.

Opens the platform screen grabber through aiortc's MediaPlayer (ffmpeg via PyAV)
and hands back live tracks. Opening a device is blocking, so it runs in a
worker thread and the event loop keeps serving operator actions meanwhile.
"""

import asyncio
import logging
import os
import platform
from dataclasses import dataclass
from typing import Protocol

import av.error
from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaPlayer

from showflow.config import CaptureConfig, CaptureTargetConfig

logger = logging.getLogger(__name__)

GRAPHICAL_SESSION_REQUIRED = "Screen capture requires a graphical session."


class CaptureCancelled(Exception):
    """Operator dismissed the source picker."""


class CaptureError(Exception):
    """Acquisition failed; the message is shown to the operator as is."""


@dataclass(frozen=True)
class CaptureConstraints:
    cursor: bool = False
    audio: bool = True


@dataclass(frozen=True)
class CaptureTarget:
    # None means the picker was cancelled, "" means the platform default screen
    device: str | None
    label: str | None = None


@dataclass
class CaptureHandle:
    video: MediaStreamTrack
    audio: MediaStreamTrack | None = None
    label: str | None = None

    def stop(self) -> None:
        """Release the capture device. Safe to call more than once."""
        for track in (self.video, self.audio):
            if track is not None and track.readyState == "live":
                track.stop()


class CaptureBackend(Protocol):
    async def acquire(
        self, target: CaptureTarget, constraints: CaptureConstraints
    ) -> CaptureHandle:
        ...


def screen_input(
    device: str,
    constraints: CaptureConstraints,
    cfg: CaptureConfig,
    system: str | None = None,
) -> tuple[str, str, dict[str, str]]:
    """Map a picker device onto (file, ffmpeg format, options) for MediaPlayer."""
    system = system or platform.system()

    options = {"framerate": str(cfg.framerate)}
    if cfg.video_size:
        options["video_size"] = cfg.video_size
    draw_cursor = "1" if constraints.cursor else "0"

    if system == "Linux":
        display = device or cfg.display or os.environ.get("DISPLAY")
        if not display:
            raise CaptureError(GRAPHICAL_SESSION_REQUIRED)
        options["draw_mouse"] = draw_cursor
        return display, "x11grab", options

    if system == "Darwin":
        options["capture_cursor"] = draw_cursor
        return device or "1:none", "avfoundation", options

    if system == "Windows":
        options["draw_mouse"] = draw_cursor
        return device or "desktop", "gdigrab", options

    raise CaptureError(f"Screen capture is not supported on {system}.")


def _open_player(file: str, fmt: str | None, options: dict[str, str]) -> MediaPlayer:
    try:
        return MediaPlayer(file, format=fmt, options=options)
    except (av.error.FFmpegError, OSError) as exc:
        raise CaptureError(str(exc) or "Error adding source.") from exc


class ScreenCaptureBackend:
    def __init__(self, cfg: CaptureConfig) -> None:
        self._cfg = cfg

    def list_targets(self) -> list[CaptureTargetConfig]:
        return list(self._cfg.targets)

    async def acquire(
        self, target: CaptureTarget, constraints: CaptureConstraints
    ) -> CaptureHandle:
        if target.device is None:
            raise CaptureCancelled()

        file, fmt, options = screen_input(target.device, constraints, self._cfg)
        logger.info("Opening %s capture on %r", fmt, file)
        player = await asyncio.to_thread(_open_player, file, fmt, options)

        if player.video is None:
            if player.audio is not None:
                player.audio.stop()
            raise CaptureError(f"Capture device {file!r} delivered no video.")

        audio = player.audio
        if not constraints.audio and audio is not None:
            # Unread tracks still hold the container open
            audio.stop()
            audio = None

        if constraints.audio and audio is None and self._cfg.audio_device:
            # Screen grabbers rarely carry sound, pick it up from a separate input
            try:
                audio_player = await asyncio.to_thread(
                    _open_player, self._cfg.audio_device, self._cfg.audio_format, {}
                )
            except CaptureError as exc:
                logger.warning("Audio capture unavailable, continuing video-only: %s", exc)
            else:
                audio = audio_player.audio
                if audio_player.video is not None:
                    audio_player.video.stop()
                if audio is None:
                    logger.warning(
                        "Audio device %r delivered no sound, continuing video-only",
                        self._cfg.audio_device,
                    )

        return CaptureHandle(video=player.video, audio=audio, label=target.label)
