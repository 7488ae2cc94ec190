"""Single-slot standby image shown on the output when nothing is live."""

import base64
import logging
from dataclasses import dataclass, field

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {".png": "image/png", ".jpg": "image/jpeg"}

# Formats every browser renders as is, uploads in these are kept byte for byte
_PASSTHROUGH = ((b"\x89PNG\r\n\x1a\n", "image/png"), (b"\xff\xd8\xff", "image/jpeg"))


class StandbyDecodeError(Exception):
    pass


@dataclass(frozen=True)
class StandbyImage:
    payload: np.ndarray  # decoded BGR image
    encoded: bytes
    content_type: str
    version: int
    filename: str | None = None
    url: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        encoded = base64.b64encode(self.encoded).decode("ascii")
        object.__setattr__(self, "url", f"data:{self.content_type};base64,{encoded}")

    @property
    def size(self) -> tuple[int, int]:
        height, width = self.payload.shape[:2]
        return width, height

    def data_url(self) -> str:
        return self.url


class StandbySlot:
    def __init__(self, encode_format: str = ".png") -> None:
        self._encode_format = encode_format
        self._image: StandbyImage | None = None
        self._version = 0

    @property
    def image(self) -> StandbyImage | None:
        return self._image

    def data_url(self) -> str | None:
        return self._image.data_url() if self._image is not None else None

    def upload(self, data: bytes, filename: str | None = None) -> StandbyImage:
        """
        Decode an uploaded file and replace the current standby image.

        The file type is not checked up front: whatever OpenCV can decode is
        accepted. PNG and JPEG files are kept as uploaded, anything else is
        re-encoded to the configured format. On failure the slot keeps its
        previous image.

        Raises:
            StandbyDecodeError: data is empty or not a decodable image
        """
        if not data:
            raise StandbyDecodeError("Standby image is empty.")

        buffer = np.frombuffer(data, dtype=np.uint8)
        try:
            payload = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        except cv2.error as exc:
            raise StandbyDecodeError(f"Cannot decode standby image: {exc}") from exc
        if payload is None:
            raise StandbyDecodeError(f"Cannot decode standby image {filename or ''}".rstrip() + ".")

        encoded, content_type = self._encode(data, payload)
        self._version += 1
        self._image = StandbyImage(
            payload=payload,
            encoded=encoded,
            content_type=content_type,
            version=self._version,
            filename=filename,
        )
        width, height = self._image.size
        logger.info("Standby image replaced (%dx%d, %s)", width, height, filename or "unnamed")
        return self._image

    def _encode(self, data: bytes, payload: np.ndarray) -> tuple[bytes, str]:
        for magic, content_type in _PASSTHROUGH:
            if data.startswith(magic):
                return data, content_type
        ok, encoded = cv2.imencode(self._encode_format, payload)
        if not ok:
            raise StandbyDecodeError("Cannot re-encode standby image.")
        return encoded.tobytes(), _CONTENT_TYPES[self._encode_format]

    def clear(self) -> None:
        self._image = None
