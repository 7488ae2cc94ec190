from dataclasses import dataclass
from enum import Enum
from typing import Any


class OutputStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    BLOCKED = "blocked"


class NoticeLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


@dataclass
class Notice:
    message: str
    level: NoticeLevel = NoticeLevel.ERROR


@dataclass(frozen=True)
class ProgramView:
    id: str
    name: str


@dataclass(frozen=True)
class OutputSnapshot:
    """What the program monitor and the output surface should show."""

    program: ProgramView | None = None
    standby: str | None = None  # data URL

    @property
    def layer(self) -> str:
        # Video wins whenever something is on program, standby or not
        return "video" if self.program is not None else "fallback"

    def to_message(self) -> dict[str, Any]:
        return {
            "type": "snapshot",
            "layer": self.layer,
            "program": (
                {"id": self.program.id, "name": self.program.name}
                if self.program is not None
                else None
            ),
            "standby": self.standby,
        }
