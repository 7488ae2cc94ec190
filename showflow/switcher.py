"""Preview/program state machine.

The whole switcher lives in one immutable ``SwitcherState`` value; the
transitions below are pure functions returning the next state, so they can be
exercised without any capture device or rendering surface.

Phases are derived rather than stored:

- idle: nothing previewed, nothing on program
- previewing: a preview is selected, program is empty or holds another source
- live: something is on program
"""

from dataclasses import dataclass, replace
from enum import Enum


class SwitcherPhase(str, Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    LIVE = "live"


@dataclass(frozen=True)
class SwitcherState:
    preview_id: str | None = None
    program_id: str | None = None

    @property
    def phase(self) -> SwitcherPhase:
        if self.program_id is not None:
            return SwitcherPhase.LIVE
        if self.preview_id is not None:
            return SwitcherPhase.PREVIEWING
        return SwitcherPhase.IDLE


def select_preview(state: SwitcherState, source_id: str | None) -> SwitcherState:
    """Put ``source_id`` on preview; ``None`` clears it. Program is untouched."""
    return replace(state, preview_id=source_id)


def take(state: SwitcherState) -> SwitcherState:
    """Promote the preview selection to program. No-op without a preview."""
    if state.preview_id is None:
        return state
    return replace(state, program_id=state.preview_id)


def cut(state: SwitcherState) -> SwitcherState:
    """Clear program (panic). Idempotent."""
    if state.program_id is None:
        return state
    return replace(state, program_id=None)


def forget_source(state: SwitcherState, source_id: str) -> SwitcherState:
    """Drop every reference to a source that is leaving the registry."""
    if state.program_id == source_id:
        state = cut(state)
    if state.preview_id == source_id:
        state = select_preview(state, None)
    return state
