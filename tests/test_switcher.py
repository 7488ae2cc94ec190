"""Тесты чистых переходов коммутатора."""

from showflow.switcher import (
    SwitcherPhase,
    SwitcherState,
    cut,
    forget_source,
    select_preview,
    take,
)


def test_initial_state_is_idle() -> None:
    state = SwitcherState()

    assert state.preview_id is None
    assert state.program_id is None
    assert state.phase is SwitcherPhase.IDLE


def test_select_preview_does_not_touch_program() -> None:
    state = SwitcherState(preview_id="a", program_id="a")

    state = select_preview(state, "b")

    assert state.preview_id == "b"
    assert state.program_id == "a"
    assert state.phase is SwitcherPhase.LIVE


def test_take_without_preview_is_noop() -> None:
    """take() без превью не меняет программу."""
    state = SwitcherState(program_id="a")

    assert take(state) == state
    assert take(SwitcherState()) == SwitcherState()


def test_take_promotes_preview() -> None:
    state = take(select_preview(SwitcherState(), "a"))

    assert state.program_id == "a"
    assert state.preview_id == "a"
    assert state.phase is SwitcherPhase.LIVE


def test_take_replaces_previous_program() -> None:
    """В эфире всегда не более одного источника."""
    state = take(select_preview(SwitcherState(), "a"))
    state = take(select_preview(state, "b"))

    assert state.program_id == "b"


def test_cut_is_idempotent() -> None:
    state = SwitcherState(preview_id="a", program_id="a")

    once = cut(state)
    twice = cut(once)

    assert once.program_id is None
    assert once == twice
    assert once.phase is SwitcherPhase.PREVIEWING


def test_states_do_not_mutate() -> None:
    state = SwitcherState(preview_id="a")
    take(state)

    assert state.program_id is None


def test_forget_source_clears_every_reference() -> None:
    state = SwitcherState(preview_id="a", program_id="a")

    state = forget_source(state, "a")

    assert state == SwitcherState()


def test_forget_source_leaves_other_sources_alone() -> None:
    state = SwitcherState(preview_id="b", program_id="a")

    assert forget_source(state, "c") == state
    assert forget_source(state, "b") == SwitcherState(program_id="a")
