"""Tests for phase dispatch, silent chaining and attempt escalation."""

import logging

import pytest

from src.engine.contract import FAIL_CLOSED_TEXT
from src.engine.dispatcher import PhaseDispatcher
from src.engine.policy import policy_for
from src.engine.session import SessionState
from src.phases.common import PhaseContext, transition
from src.shared.types import Phase


class TestDispatch:
    """Routing by phase."""

    def test_greeting_plays_audio(
        self, dispatcher: PhaseDispatcher, state: SessionState, make_turn
    ) -> None:
        """The first turn plays the greeting and waits for the ID."""
        result = dispatcher.dispatch(make_turn(), state)
        assert result["action"] == {"type": "PLAY_AUDIO", "path": "quintero/greeting"}
        assert state.phase == "WAIT_ID"

    def test_legacy_phase_resolved(
        self, dispatcher: PhaseDispatcher, state: SessionState, make_turn
    ) -> None:
        """A stored legacy phase name is rewritten to the canonical one."""
        state.phase = "WAIT_RUT"
        result = dispatcher.dispatch(make_turn(""), state)
        assert state.phase == "WAIT_ID"
        assert result["next_phase"] == "WAIT_ID"
        assert state.id_attempts == 1

    def test_unknown_phase_routes_to_error(
        self,
        dispatcher: PhaseDispatcher,
        state: SessionState,
        make_turn,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """An unknown stored phase ends the call in ERROR."""
        state.phase = "WAIT_FOR_GODOT"
        with caplog.at_level(logging.ERROR, logger="src.engine.dispatcher"):
            result = dispatcher.dispatch(make_turn("hola"), state)
        assert state.phase == "ERROR"
        assert result["next_phase"] == "ERROR"
        assert result["hangup"] is True
        assert result["action"] == {"type": "END_CALL", "reason": "unknown-phase"}
        assert "unknown_phase" in caplog.text

    def test_phase_without_handler_routes_to_error(
        self, ctx: PhaseContext, state: SessionState, make_turn
    ) -> None:
        """A known phase missing from the handler map is treated as unknown."""
        dispatcher = PhaseDispatcher(ctx, handlers={})
        result = dispatcher.dispatch(make_turn(), state)
        assert result["next_phase"] == "ERROR"

    def test_transition_logged(
        self,
        dispatcher: PhaseDispatcher,
        state: SessionState,
        make_turn,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Committed transitions are logged."""
        with caplog.at_level(logging.INFO, logger="src.engine.dispatcher"):
            dispatcher.dispatch(make_turn(), state)
        assert "phase_transition" in caplog.text

    def test_non_dict_result_returned_as_is(
        self, ctx: PhaseContext, state: SessionState, make_turn
    ) -> None:
        """Malformed handler output is left for the turn boundary to reject."""
        dispatcher = PhaseDispatcher(ctx, handlers={Phase.START_GREETING: lambda t, s, c: None})
        assert dispatcher.dispatch(make_turn(), state) is None
        assert state.phase == "START_GREETING"


class TestSilentChaining:
    """Silent transitions run the next handler within the same turn."""

    def test_specialty_parsed_in_same_turn(
        self, dispatcher: PhaseDispatcher, state: SessionState, make_turn
    ) -> None:
        """ASK_SPECIALTY hands the utterance to PARSE_SPECIALTY."""
        state.phase = Phase.ASK_SPECIALTY.value
        result = dispatcher.dispatch(make_turn("necesito dentista"), state)
        assert state.phase == "ASK_DATE"
        assert state.specialty == "odontología"
        assert "odontología" in result["text"]

    def test_webhook_stops_the_chain(
        self, dispatcher: PhaseDispatcher, state: SessionState, make_turn
    ) -> None:
        """A delegated call is returned before its continuation handler runs."""
        state.phase = Phase.ASK_DATE.value
        state.id_formatted = "12345678-5"
        state.specialty = "pediatría"
        result = dispatcher.dispatch(make_turn("mañana"), state)
        assert state.phase == "CHECK_AVAILABILITY"
        assert result["action"] == {
            "type": "WEBHOOK",
            "name": "GET_NEXT_AVAILABILITY",
            "payload": {"id": "12345678-5", "specialty": "pediatría", "date": "2026-10-20"},
        }

    def test_hop_bound_fails_closed(
        self,
        ctx: PhaseContext,
        state: SessionState,
        make_turn,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A silent transition loop is cut off with the fail-closed response."""
        handlers = {
            Phase.WAIT_ID: lambda t, s, c: transition(Phase.CONFIRM_ID),
            Phase.CONFIRM_ID: lambda t, s, c: transition(Phase.WAIT_ID),
        }
        dispatcher = PhaseDispatcher(ctx, handlers=handlers, max_hops=2)
        state.phase = Phase.WAIT_ID.value
        with caplog.at_level(logging.WARNING, logger="src.engine.dispatcher"):
            result = dispatcher.dispatch(make_turn("hola"), state)
        assert result["text"] == FAIL_CLOSED_TEXT
        assert result["skip_input"] is False
        assert "silent_chain_exceeded" in caplog.text


def _prepared_state(state: SessionState, phase: Phase) -> SessionState:
    state.phase = phase.value
    state.id_body = "12345678"
    state.id_check_digit = "5"
    state.id_formatted = "12345678-5"
    state.specialty = "medicina general"
    state.offered_date = "2026-10-20"
    state.offered_time = "10:30"
    return state


class TestEscalation:
    """Repeated silence never keeps a caller in a listening phase forever."""

    @pytest.mark.parametrize(
        "phase",
        [
            Phase.WAIT_ID,
            Phase.CONFIRM_ID,
            Phase.ASK_SPECIALTY,
            Phase.ASK_DATE,
            Phase.CONFIRM_APPOINTMENT,
            Phase.OFFER_ALTERNATIVES_WAIT,
        ],
    )
    def test_phase_left_at_threshold(
        self, dispatcher: PhaseDispatcher, state: SessionState, make_turn, phase: Phase
    ) -> None:
        """The phase re-prompts below the threshold and moves on at it."""
        _prepared_state(state, phase)
        threshold = policy_for(phase).threshold
        for _ in range(threshold - 1):
            result = dispatcher.dispatch(make_turn(""), state)
            assert state.phase == phase.value
            assert result["text"]
        dispatcher.dispatch(make_turn(""), state)
        assert state.phase != phase.value
        assert getattr(state, policy_for(phase).counter) <= threshold

    def test_wait_id_silence_ends_call(
        self, dispatcher: PhaseDispatcher, state: SessionState, make_turn
    ) -> None:
        """Three silent turns in WAIT_ID hang up with silence-exhausted."""
        state.phase = Phase.WAIT_ID.value
        for _ in range(2):
            dispatcher.dispatch(make_turn(""), state)
        result = dispatcher.dispatch(make_turn(""), state)
        assert result["hangup"] is True
        assert result["action"] == {"type": "END_CALL", "reason": "silence-exhausted"}
        assert state.phase == "FAILED"
