"""Tests for the duplicate speech guard."""

import logging

import pytest

from src.engine.replay import apply_replay_guard
from src.engine.session import SessionState
from src.shared.response_models import DomainResponse
from src.shared.types import Phase


class TestReplayGuard:
    """The same text is never spoken twice in a row for a phase."""

    def test_first_speech_is_cached(self, state: SessionState) -> None:
        """New text passes through and is remembered."""
        response = DomainResponse(next_phase=Phase.WAIT_ID, text="Dígame su RUT")
        result = apply_replay_guard(response, state)
        assert result.text == "Dígame su RUT"
        assert state.last_spoken_phase == "WAIT_ID"
        assert state.last_spoken_text == "Dígame su RUT"

    def test_duplicate_is_suppressed(
        self, state: SessionState, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Identical (phase, text) is nulled and logged."""
        state.last_spoken_phase = "WAIT_ID"
        state.last_spoken_text = "Dígame su RUT"
        response = DomainResponse(next_phase=Phase.WAIT_ID, text="Dígame su RUT")
        with caplog.at_level(logging.WARNING, logger="src.engine.replay"):
            result = apply_replay_guard(response, state)
        assert result.text is None
        assert response.text == "Dígame su RUT"
        assert "duplicate_speech_suppressed" in caplog.text

    def test_same_text_other_phase_passes(self, state: SessionState) -> None:
        """The guard is per phase."""
        state.last_spoken_phase = "WAIT_ID"
        state.last_spoken_text = "Gracias"
        response = DomainResponse(next_phase=Phase.ASK_DATE, text="Gracias")
        assert apply_replay_guard(response, state).text == "Gracias"
        assert state.last_spoken_phase == "ASK_DATE"

    def test_silent_response_leaves_cache(self, state: SessionState) -> None:
        """Responses without text do not touch the cache."""
        state.last_spoken_phase = "WAIT_ID"
        state.last_spoken_text = "Hola"
        apply_replay_guard(DomainResponse(next_phase=Phase.CONFIRM_ID), state)
        assert state.last_spoken_phase == "WAIT_ID"
        assert state.last_spoken_text == "Hola"

    def test_alternating_texts_both_spoken(self, state: SessionState) -> None:
        """A different text in between clears the way for a repeat."""
        first = DomainResponse(next_phase=Phase.WAIT_ID, text="A")
        second = DomainResponse(next_phase=Phase.WAIT_ID, text="B")
        assert apply_replay_guard(first, state).text == "A"
        assert apply_replay_guard(second, state).text == "B"
        assert apply_replay_guard(first, state).text == "A"
