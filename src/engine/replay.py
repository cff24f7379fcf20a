"""Anti-replay guard: never speak the same text twice in a row for a phase."""

import logging

from src.engine.session import SessionState
from src.shared.response_models import DomainResponse

logger = logging.getLogger(__name__)


def apply_replay_guard(response: DomainResponse, state: SessionState) -> DomainResponse:
    """Suppress text identical to what was just spoken for the same phase.

    When (next_phase, text) equals the cached pair the text is nulled and
    the cache is left alone; otherwise the cache is updated.

    Args:
        response: Validated response about to be returned.
        state: Session state holding the last spoken pair.

    Returns:
        The response, with text removed if it is a replay.
    """
    if response.text is None:
        return response
    phase = response.next_phase.value
    if state.last_spoken_phase == phase and state.last_spoken_text == response.text:
        logger.warning(
            "duplicate_speech_suppressed",
            extra={"session_id": state.session_id, "phase": phase},
        )
        return response.model_copy(update={"text": None})
    state.last_spoken_phase = phase
    state.last_spoken_text = response.text
    return response
