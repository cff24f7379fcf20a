"""Phase dispatcher: route a turn to the handler of the current phase."""

import logging
from typing import Any

from src.engine.contract import fail_closed_response
from src.engine.session import SessionState
from src.phases import alternatives, closing, identity, scheduling
from src.phases.common import Handler, PhaseContext
from src.shared.response_models import TurnInput
from src.shared.types import ActionType, Phase, resolve_phase

logger = logging.getLogger(__name__)

# Silent transitions followed within one dispatch call.
MAX_SILENT_HOPS = 4

DEFAULT_HANDLERS: dict[Phase, Handler] = {
    Phase.START_GREETING: identity.start_greeting,
    Phase.WAIT_ID: identity.wait_id,
    Phase.CONFIRM_ID: identity.confirm_id,
    Phase.VALIDATE_PATIENT: identity.validate_patient,
    Phase.ASK_SPECIALTY: scheduling.ask_specialty,
    Phase.PARSE_SPECIALTY: scheduling.parse_specialty,
    Phase.ASK_DATE: scheduling.ask_date,
    Phase.CHECK_AVAILABILITY: scheduling.check_availability,
    Phase.INFORM_AVAILABILITY: scheduling.inform_availability,
    Phase.CONFIRM_APPOINTMENT: scheduling.confirm_appointment,
    Phase.FINALIZE: scheduling.finalize,
    Phase.OFFER_ALTERNATIVES_INTRO: alternatives.offer_alternatives_intro,
    Phase.OFFER_ALTERNATIVES_WAIT: alternatives.offer_alternatives_wait,
    Phase.OFFER_ALTERNATIVES: alternatives.offer_alternatives_wait,
    Phase.GOODBYE: closing.goodbye,
    Phase.COMPLETE: closing.complete,
    Phase.FAILED: closing.failed,
    Phase.ERROR: closing.failed,
}


def _chains(result: dict[str, Any]) -> bool:
    """True when a result hands over to the next phase without speaking."""
    if result.get("silent") is not True or result.get("hangup") is True:
        return False
    action = result.get("action")
    if action is None:
        return True
    return isinstance(action, dict) and action.get("type") == ActionType.SET_STATE.value


class PhaseDispatcher:
    """Run the handler for the session's phase and commit transitions.

    Args:
        context: Collaborators handed to every handler.
        handlers: Phase to handler map; defaults to DEFAULT_HANDLERS.
        max_hops: Bound on silent transitions per dispatch.
    """

    def __init__(
        self,
        context: PhaseContext | None = None,
        handlers: dict[Phase, Handler] | None = None,
        max_hops: int = MAX_SILENT_HOPS,
    ) -> None:
        self.context = context or PhaseContext()
        self.handlers = dict(DEFAULT_HANDLERS if handlers is None else handlers)
        self.max_hops = max_hops

    def dispatch(self, turn: TurnInput, state: SessionState) -> Any:
        """Dispatch one turn (or continuation) for a session.

        Args:
            turn: Caller turn or delegate continuation.
            state: Session state; phase and handler-owned fields mutate.

        Returns:
            Raw handler output, not yet normalized.
        """
        hops = 0
        while True:
            phase = resolve_phase(state.phase)
            handler = self.handlers.get(phase) if phase is not None else None
            if handler is None:
                logger.error(
                    "unknown_phase",
                    extra={"session_id": state.session_id, "phase": state.phase},
                )
                state.phase = Phase.ERROR.value
                return closing.unknown_phase(self.context)
            if state.phase != phase.value:
                logger.info(
                    "legacy_phase_resolved",
                    extra={"session_id": state.session_id, "legacy": state.phase},
                )
                state.phase = phase.value

            result = handler(turn, state, self.context)
            if not isinstance(result, dict):
                return result
            next_name = result.get("next_phase")
            next_phase = resolve_phase(next_name) if isinstance(next_name, str) else None
            if next_phase is None or next_phase == phase:
                return result

            self._commit(state, phase, next_phase)
            if not _chains(result):
                return result
            hops += 1
            if hops > self.max_hops:
                logger.warning(
                    "silent_chain_exceeded",
                    extra={"session_id": state.session_id, "phase": state.phase},
                )
                return fail_closed_response(state.phase)

    def _commit(self, state: SessionState, current: Phase, target: Phase) -> None:
        state.phase = target.value
        logger.info(
            "phase_transition",
            extra={
                "session_id": state.session_id,
                "from_phase": current.value,
                "to_phase": target.value,
            },
        )
