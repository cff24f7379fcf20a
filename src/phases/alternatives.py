"""Phase handlers used when no slot exists for the requested specialty."""

import logging
from typing import Any

from src.engine.policy import register_failure
from src.engine.session import SessionState
from src.phases.common import PhaseContext, end_call, say, transition
from src.shared.response_models import TurnInput
from src.shared.types import AlternativeIntent, EndReason, Phase

logger = logging.getLogger(__name__)


def offer_alternatives_intro(
    turn: TurnInput, state: SessionState, ctx: PhaseContext
) -> dict[str, Any]:
    """Tell the caller nothing is free and offer another specialty."""
    state.alternatives_attempts = 0
    return say(ctx.prompts.render("offer_another_specialty"), Phase.OFFER_ALTERNATIVES_WAIT)


def offer_alternatives_wait(
    turn: TurnInput, state: SessionState, ctx: PhaseContext
) -> dict[str, Any]:
    """Route the answer to the alternatives offer.

    Asking for a different person's ID ends the call: the identity
    verified at the start of the call is the only one it may serve.
    """
    if turn.is_silence:
        intent = AlternativeIntent.UNKNOWN
    else:
        intent = ctx.classifier.classify_alternative(turn.transcript)

    if intent == AlternativeIntent.CHANGE_ID:
        logger.warning("id_change_denied", extra={"session_id": state.session_id})
        return end_call(
            ctx.prompts.render("deny_id_change"),
            Phase.COMPLETE,
            EndReason.SECURITY_ID_CHANGE,
        )
    if intent == AlternativeIntent.ACCEPT:
        state.specialty = None
        state.requested_date = None
        state.specialty_attempts = 0
        state.date_attempts = 0
        state.alternatives_attempts = 0
        return say(ctx.prompts.render("ask_specialty_again"), Phase.ASK_SPECIALTY)
    if intent == AlternativeIntent.DECLINE:
        state.alternatives_attempts = 0
        state.end_reason = EndReason.ALTERNATIVES_DECLINED.value
        return transition(Phase.GOODBYE)

    outcome = register_failure(state, Phase.OFFER_ALTERNATIVES_WAIT)
    if outcome.exhausted:
        state.end_reason = outcome.policy.reason.value
        return transition(Phase.GOODBYE)
    return say(
        ctx.prompts.render("offer_another_specialty_retry"),
        Phase.OFFER_ALTERNATIVES_WAIT,
    )
