"""Phase handlers for specialty, date, slot offer and booking."""

import logging
from typing import Any

from src.engine.policy import register_failure
from src.engine.session import SessionState
from src.phases.common import PhaseContext, delegate, end_call, say, transition
from src.shared.prompts import spoken_date
from src.shared.response_models import TurnInput
from src.shared.types import (
    ASAP,
    DateIntent,
    DelegateName,
    DelegateReason,
    EndReason,
    Intent,
    Phase,
)

logger = logging.getLogger(__name__)

_NO_SLOT_REASONS = frozenset(
    {DelegateReason.NO_AVAILABILITY.value, DelegateReason.SPECIALTY_NOT_MAPPED.value}
)


def ask_specialty(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Wait for the specialty; any utterance is parsed in the same turn."""
    if turn.is_silence:
        return _specialty_failure(state, ctx)
    return transition(Phase.PARSE_SPECIALTY)


def parse_specialty(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Map the utterance to a specialty, then ask for the date."""
    specialty = ctx.classifier.match_specialty(turn.transcript)
    if specialty is None:
        logger.info(
            "specialty_not_matched",
            extra={"session_id": state.session_id, "attempt": state.specialty_attempts + 1},
        )
        return _specialty_failure(state, ctx)
    state.specialty = specialty
    state.specialty_attempts = 0
    state.date_attempts = 0
    return say(ctx.prompts.render("ask_date", specialty=specialty), Phase.ASK_DATE)


def _specialty_failure(state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    outcome = register_failure(state, Phase.ASK_SPECIALTY)
    if outcome.exhausted:
        return end_call(
            ctx.prompts.render("specialty_not_identified"),
            Phase.FAILED,
            outcome.policy.reason,
        )
    key = "ask_specialty_retry" if outcome.attempt == 1 else "ask_specialty_examples"
    return say(ctx.prompts.render(key), Phase.ASK_SPECIALTY)


def ask_date(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Capture the requested date; falls back to the earliest slot.

    Args:
        turn: Caller turn or RELEASE_AVAILABILITY continuation.
        state: Session state.
        ctx: Handler collaborators.

    Returns:
        Raw domain response.
    """
    if turn.continuation(DelegateName.RELEASE_AVAILABILITY) is not None:
        return say(ctx.prompts.render("ask_date_again"), Phase.ASK_DATE)

    if not turn.is_silence:
        intent, value = ctx.classifier.classify_date(turn.transcript, ctx.today())
        if intent != DateIntent.UNKNOWN:
            state.requested_date = value or ASAP
            state.date_attempts = 0
            logger.info(
                "date_captured",
                extra={"session_id": state.session_id, "date_intent": intent.value},
            )
            return transition(Phase.CHECK_AVAILABILITY)

    outcome = register_failure(state, Phase.ASK_DATE)
    if outcome.exhausted:
        state.requested_date = outcome.policy.default_value
        state.date_attempts = 0
        return transition(Phase.CHECK_AVAILABILITY)
    key = "ask_date_retry" if outcome.attempt == 1 else "ask_date_examples"
    return say(ctx.prompts.render(key), Phase.ASK_DATE)


def check_availability(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Ask GET_NEXT_AVAILABILITY for a slot and route on the answer."""
    if not state.id_formatted or not state.specialty:
        return end_call(ctx.prompts.render("missing_data"), Phase.FAILED, EndReason.MISSING_DATA)

    result = turn.continuation(DelegateName.GET_NEXT_AVAILABILITY)
    if result is None:
        return delegate(
            DelegateName.GET_NEXT_AVAILABILITY,
            {
                "id": state.id_formatted,
                "specialty": state.specialty,
                "date": state.requested_date or ASAP,
            },
            Phase.CHECK_AVAILABILITY,
        )

    if result.ok and result.get("slot_found"):
        state.offered_date = result.get("date")
        state.offered_time = result.get("time")
        state.offered_resource = result.get("resource")
        state.hold_until = result.get("hold_until")
        return transition(Phase.INFORM_AVAILABILITY)
    if result.reason in _NO_SLOT_REASONS or result.ok:
        return transition(Phase.OFFER_ALTERNATIVES_INTRO)
    logger.warning(
        "availability_lookup_failed",
        extra={"session_id": state.session_id, "reason": result.reason},
    )
    return end_call(
        ctx.prompts.render("availability_error"),
        Phase.FAILED,
        EndReason.AVAILABILITY_UNAVAILABLE,
    )


def inform_availability(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Offer the slot found by CHECK_AVAILABILITY."""
    if not state.offered_date or not state.offered_time:
        return end_call(
            ctx.prompts.render("availability_error"),
            Phase.FAILED,
            EndReason.AVAILABILITY_UNAVAILABLE,
        )
    state.appointment_attempts = 0
    text = ctx.prompts.render(
        "offer_slot",
        when=spoken_date(state.offered_date, ctx.today()),
        time=state.offered_time,
        resource=state.offered_resource,
    )
    return say(text, Phase.CONFIRM_APPOINTMENT)


def confirm_appointment(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Book the offered slot on YES, release it on NO."""
    intent = Intent.UNKNOWN if turn.is_silence else ctx.classifier.classify(turn.transcript)
    if intent == Intent.YES:
        return _book(state)
    if intent == Intent.NO:
        payload = _slot_payload(state)
        state.clear_offer()
        state.appointment_attempts = 0
        state.date_attempts = 0
        return delegate(DelegateName.RELEASE_AVAILABILITY, payload, Phase.ASK_DATE)

    outcome = register_failure(state, Phase.CONFIRM_APPOINTMENT)
    if outcome.exhausted:
        logger.info(
            "appointment_confirmed_implicitly",
            extra={"session_id": state.session_id, "attempt": outcome.attempt},
        )
        return _book(state)
    key = "confirm_appointment_repeat" if outcome.attempt == 1 else "confirm_appointment_short"
    text = ctx.prompts.render(
        key,
        when=spoken_date(state.offered_date, ctx.today()),
        time=state.offered_time,
    )
    return say(text, Phase.CONFIRM_APPOINTMENT)


def _slot_payload(state: SessionState) -> dict[str, Any]:
    return {
        "id": state.id_formatted,
        "specialty": state.specialty,
        "date": state.offered_date,
        "time": state.offered_time,
        "resource": state.offered_resource,
    }


def _book(state: SessionState) -> dict[str, Any]:
    state.appointment_attempts = 0
    return delegate(DelegateName.CONFIRM_AVAILABILITY, _slot_payload(state), Phase.FINALIZE)


def finalize(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Handle the CONFIRM_AVAILABILITY result.

    Success ends the call with a summary. An expired hold sends the
    caller back to date selection. Anything else escalates.
    """
    result = turn.continuation(DelegateName.CONFIRM_AVAILABILITY)
    if result is None:
        if state.offered_date and state.offered_time:
            return _book(state)
        return end_call(ctx.prompts.render("missing_data"), Phase.FAILED, EndReason.MISSING_DATA)

    if result.ok and result.get("confirmed", True):
        state.confirmed = True
        text = ctx.prompts.render(
            "appointment_confirmed",
            when=spoken_date(result.get("date") or state.offered_date, ctx.today()),
            time=result.get("time") or state.offered_time,
            resource=state.offered_resource,
        )
        logger.info(
            "appointment_booked",
            extra={"session_id": state.session_id, "specialty": state.specialty},
        )
        return end_call(text, Phase.COMPLETE, EndReason.COMPLETED)

    if result.reason == DelegateReason.HOLD_NOT_FOUND_OR_EXPIRED.value:
        state.clear_offer()
        state.date_attempts = 0
        return say(ctx.prompts.render("hold_expired"), Phase.ASK_DATE)

    logger.warning(
        "booking_failed",
        extra={"session_id": state.session_id, "reason": result.reason},
    )
    return end_call(ctx.prompts.render("booking_failed"), Phase.FAILED, EndReason.BOOKING_FAILED)
