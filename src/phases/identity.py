"""Phase handlers for greeting, ID capture, ID confirmation and patient lookup."""

import logging
from typing import Any

from src.engine.policy import register_failure
from src.engine.session import SessionState
from src.phases.common import PhaseContext, as_int, delegate, end_call, first_name, say
from src.shared.response_models import DelegateResult, TurnInput
from src.shared.types import ActionType, DelegateName, EndReason, Intent, Phase
from src.shared.validators import canonical_id, masked_reading, split_id

logger = logging.getLogger(__name__)


def start_greeting(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Play the greeting, which also asks for the ID."""
    return {
        "next_phase": Phase.WAIT_ID.value,
        "text": None,
        "audio": ctx.greeting_audio,
        "silent": False,
        "skip_input": False,
        "action": {"type": ActionType.PLAY_AUDIO.value, "path": ctx.greeting_audio},
    }


def wait_id(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Capture the caller's ID.

    A transcript is sent to FORMAT_ID. The continuation stores the
    normalized ID and asks for confirmation, or counts a failed attempt.

    Args:
        turn: Caller turn or FORMAT_ID continuation.
        state: Session state.
        ctx: Handler collaborators.

    Returns:
        Raw domain response.
    """
    result = turn.continuation(DelegateName.FORMAT_ID)
    if result is not None:
        parsed = _parsed_id(result)
        if parsed is None:
            logger.info(
                "id_format_rejected",
                extra={"session_id": state.session_id, "reason": result.reason},
            )
            return _id_failure(state, ctx, silence=False)
        body, check_digit = parsed
        state.id_body = body
        state.id_check_digit = check_digit
        state.id_formatted = result.get("id") or canonical_id(body, check_digit)
        state.id_attempts = 0
        state.confirm_attempts = 0
        masked = masked_reading(body, check_digit, ctx.language)
        return say(ctx.prompts.render("confirm_id", masked=masked), Phase.CONFIRM_ID)

    if turn.is_silence:
        return _id_failure(state, ctx, silence=True)
    return delegate(DelegateName.FORMAT_ID, {"raw_text": turn.transcript}, Phase.WAIT_ID)


def _parsed_id(result: DelegateResult) -> tuple[str, str] | None:
    if not result.ok:
        return None
    body = result.get("body")
    check_digit = result.get("check_digit")
    if body and check_digit:
        return str(body), str(check_digit).upper()
    formatted = result.get("id")
    if formatted:
        return split_id(str(formatted))
    return None


def _id_failure(state: SessionState, ctx: PhaseContext, *, silence: bool) -> dict[str, Any]:
    outcome = register_failure(state, Phase.WAIT_ID)
    if outcome.exhausted:
        reason = EndReason.SILENCE_EXHAUSTED if silence else outcome.policy.reason
        logger.warning(
            "id_capture_exhausted",
            extra={"session_id": state.session_id, "reason": reason.value},
        )
        return end_call(ctx.prompts.render("id_capture_failed"), Phase.FAILED, reason)
    if outcome.attempt == 1:
        key = "ask_id" if silence else "id_invalid"
    else:
        key = "ask_id_retry"
    return say(ctx.prompts.render(key), Phase.WAIT_ID)


def confirm_id(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Confirm the captured ID with the caller.

    YES sends the ID to VALIDATE_PATIENT. NO goes back to ID capture.
    Silence or an unclear answer re-prompts until the attempt threshold,
    after which the ID is taken as confirmed.
    """
    intent = Intent.UNKNOWN if turn.is_silence else ctx.classifier.classify(turn.transcript)
    if intent == Intent.YES:
        return _validate(state, ctx)
    if intent == Intent.NO:
        state.clear_id()
        state.id_attempts = 0
        state.confirm_attempts = 0
        return say(ctx.prompts.render("confirm_retry"), Phase.WAIT_ID)

    outcome = register_failure(state, Phase.CONFIRM_ID)
    if outcome.exhausted:
        logger.info(
            "id_confirmed_implicitly",
            extra={"session_id": state.session_id, "attempt": outcome.attempt},
        )
        return _validate(state, ctx)
    masked = masked_reading(state.id_body, state.id_check_digit, ctx.language)
    key = "confirm_repeat" if outcome.attempt == 1 else "confirm_repeat_short"
    return say(ctx.prompts.render(key, masked=masked), Phase.CONFIRM_ID)


def _validate(state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    state.confirm_attempts = 0
    if not state.id_formatted:
        state.clear_id()
        return say(ctx.prompts.render("ask_id"), Phase.WAIT_ID)
    return delegate(
        DelegateName.VALIDATE_PATIENT,
        {"id": state.id_formatted},
        Phase.VALIDATE_PATIENT,
    )


def validate_patient(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Handle the VALIDATE_PATIENT result: greet by name or end the call."""
    result = turn.continuation(DelegateName.VALIDATE_PATIENT)
    if result is None:
        return _validate(state, ctx)
    if not result.ok or not result.get("patient_found"):
        logger.info(
            "patient_not_validated",
            extra={"session_id": state.session_id, "reason": result.reason},
        )
        return end_call(
            ctx.prompts.render("patient_not_found"),
            Phase.FAILED,
            EndReason.PATIENT_NOT_VALIDATED,
        )
    state.patient_name = result.get("name")
    state.patient_age = as_int(result.get("age"))
    state.specialty_attempts = 0
    text = ctx.prompts.render("ask_specialty", first_name=first_name(state.patient_name))
    return say(text, Phase.ASK_SPECIALTY)
