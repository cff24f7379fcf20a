"""Phase handlers that end the call."""

from typing import Any

from src.engine.session import SessionState
from src.phases.common import PhaseContext, end_call
from src.shared.response_models import TurnInput
from src.shared.types import EndReason, Phase, resolve_phase


def goodbye(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    try:
        reason = EndReason(state.end_reason or EndReason.COMPLETED.value)
    except ValueError:
        reason = EndReason.COMPLETED
    return end_call(ctx.prompts.render("farewell"), Phase.COMPLETE, reason)


def complete(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Terminal: nothing left to say."""
    return end_call(None, Phase.COMPLETE, EndReason.COMPLETED)


def failed(turn: TurnInput, state: SessionState, ctx: PhaseContext) -> dict[str, Any]:
    """Terminal FAILED / ERROR: hand the caller to a person."""
    phase = resolve_phase(state.phase) or Phase.ERROR
    return end_call(ctx.prompts.render("escalate"), phase, EndReason.ESCALATED)


def unknown_phase(ctx: PhaseContext) -> dict[str, Any]:
    """Response for a stored phase no handler knows about."""
    return end_call(ctx.prompts.render("internal_error"), Phase.ERROR, EndReason.UNKNOWN_PHASE)
