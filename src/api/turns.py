"""HTTP routes the telephony transport calls once per caller turn."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.engine.turns import TurnProcessor
from src.shared.response_models import DomainResponse, TurnInput
from src.shared.types import TurnEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calls", tags=["calls"])


class TurnRequest(BaseModel):
    """One caller turn as delivered by the transport.

    Attributes:
        session_id: Transport session identifier.
        transcript: Recognized speech; empty for silence.
        caller_id: Caller number (ANI).
        destination_id: Dialed number (DNIS).
        event: INIT for the first turn, NO_INPUT for timeouts.
        confidence: STT confidence of the transcript.
    """

    session_id: str
    transcript: str = ""
    caller_id: str | None = None
    destination_id: str | None = None
    event: TurnEvent = TurnEvent.TURN
    confidence: float | None = None


def get_turn_processor(request: Request) -> TurnProcessor:
    """Return the processor created with the application."""
    return request.app.state.turn_processor


@router.post("/turn", response_model=DomainResponse)
async def process_turn(
    payload: TurnRequest,
    processor: TurnProcessor = Depends(get_turn_processor),
) -> DomainResponse | JSONResponse:
    """Run one turn and return what the transport should do next.

    Args:
        payload: Turn delivered by the transport.
        processor: Injected turn processor.

    Returns:
        DomainResponse, or a 500 asking for a human handoff.
    """
    if payload.event == TurnEvent.DELEGATE_RESULT:
        return JSONResponse(
            status_code=422,
            content={"error": "event_not_allowed", "event": payload.event.value},
        )
    turn = TurnInput(**payload.model_dump())
    try:
        return await processor.process(turn)
    except Exception:
        # Already logged with traceback by the processor.
        return JSONResponse(
            status_code=500,
            content={"error": "turn_failed", "handoff_required": True},
        )


@router.post("/{session_id}/end")
async def end_call(
    session_id: str,
    processor: TurnProcessor = Depends(get_turn_processor),
) -> dict[str, bool]:
    """Retire the state of a call the transport has hung up.

    Args:
        session_id: Transport session identifier.
        processor: Injected turn processor.

    Returns:
        Dict with ended flag.
    """
    ended = await processor.end_call(session_id)
    return {"ended": ended}
