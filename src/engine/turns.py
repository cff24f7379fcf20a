"""Turn processor: the async boundary around the synchronous phase machine.

One external turn runs as a two-stage pipeline: dispatch, and while the
result asks for a delegated call, execute it and dispatch again with
the result injected as a continuation. The final response is
normalized, validated (failing closed), patched into state, passed
through the anti-replay guard and persisted before it is returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from src.engine.contract import fail_closed_response, normalize_response, validate_response
from src.engine.replay import apply_replay_guard
from src.engine.session import SessionState, apply_patch, initial_state
from src.shared.response_models import DomainResponse, SetStateAction, TurnInput
from src.shared.types import (
    TERMINAL_PHASES,
    ActionType,
    DelegateName,
    TurnEvent,
    resolve_phase,
)

if TYPE_CHECKING:
    from src.db.state_store import SessionStore
    from src.engine.dispatcher import PhaseDispatcher
    from src.services.delegate_client import DelegationGateway

logger = logging.getLogger(__name__)

# Delegated calls allowed within one external turn.
MAX_DELEGATIONS_PER_TURN = 3


def _event_key(session_id: str, turn_index: int, event_type: str) -> str:
    return f"{session_id}:{turn_index}:{event_type}"


def _pending_delegate(response: dict[str, Any]) -> DelegateName | None:
    action = response.get("action")
    if not isinstance(action, dict) or action.get("type") != ActionType.WEBHOOK.value:
        return None
    try:
        return DelegateName(action.get("name"))
    except ValueError:
        return None


class TurnProcessor:
    """Process turns for any number of independent sessions.

    Turns of the same session are serialized; different sessions run
    concurrently. A session's lock lives only while one of its turns is
    running or waiting.

    Args:
        store: Session state persistence.
        gateway: Delegated-call client.
        dispatcher: Phase dispatcher.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        gateway: DelegationGateway,
        dispatcher: PhaseDispatcher,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.dispatcher = dispatcher
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}

    @asynccontextmanager
    async def _serialized(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._pending[session_id] = self._pending.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._pending[session_id] -= 1
            if not self._pending[session_id]:
                del self._pending[session_id]
                del self._locks[session_id]

    async def process(self, turn: TurnInput) -> DomainResponse:
        """Process one turn end to end.

        Args:
            turn: Caller utterance or silence for a session.

        Returns:
            Validated DomainResponse for the transport.

        Raises:
            Exception: Anything unexpected, after logging it.
        """
        async with self._serialized(turn.session_id):
            try:
                return await self._process(turn)
            except Exception:
                logger.exception(
                    "turn_failed",
                    extra={"session_id": turn.session_id},
                )
                raise

    async def _process(self, turn: TurnInput) -> DomainResponse:
        state = await self.store.load(turn.session_id)
        if state is None:
            state = initial_state(
                turn.session_id,
                caller_id=turn.caller_id,
                destination_id=turn.destination_id,
            )
        snapshot = state.model_copy(deep=True)
        turn_index = snapshot.turn_count + 1

        response = normalize_response(self.dispatcher.dispatch(turn, state), state.phase)
        delegations = 0
        while (name := _pending_delegate(response)) is not None:
            if delegations >= MAX_DELEGATIONS_PER_TURN:
                break
            delegations += 1
            result = await self.gateway.execute(
                name,
                response["action"].get("payload") or {},
                state,
                raw_text=turn.transcript,
                confidence=turn.confidence,
            )
            continuation = turn.model_copy(
                update={
                    "event": TurnEvent.DELEGATE_RESULT,
                    "delegate_name": name,
                    "delegate_result": result,
                }
            )
            response = normalize_response(
                self.dispatcher.dispatch(continuation, state), state.phase
            )

        errors = validate_response(response)
        if not errors and _pending_delegate(response) is not None:
            errors = ["delegation_limit_exceeded"]
        typed: DomainResponse | None = None
        if not errors:
            try:
                typed = DomainResponse.model_validate(response)
            except ValidationError:
                errors = ["model_invalid"]

        if typed is None:
            logger.warning(
                "contract_violation",
                extra={
                    "session_id": turn.session_id,
                    "phase": snapshot.phase,
                    "errors": errors,
                },
            )
            state = snapshot
            typed = DomainResponse.model_validate(fail_closed_response(state.phase))
            await self.store.record_event(
                state.session_id,
                "contract_violation",
                phase=state.phase,
                payload={"errors": errors},
                idempotency_key=_event_key(state.session_id, turn_index, "contract_violation"),
            )
        else:
            self._apply_patches(state, typed)

        state.turn_count = turn_index
        typed = apply_replay_guard(typed, state)
        await self.store.save(state)
        await self.store.record_event(
            state.session_id,
            "turn_processed",
            phase=state.phase,
            payload={
                "from_phase": snapshot.phase,
                "to_phase": state.phase,
                "delegations": delegations,
                "action": typed.action.type,
                "hangup": typed.hangup,
            },
            idempotency_key=_event_key(state.session_id, turn_index, "turn_processed"),
        )
        if resolve_phase(state.phase) in TERMINAL_PHASES:
            logger.info(
                "call_finished",
                extra={
                    "session_id": state.session_id,
                    "phase": state.phase,
                    "end_reason": getattr(typed.action, "reason", None),
                },
            )
        return typed

    def _apply_patches(self, state: SessionState, response: DomainResponse) -> None:
        if isinstance(response.action, SetStateAction):
            apply_patch(state, response.action.patch)
        apply_patch(state, response.state_patch)

    async def end_call(self, session_id: str) -> bool:
        """Retire the state of a finished call.

        Args:
            session_id: Transport session identifier.

        Returns:
            True if state existed and was removed.
        """
        async with self._serialized(session_id):
            deleted = await self.store.delete(session_id)
        logger.info("call_ended", extra={"session_id": session_id, "deleted": deleted})
        return deleted
