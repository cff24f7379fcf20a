"""Per-call session state owned by the turn engine."""

import logging
from typing import Any

from pydantic import BaseModel

from src.shared.types import Phase

logger = logging.getLogger(__name__)

COUNTER_FIELDS = (
    "id_attempts",
    "confirm_attempts",
    "specialty_attempts",
    "date_attempts",
    "appointment_attempts",
    "alternatives_attempts",
)

# Fields a state patch may never overwrite.
_PROTECTED_FIELDS = frozenset({"session_id", "turn_count"})


class SessionState(BaseModel):
    """Everything the bot knows about one call.

    One instance per call, passed by reference into every phase
    handler and persisted between turns by session_id.
    """

    session_id: str
    phase: str = Phase.START_GREETING.value
    caller_id: str | None = None
    destination_id: str | None = None
    # Turns processed so far; the ordinal keys audit events.
    turn_count: int = 0

    id_body: str | None = None
    id_check_digit: str | None = None
    id_formatted: str | None = None

    patient_name: str | None = None
    patient_age: int | None = None

    specialty: str | None = None
    requested_date: str | None = None
    offered_date: str | None = None
    offered_time: str | None = None
    offered_resource: str | None = None
    hold_until: str | None = None
    confirmed: bool = False
    end_reason: str | None = None

    id_attempts: int = 0
    confirm_attempts: int = 0
    specialty_attempts: int = 0
    date_attempts: int = 0
    appointment_attempts: int = 0
    alternatives_attempts: int = 0

    last_spoken_phase: str | None = None
    last_spoken_text: str | None = None

    def clear_id(self) -> None:
        """Forget the captured ID so it can be asked again."""
        self.id_body = None
        self.id_check_digit = None
        self.id_formatted = None

    def clear_offer(self) -> None:
        """Forget the slot currently on offer."""
        self.offered_date = None
        self.offered_time = None
        self.offered_resource = None
        self.hold_until = None


def initial_state(
    session_id: str,
    *,
    caller_id: str | None = None,
    destination_id: str | None = None,
) -> SessionState:
    """Create the state of a call that has not had any turn yet.

    Args:
        session_id: Transport session identifier.
        caller_id: Caller number (ANI), if known.
        destination_id: Dialed number (DNIS), if known.

    Returns:
        Fresh SessionState in START_GREETING.
    """
    return SessionState(
        session_id=session_id,
        caller_id=caller_id,
        destination_id=destination_id,
    )


def reset_counter(state: SessionState, name: str) -> None:
    """Reset one attempt counter.

    Raises:
        ValueError: If name is not an attempt counter.
    """
    if name not in COUNTER_FIELDS:
        raise ValueError(f"Not an attempt counter: {name}")
    setattr(state, name, 0)


def apply_patch(state: SessionState, patch: dict[str, Any] | None) -> list[str]:
    """Apply a state patch, ignoring keys that are not state fields.

    Args:
        state: Session state to mutate.
        patch: Field updates requested by a domain response.

    Returns:
        Keys that were ignored.
    """
    ignored: list[str] = []
    if not patch:
        return ignored
    fields = type(state).model_fields
    for key, value in patch.items():
        if key in _PROTECTED_FIELDS or key not in fields:
            ignored.append(key)
            continue
        setattr(state, key, value)
    if ignored:
        logger.warning(
            "state_patch_keys_ignored",
            extra={"session_id": state.session_id, "keys": ignored},
        )
    return ignored
