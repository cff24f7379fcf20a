"""Shared types, enums, and constants used across the application."""

import enum


class Phase(str, enum.Enum):
    """Conversation phase controlling which handler runs next."""

    START_GREETING = "START_GREETING"
    WAIT_ID = "WAIT_ID"
    CONFIRM_ID = "CONFIRM_ID"
    VALIDATE_PATIENT = "VALIDATE_PATIENT"
    ASK_SPECIALTY = "ASK_SPECIALTY"
    PARSE_SPECIALTY = "PARSE_SPECIALTY"
    ASK_DATE = "ASK_DATE"
    CHECK_AVAILABILITY = "CHECK_AVAILABILITY"
    OFFER_ALTERNATIVES = "OFFER_ALTERNATIVES"
    OFFER_ALTERNATIVES_INTRO = "OFFER_ALTERNATIVES_INTRO"
    OFFER_ALTERNATIVES_WAIT = "OFFER_ALTERNATIVES_WAIT"
    INFORM_AVAILABILITY = "INFORM_AVAILABILITY"
    CONFIRM_APPOINTMENT = "CONFIRM_APPOINTMENT"
    FINALIZE = "FINALIZE"
    GOODBYE = "GOODBYE"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    ERROR = "ERROR"


# Older phase names still found in stored sessions.
PHASE_ALIASES: dict[str, Phase] = {
    "WAIT_BODY": Phase.WAIT_ID,
    "WAIT_DV": Phase.WAIT_ID,
    "WAIT_RUT": Phase.WAIT_ID,
    "LISTEN_RUT": Phase.WAIT_ID,
    "CONFIRM": Phase.CONFIRM_ID,
    "CONFIRM_RUT": Phase.CONFIRM_ID,
}

TERMINAL_PHASES = frozenset({Phase.COMPLETE, Phase.FAILED, Phase.ERROR})


def resolve_phase(name: str | None) -> Phase | None:
    """Resolve a phase name, including legacy aliases.

    Args:
        name: Phase name as stored or returned by a handler.

    Returns:
        The canonical Phase, or None if the name is unknown.
    """
    if not isinstance(name, str) or not name:
        return None
    if name in PHASE_ALIASES:
        return PHASE_ALIASES[name]
    try:
        return Phase(name)
    except ValueError:
        return None


class ActionType(str, enum.Enum):
    """Side-effect variant requested by a domain response."""

    SET_STATE = "SET_STATE"
    WEBHOOK = "WEBHOOK"
    END_CALL = "END_CALL"
    PLAY_AUDIO = "PLAY_AUDIO"
    USE_ENGINE = "USE_ENGINE"


class DelegateName(str, enum.Enum):
    """External business operations reached through the delegation gateway."""

    FORMAT_ID = "FORMAT_ID"
    VALIDATE_PATIENT = "VALIDATE_PATIENT"
    GET_NEXT_AVAILABILITY = "GET_NEXT_AVAILABILITY"
    CONFIRM_AVAILABILITY = "CONFIRM_AVAILABILITY"
    RELEASE_AVAILABILITY = "RELEASE_AVAILABILITY"


class DelegateReason(str, enum.Enum):
    """Reason codes carried by ok:false delegate results."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    EMPTY_INPUT = "EMPTY_INPUT"
    INVALID_ID_FORMAT = "INVALID_ID_FORMAT"
    INSUFFICIENT_DIGITS = "INSUFFICIENT_DIGITS"
    INVALID_BODY_LENGTH = "INVALID_BODY_LENGTH"
    CHECK_DIGIT_MISMATCH = "CHECK_DIGIT_MISMATCH"
    PATIENT_NOT_FOUND = "PATIENT_NOT_FOUND"
    NO_AVAILABILITY = "NO_AVAILABILITY"
    SPECIALTY_NOT_MAPPED = "SPECIALTY_NOT_MAPPED"
    HOLD_NOT_FOUND_OR_EXPIRED = "HOLD_NOT_FOUND_OR_EXPIRED"


class TurnEvent(str, enum.Enum):
    """Kind of turn delivered to the dispatcher."""

    INIT = "INIT"
    TURN = "TURN"
    NO_INPUT = "NO_INPUT"
    DELEGATE_RESULT = "DELEGATE_RESULT"


class Intent(str, enum.Enum):
    """Yes/no classification of a caller utterance."""

    YES = "YES"
    NO = "NO"
    UNKNOWN = "UNKNOWN"


class DateIntent(str, enum.Enum):
    """Requested appointment date classification."""

    TODAY = "TODAY"
    TOMORROW = "TOMORROW"
    ASAP = "ASAP"
    SPECIFIC = "SPECIFIC"
    UNKNOWN = "UNKNOWN"


class AlternativeIntent(str, enum.Enum):
    """Caller answer when offered another specialty."""

    ACCEPT = "ACCEPT"
    DECLINE = "DECLINE"
    CHANGE_ID = "CHANGE_ID"
    UNKNOWN = "UNKNOWN"


class EndReason(str, enum.Enum):
    """Reason attached to an END_CALL action."""

    COMPLETED = "completed"
    SILENCE_EXHAUSTED = "silence-exhausted"
    ID_CAPTURE_FAILED = "id-capture-failed"
    PATIENT_NOT_VALIDATED = "patient-not-validated"
    SPECIALTY_NOT_IDENTIFIED = "specialty-not-identified"
    AVAILABILITY_UNAVAILABLE = "availability-unavailable"
    MISSING_DATA = "missing-data"
    BOOKING_FAILED = "booking-failed"
    ALTERNATIVES_DECLINED = "alternatives-declined"
    SECURITY_ID_CHANGE = "security-id-change"
    UNKNOWN_PHASE = "unknown-phase"
    ESCALATED = "escalated"
    LEGACY = "legacy"


ASAP = "ASAP"
