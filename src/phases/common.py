"""Building blocks shared by the phase handlers.

Handlers are synchronous and I/O-free: they read the turn and the
session state, mutate the state they own, and return a raw response
dict. Anything external is requested through a WEBHOOK action and
answered by a later continuation turn.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from src.engine.session import SessionState
from src.shared.intents import IntentClassifier, KeywordIntentClassifier
from src.shared.prompts import PromptRenderer
from src.shared.response_models import TurnInput
from src.shared.types import ActionType, DelegateName, EndReason, Phase


@dataclass
class PhaseContext:
    """Collaborators handed to every handler.

    Attributes:
        classifier: Caller-intent capability.
        prompts: Prompt catalog for the call language.
        language: Two-letter code for spoken digit readings.
        greeting_audio: Audio asset played when the call starts.
        today: Clock used for relative dates.
    """

    classifier: IntentClassifier = field(default_factory=KeywordIntentClassifier)
    prompts: PromptRenderer = field(default_factory=PromptRenderer)
    language: str = "es"
    greeting_audio: str = "quintero/greeting"
    today: Callable[[], date] = date.today


Handler = Callable[[TurnInput, SessionState, PhaseContext], dict[str, Any]]


def say(text: str, next_phase: Phase, *, patch: dict[str, Any] | None = None) -> dict[str, Any]:
    """Speak text and listen for the caller in next_phase."""
    return {
        "next_phase": next_phase.value,
        "text": text,
        "silent": False,
        "skip_input": False,
        "action": {"type": ActionType.SET_STATE.value, "patch": patch or {}},
    }


def transition(next_phase: Phase) -> dict[str, Any]:
    """Move to next_phase without speaking; it runs in the same turn."""
    return {
        "next_phase": next_phase.value,
        "text": None,
        "silent": True,
        "skip_input": True,
        "action": {"type": ActionType.SET_STATE.value, "patch": {}},
    }


def delegate(name: DelegateName, payload: dict[str, Any], next_phase: Phase) -> dict[str, Any]:
    """Request a delegated call; its result arrives as a continuation."""
    return {
        "next_phase": next_phase.value,
        "text": None,
        "silent": True,
        "skip_input": True,
        "action": {
            "type": ActionType.WEBHOOK.value,
            "name": name.value,
            "payload": payload,
        },
    }


def end_call(text: str | None, next_phase: Phase, reason: EndReason) -> dict[str, Any]:
    """Speak text (if any) and hang up."""
    return {
        "next_phase": next_phase.value,
        "text": text,
        "silent": False,
        "skip_input": True,
        "hangup": True,
        "action": {"type": ActionType.END_CALL.value, "reason": reason.value},
    }


def first_name(full_name: str | None) -> str | None:
    if not full_name or not full_name.strip():
        return None
    return full_name.split()[0].capitalize()


def as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
