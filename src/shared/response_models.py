"""Pydantic models for the turn boundary and the domain response contract.

Handlers emit plain dicts; the turn boundary normalizes and validates
them and only then builds a DomainResponse. Delegate results support
dict-style access (result["key"] and "key" in result) so handlers read
them the same way whether they hold a model or a raw dict.
"""

from collections.abc import Iterator
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from src.shared.types import DelegateName, Phase, TurnEvent


class ResultModel(BaseModel):
    """Base model with dict-compatible access.

    Supports: result["key"], "key" in result, result.get("key"),
    {**result}, and dict(result). Extra fields, when a subclass allows
    them, are reachable the same way as declared fields.
    """

    def _field_names(self) -> list[str]:
        names = list(type(self).model_fields.keys())
        if self.model_extra:
            names.extend(self.model_extra.keys())
        return names

    def __getitem__(self, key: str) -> Any:
        """Support dict-style subscript access.

        Args:
            key: Field name to retrieve.

        Returns:
            Field value.

        Raises:
            KeyError: If key is neither a field nor an extra value.
        """
        if key not in self._field_names():
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key: str) -> bool:
        """Support 'key in result' membership test.

        Args:
            key: Field name to check.

        Returns:
            True if key is a field with a non-None value.
        """
        if key not in self._field_names():
            return False
        return getattr(self, key) is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a field value by name with an optional default.

        Args:
            key: Field name to look up.
            default: Value to return if key is missing or None.

        Returns:
            Field value if present, otherwise default.
        """
        if key in self._field_names():
            value = getattr(self, key)
            return default if value is None else value
        return default

    def keys(self) -> list[str]:
        """Return all field names for dict unpacking support."""
        return self._field_names()

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        """Iterate over field names for dict() and {**} unpacking."""
        return iter(self._field_names())


class DelegateResult(ResultModel):
    """Outcome of one delegated business call.

    ok=False is an expected outcome, not an error. Delegate-specific
    fields (patient_found, slot_found, date, ...) are kept as extras.
    """

    model_config = ConfigDict(extra="allow")

    ok: bool
    reason: str | None = None


class TurnInput(BaseModel):
    """One utterance or silence event delivered for a session."""

    session_id: str
    transcript: str = ""
    caller_id: str | None = None
    destination_id: str | None = None
    event: TurnEvent = TurnEvent.TURN
    confidence: float | None = None
    delegate_name: DelegateName | None = None
    delegate_result: DelegateResult | None = None

    @property
    def is_silence(self) -> bool:
        """True when the caller said nothing usable."""
        return not self.transcript.strip()

    def continuation(self, name: DelegateName) -> DelegateResult | None:
        """Return the delegate result when this turn continues ``name``.

        Args:
            name: Delegated call the handler issued earlier.

        Returns:
            The injected result, or None for an ordinary caller turn.
        """
        if self.event != TurnEvent.DELEGATE_RESULT or self.delegate_name != name:
            return None
        return self.delegate_result


class SetStateAction(BaseModel):
    """Apply a patch to session state; no external effect."""

    type: Literal["SET_STATE"] = "SET_STATE"
    patch: dict[str, Any] = Field(default_factory=dict)


class WebhookAction(BaseModel):
    """Request a delegated business call."""

    type: Literal["WEBHOOK"] = "WEBHOOK"
    name: DelegateName
    payload: dict[str, Any] = Field(default_factory=dict)


class EndCallAction(BaseModel):
    """Terminate the call."""

    type: Literal["END_CALL"] = "END_CALL"
    reason: str


class PlayAudioAction(BaseModel):
    """Play a prerecorded audio asset."""

    type: Literal["PLAY_AUDIO"] = "PLAY_AUDIO"
    path: str = Field(min_length=1)


class UseEngineAction(BaseModel):
    """Hand control to the transport's own engine."""

    type: Literal["USE_ENGINE"] = "USE_ENGINE"
    meta: dict[str, Any] = Field(default_factory=dict)


Action = Annotated[
    Union[SetStateAction, WebhookAction, EndCallAction, PlayAudioAction, UseEngineAction],
    Field(discriminator="type"),
]


class DomainResponse(BaseModel):
    """Normalized, validated output of one turn."""

    next_phase: Phase
    text: str | None = None
    audio: str | None = None
    silent: bool = False
    skip_input: bool = False
    hangup: bool = False
    action: Action = Field(default_factory=SetStateAction)
    state_patch: dict[str, Any] | None = None
