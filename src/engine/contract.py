"""Domain response contract: normalization, validation, fail-closed fallback.

Handlers (and older handler variants still carrying legacy shapes) emit
loosely-typed dicts. normalize_response maps every accepted shape onto
the strict contract, validate_response lists what is still wrong, and
fail_closed_response is what the caller hears when anything is.
"""

from typing import Any

from src.shared.types import ActionType, DelegateName, EndReason, Phase, resolve_phase

SOUND_PREFIX = "sound:"
_AUDIO_ROOT = "voicebot/"

FAIL_CLOSED_TEXT = "Disculpe, tuve un problema. ¿Podría repetirlo, por favor?"

_LEGACY_ACTIONS = {"HANGUP": ActionType.END_CALL.value}
_ACTION_TYPES = frozenset(a.value for a in ActionType)
_DELEGATE_NAMES = frozenset(d.value for d in DelegateName)


def _bool_or_false(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _audio_path(text: str) -> str:
    path = text[len(SOUND_PREFIX) :].strip()
    if path.startswith(_AUDIO_ROOT):
        path = path[len(_AUDIO_ROOT) :]
    return path


def _normalize_action(action: Any, *, hangup: bool, audio: Any) -> Any:
    """Map bare-string, legacy and partial actions onto tagged variants."""
    if action is None:
        if hangup:
            return {"type": ActionType.END_CALL.value, "reason": EndReason.LEGACY.value}
        return {"type": ActionType.SET_STATE.value, "patch": {}}

    if isinstance(action, str):
        action = {"type": action}
    if not isinstance(action, dict):
        return action

    normalized = dict(action)
    action_type = normalized.get("type")
    if isinstance(action_type, str):
        action_type = action_type.strip().upper()
        action_type = _LEGACY_ACTIONS.get(action_type, action_type)
        normalized["type"] = action_type

    legacy_payload = normalized.get("payload")
    if action_type == ActionType.SET_STATE.value:
        if "patch" not in normalized:
            updates = legacy_payload.get("updates") if isinstance(legacy_payload, dict) else None
            normalized["patch"] = updates if isinstance(updates, dict) else {}
        normalized.pop("payload", None)
    elif action_type == ActionType.END_CALL.value:
        if not normalized.get("reason"):
            reason = legacy_payload.get("reason") if isinstance(legacy_payload, dict) else None
            normalized["reason"] = reason if isinstance(reason, str) else EndReason.LEGACY.value
        normalized.pop("payload", None)
    elif action_type == ActionType.PLAY_AUDIO.value:
        if "path" not in normalized and isinstance(audio, str):
            normalized["path"] = audio
    elif action_type == ActionType.USE_ENGINE.value:
        normalized.setdefault("meta", {})
    elif action_type == ActionType.WEBHOOK.value:
        if not isinstance(normalized.get("payload"), dict):
            normalized["payload"] = {}
    return normalized


def normalize_response(raw: Any, fallback_phase: str) -> dict[str, Any]:
    """Normalize raw handler output into the strict contract shape.

    Pure and idempotent: normalizing an already normalized response
    returns an equal dict.

    Args:
        raw: Handler output, possibly malformed or not a dict at all.
        fallback_phase: Phase to use when next_phase is absent.

    Returns:
        Dict with next_phase, text, audio, silent, skip_input, hangup,
        action and state_patch keys.
    """
    source = raw if isinstance(raw, dict) else {}

    next_phase = source.get("next_phase")
    if next_phase is None or next_phase == "":
        next_phase = fallback_phase
    resolved = resolve_phase(next_phase) if isinstance(next_phase, str) else None
    if resolved is not None:
        next_phase = resolved.value

    text = source.get("text")
    text = text if isinstance(text, str) else None
    audio = source.get("audio")
    hangup = _bool_or_false(source.get("hangup"))

    explicit_action = source.get("action") is not None
    action = _normalize_action(source.get("action"), hangup=hangup, audio=audio)

    if text is not None and text.startswith(SOUND_PREFIX):
        path = _audio_path(text)
        text = None
        if not explicit_action and not hangup:
            action = {"type": ActionType.PLAY_AUDIO.value, "path": path}
        elif audio is None:
            audio = path

    state_patch = source.get("state_patch")
    return {
        "next_phase": next_phase,
        "text": text,
        "audio": audio,
        "silent": _bool_or_false(source.get("silent")),
        "skip_input": _bool_or_false(source.get("skip_input")),
        "hangup": hangup,
        "action": action,
        "state_patch": state_patch if isinstance(state_patch, dict) else None,
    }


def validate_response(resp: Any) -> list[str]:
    """List every contract violation in a normalized response.

    Args:
        resp: Output of normalize_response (or anything else).

    Returns:
        Error codes; empty when the response is valid.
    """
    if not isinstance(resp, dict):
        return ["resp_not_object"]

    errors: list[str] = []
    next_phase = resp.get("next_phase")
    if not isinstance(next_phase, str) or not next_phase:
        errors.append("next_phase_missing")
    elif resolve_phase(next_phase) is None:
        errors.append("next_phase_invalid")

    if not isinstance(resp.get("silent"), bool):
        errors.append("silent_missing_or_invalid")
    if not isinstance(resp.get("skip_input"), bool):
        errors.append("skip_input_missing_or_invalid")
    if not isinstance(resp.get("hangup", False), bool):
        errors.append("hangup_invalid")

    errors.extend(_validate_action(resp.get("action")))

    text = resp.get("text")
    if text is not None and not isinstance(text, str):
        errors.append("text_invalid")
    audio = resp.get("audio")
    if audio is not None and not isinstance(audio, str):
        errors.append("audio_invalid")
    state_patch = resp.get("state_patch")
    if state_patch is not None and not isinstance(state_patch, dict):
        errors.append("state_patch_invalid")
    return errors


def _validate_action(action: Any) -> list[str]:
    if not isinstance(action, dict) or not action.get("type"):
        return ["action_type_missing"]
    action_type = action["type"]
    if action_type not in _ACTION_TYPES:
        return ["action_type_invalid"]
    if action_type == ActionType.WEBHOOK.value:
        if action.get("name") not in _DELEGATE_NAMES:
            return ["webhook_name_invalid"]
    elif action_type == ActionType.END_CALL.value:
        if not isinstance(action.get("reason"), str):
            return ["end_call_reason_invalid"]
    elif action_type == ActionType.PLAY_AUDIO.value:
        path = action.get("path")
        if not isinstance(path, str) or not path:
            return ["audio_path_invalid"]
    elif action_type == ActionType.SET_STATE.value:
        if not isinstance(action.get("patch", {}), dict):
            return ["set_state_patch_invalid"]
    return []


def fail_closed_response(phase: str, text: str = FAIL_CLOSED_TEXT) -> dict[str, Any]:
    """Build the safe response used when a handler output is unusable.

    Keeps the caller in the same phase, listening. Never raises.

    Args:
        phase: Phase active when the failure happened.
        text: Apology to speak.

    Returns:
        A normalized, valid response dict.
    """
    resolved = resolve_phase(phase) or Phase.ERROR
    return {
        "next_phase": resolved.value,
        "text": text,
        "audio": None,
        "silent": False,
        "skip_input": False,
        "hangup": False,
        "action": {"type": ActionType.SET_STATE.value, "patch": {}},
        "state_patch": None,
    }
