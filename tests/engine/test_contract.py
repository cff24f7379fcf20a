"""Tests for response normalization, validation and the fail-closed fallback."""

import pytest

from src.engine.contract import (
    FAIL_CLOSED_TEXT,
    fail_closed_response,
    normalize_response,
    validate_response,
)


class TestNormalizeResponse:
    """Every accepted handler shape maps onto the strict contract."""

    def test_minimal_dict_gets_defaults(self) -> None:
        """Missing fields are filled with safe defaults."""
        resp = normalize_response({"text": "Hola"}, "WAIT_ID")
        assert resp == {
            "next_phase": "WAIT_ID",
            "text": "Hola",
            "audio": None,
            "silent": False,
            "skip_input": False,
            "hangup": False,
            "action": {"type": "SET_STATE", "patch": {}},
            "state_patch": None,
        }

    @pytest.mark.parametrize("raw", [None, "texto", 42, ["a"]])
    def test_non_dict_is_treated_as_empty(self, raw: object) -> None:
        """Non-dict output normalizes to a silent-free default response."""
        resp = normalize_response(raw, "ASK_DATE")
        assert resp["next_phase"] == "ASK_DATE"
        assert resp["text"] is None
        assert validate_response(resp) == []

    def test_legacy_phase_alias_canonicalized(self) -> None:
        """Legacy phase names become canonical ones."""
        assert normalize_response({"next_phase": "WAIT_RUT"}, "WAIT_ID")["next_phase"] == "WAIT_ID"
        normalized = normalize_response({"next_phase": "CONFIRM"}, "WAIT_ID")
        assert normalized["next_phase"] == "CONFIRM_ID"

    def test_non_bool_flags_become_false(self) -> None:
        """Truthy non-bool flags are not trusted."""
        resp = normalize_response({"silent": "yes", "skip_input": 1, "hangup": "true"}, "WAIT_ID")
        assert resp["silent"] is False
        assert resp["skip_input"] is False
        assert resp["hangup"] is False

    def test_non_string_text_dropped(self) -> None:
        """Text that is not a string is removed."""
        assert normalize_response({"text": 123}, "WAIT_ID")["text"] is None

    def test_bare_string_action(self) -> None:
        """A bare action string becomes a typed action."""
        resp = normalize_response({"action": "set_state"}, "WAIT_ID")
        assert resp["action"] == {"type": "SET_STATE", "patch": {}}

    def test_legacy_hangup_action(self) -> None:
        """HANGUP is the legacy name of END_CALL."""
        resp = normalize_response({"action": "HANGUP", "hangup": True}, "COMPLETE")
        assert resp["action"] == {"type": "END_CALL", "reason": "legacy"}

    def test_hangup_without_action(self) -> None:
        """hangup with no action implies END_CALL."""
        resp = normalize_response({"hangup": True}, "COMPLETE")
        assert resp["action"] == {"type": "END_CALL", "reason": "legacy"}

    def test_legacy_updates_payload(self) -> None:
        """SET_STATE payload.updates becomes the patch."""
        resp = normalize_response(
            {"action": {"type": "SET_STATE", "payload": {"updates": {"specialty": "pediatría"}}}},
            "ASK_DATE",
        )
        assert resp["action"] == {"type": "SET_STATE", "patch": {"specialty": "pediatría"}}

    def test_legacy_end_call_reason(self) -> None:
        """END_CALL payload.reason becomes the reason."""
        resp = normalize_response(
            {"action": {"type": "END_CALL", "payload": {"reason": "completed"}}, "hangup": True},
            "COMPLETE",
        )
        assert resp["action"] == {"type": "END_CALL", "reason": "completed"}

    def test_play_audio_path_from_audio(self) -> None:
        """PLAY_AUDIO without path takes it from audio."""
        resp = normalize_response(
            {"action": "PLAY_AUDIO", "audio": "quintero/greeting"}, "WAIT_ID"
        )
        assert resp["action"] == {"type": "PLAY_AUDIO", "path": "quintero/greeting"}

    def test_webhook_payload_defaults(self) -> None:
        """WEBHOOK without a dict payload gets an empty one."""
        resp = normalize_response({"action": {"type": "WEBHOOK", "name": "FORMAT_ID"}}, "WAIT_ID")
        assert resp["action"] == {"type": "WEBHOOK", "name": "FORMAT_ID", "payload": {}}

    def test_sound_text_becomes_play_audio(self) -> None:
        """'sound:' text is an audio asset, not speech."""
        resp = normalize_response({"text": "sound:voicebot/quintero/greeting"}, "WAIT_ID")
        assert resp["text"] is None
        assert resp["action"] == {"type": "PLAY_AUDIO", "path": "quintero/greeting"}

    def test_sound_text_with_explicit_action_moves_to_audio(self) -> None:
        """With an explicit action, the sound path goes to audio."""
        resp = normalize_response(
            {"text": "sound:quintero/bye", "action": {"type": "SET_STATE"}}, "WAIT_ID"
        )
        assert resp["text"] is None
        assert resp["audio"] == "quintero/bye"
        assert resp["action"]["type"] == "SET_STATE"

    def test_non_dict_state_patch_dropped(self) -> None:
        """state_patch must be a dict."""
        assert normalize_response({"state_patch": ["x"]}, "WAIT_ID")["state_patch"] is None

    @pytest.mark.parametrize(
        "raw",
        [
            {"text": "sound:voicebot/quintero/greeting"},
            {"action": "HANGUP", "hangup": True},
            {"action": {"type": "SET_STATE", "payload": {"updates": {"a": 1}}}},
            {"next_phase": "LISTEN_RUT", "silent": True, "skip_input": True},
            {"action": {"type": "WEBHOOK", "name": "FORMAT_ID"}},
            "garbage",
        ],
    )
    def test_idempotent(self, raw: object) -> None:
        """Normalizing twice equals normalizing once."""
        once = normalize_response(raw, "WAIT_ID")
        assert normalize_response(once, "WAIT_ID") == once


class TestValidateResponse:
    """Contract violation codes."""

    def _valid(self) -> dict:
        return normalize_response({"text": "Hola"}, "WAIT_ID")

    def test_valid_response(self) -> None:
        """A normalized response has no errors."""
        assert validate_response(self._valid()) == []

    def test_not_object(self) -> None:
        """Non-dicts are rejected outright."""
        assert validate_response("x") == ["resp_not_object"]

    def test_unknown_phase(self) -> None:
        """Unknown phases are invalid."""
        resp = self._valid() | {"next_phase": "NOWHERE"}
        assert validate_response(resp) == ["next_phase_invalid"]

    def test_missing_phase(self) -> None:
        """Empty phase is missing."""
        resp = self._valid() | {"next_phase": ""}
        assert validate_response(resp) == ["next_phase_missing"]

    def test_flag_types(self) -> None:
        """silent and skip_input must be booleans."""
        resp = self._valid() | {"silent": None, "skip_input": "no"}
        assert validate_response(resp) == [
            "silent_missing_or_invalid",
            "skip_input_missing_or_invalid",
        ]

    @pytest.mark.parametrize(
        ("action", "code"),
        [
            (None, "action_type_missing"),
            ({"type": "TRANSFER"}, "action_type_invalid"),
            ({"type": "WEBHOOK", "name": "SEND_SMS", "payload": {}}, "webhook_name_invalid"),
            ({"type": "END_CALL", "reason": None}, "end_call_reason_invalid"),
            ({"type": "PLAY_AUDIO", "path": ""}, "audio_path_invalid"),
            ({"type": "SET_STATE", "patch": "x"}, "set_state_patch_invalid"),
        ],
    )
    def test_action_errors(self, action: object, code: str) -> None:
        """Each malformed action yields its code."""
        resp = self._valid() | {"action": action}
        assert validate_response(resp) == [code]

    def test_payload_type_errors(self) -> None:
        """text, audio and state_patch must have the right types."""
        resp = self._valid() | {"text": 1, "audio": 2, "state_patch": 3}
        assert validate_response(resp) == ["text_invalid", "audio_invalid", "state_patch_invalid"]


class TestFailClosedResponse:
    """Safe fallback response."""

    def test_keeps_phase_and_listens(self) -> None:
        """The caller stays in the phase and is listened to."""
        resp = fail_closed_response("ASK_DATE")
        assert resp["next_phase"] == "ASK_DATE"
        assert resp["text"] == FAIL_CLOSED_TEXT
        assert resp["silent"] is False
        assert resp["skip_input"] is False
        assert resp["hangup"] is False
        assert validate_response(resp) == []

    def test_unknown_phase_falls_back_to_error(self) -> None:
        """An unknown phase becomes ERROR."""
        assert fail_closed_response("NOWHERE")["next_phase"] == "ERROR"

    def test_alias_resolved(self) -> None:
        """Legacy phase names resolve to canonical ones."""
        assert fail_closed_response("WAIT_BODY")["next_phase"] == "WAIT_ID"
