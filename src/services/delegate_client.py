"""Delegation gateway: client for the external business-service webhook.

Every delegated call is one HTTP POST with a bounded timeout. Network
errors, timeouts, non-2xx statuses and unparsable bodies all become
ok=False results; nothing here raises for HTTP conditions and nothing
is retried.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx

from src.shared.response_models import DelegateResult
from src.shared.types import DelegateName, DelegateReason
from src.shared.validators import format_id_local, split_id

if TYPE_CHECKING:
    from src.config.settings import Settings
    from src.engine.session import SessionState

logger = logging.getLogger(__name__)

# Remote field names mapped onto the names handlers read.
_FIELD_MAP = {
    "patientFound": "patient_found",
    "nombre": "name",
    "edad": "age",
    "horaFound": "slot_found",
    "fecha": "date",
    "hora": "time",
    "doctor_box": "resource",
    "especialidad": "specialty",
    "holdUntil": "hold_until",
    "requisito": "requirement",
    "rut": "id",
    "dv": "check_digit",
}


def unwrap_output(data: Any) -> dict | None:
    """Unwrap the service envelope.

    The service may answer with the object itself, a one-element list,
    or {"output": "<json string>"}.

    Args:
        data: Decoded JSON body.

    Returns:
        The inner object, or None if it is not a JSON object.
    """
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict) and "output" in data:
        output = data["output"]
        if isinstance(output, str):
            try:
                output = json.loads(output)
            except ValueError:
                return None
        data = output
    return data if isinstance(data, dict) else None


def parse_result(name: DelegateName, data: dict) -> DelegateResult:
    """Translate an unwrapped service answer into a DelegateResult.

    Args:
        name: Delegated call that produced the answer.
        data: Unwrapped JSON object.

    Returns:
        DelegateResult with handler-facing field names.
    """
    fields: dict[str, Any] = {}
    for key, value in data.items():
        fields[_FIELD_MAP.get(key, key)] = value
    ok = fields.pop("ok", False) is True
    reason = fields.pop("reason", None)
    if reason is not None:
        reason = str(reason)
    if not ok and reason is None:
        reason = DelegateReason.TECHNICAL_ERROR.value
    if name == DelegateName.FORMAT_ID and ok and not fields.get("body") and fields.get("id"):
        parsed = split_id(str(fields["id"]))
        if parsed is not None:
            fields["body"], fields["check_digit"] = parsed
    return DelegateResult(ok=ok, reason=reason, **fields)


class DelegationGateway:
    """Execute delegated calls against the business-service webhook.

    Args:
        webhook_url: Endpoint receiving every delegated call.
        timeout_ms: Per-call timeout in milliseconds.
        domain: Tenant/domain name sent with each call.
        language: Call language sent with each call.
        default_confidence: STT confidence sent when the turn has none.
    """

    def __init__(
        self,
        *,
        webhook_url: str,
        timeout_ms: int = 5000,
        domain: str = "quintero",
        language: str = "es-CL",
        default_confidence: float = 0.82,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout_ms = timeout_ms
        self.domain = domain
        self.language = language
        self.default_confidence = default_confidence

    @classmethod
    def from_settings(cls, settings: Settings) -> DelegationGateway:
        """Build a gateway from application settings."""
        return cls(
            webhook_url=settings.delegate_webhook_url,
            timeout_ms=settings.delegate_timeout_ms,
            domain=settings.bot_domain,
            language=settings.bot_language,
            default_confidence=settings.default_confidence,
        )

    def build_request(
        self,
        name: DelegateName,
        payload: dict[str, Any],
        state: SessionState,
        *,
        raw_text: str = "",
        confidence: float | None = None,
    ) -> dict[str, Any]:
        """Build the JSON body for one delegated call.

        Args:
            name: Delegated operation.
            payload: Handler-supplied fields (id, specialty, ...).
            state: Session state of the calling session.
            raw_text: Caller transcript of the current turn.
            confidence: STT confidence of the transcript.

        Returns:
            Request body dict.
        """
        body: dict[str, Any] = {
            "event": f"{name.value}_REQUEST",
            "action": name.value,
            "domain": self.domain,
            "call_id": state.session_id,
            "session_id": state.session_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "raw_text": raw_text,
            "confidence": self.default_confidence if confidence is None else confidence,
            "language": self.language,
        }
        if state.caller_id:
            body["ani"] = state.caller_id
        if state.destination_id:
            body["dnis"] = state.destination_id
        body.update(payload)
        return body

    async def execute(
        self,
        name: DelegateName,
        payload: dict[str, Any],
        state: SessionState,
        *,
        raw_text: str = "",
        confidence: float | None = None,
    ) -> DelegateResult:
        """Execute one delegated call.

        FORMAT_ID is computed locally when the service gives no usable
        answer; every other call fails closed with TECHNICAL_ERROR.

        Args:
            name: Delegated operation.
            payload: Handler-supplied fields.
            state: Session state of the calling session.
            raw_text: Caller transcript of the current turn.
            confidence: STT confidence of the transcript.

        Returns:
            DelegateResult; ok=False for every failure.
        """
        if name == DelegateName.FORMAT_ID:
            raw_text = payload.get("raw_text") or raw_text
            if not raw_text.strip():
                return DelegateResult(ok=False, reason=DelegateReason.EMPTY_INPUT.value)

        body = self.build_request(
            name, payload, state, raw_text=raw_text, confidence=confidence
        )
        data = await self._post(name, body, state.session_id)
        if data is None:
            if name == DelegateName.FORMAT_ID:
                local = format_id_local(raw_text)
                logger.info(
                    "format_id_local_fallback",
                    extra={"session_id": state.session_id, "ok": local["ok"]},
                )
                return DelegateResult(**local)
            return DelegateResult(ok=False, reason=DelegateReason.TECHNICAL_ERROR.value)

        result = parse_result(name, data)
        logger.info(
            "delegate_call_completed",
            extra={
                "session_id": state.session_id,
                "delegate": name.value,
                "ok": result.ok,
                "reason": result.reason,
            },
        )
        return result

    async def _post(self, name: DelegateName, body: dict[str, Any], session_id: str) -> dict | None:
        if not self.webhook_url:
            logger.warning(
                "delegate_url_not_configured",
                extra={"session_id": session_id, "delegate": name.value},
            )
            return None
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.webhook_url,
                    json=body,
                    headers={"Content-Type": "application/json"},
                    timeout=self.timeout_ms / 1000,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "delegate_call_failed",
                extra={
                    "session_id": session_id,
                    "delegate": name.value,
                    "error": type(exc).__name__,
                },
            )
            return None

        unwrapped = unwrap_output(data)
        if unwrapped is None:
            logger.warning(
                "delegate_response_unparsable",
                extra={"session_id": session_id, "delegate": name.value},
            )
        return unwrapped
