"""Shared test fixtures for the voice bot test suite."""

from datetime import date

import pytest

from src.config.settings import Settings
from src.engine.dispatcher import PhaseDispatcher
from src.engine.session import SessionState, initial_state
from src.phases.common import PhaseContext
from src.shared.intents import KeywordIntentClassifier
from src.shared.prompts import PromptRenderer
from src.shared.response_models import DelegateResult, TurnInput
from src.shared.types import DelegateName, TurnEvent

TODAY = date(2026, 10, 19)


@pytest.fixture
def settings() -> Settings:
    """Provide test settings with safe defaults.

    Returns:
        Settings configured for testing (no real webhook, memory store).
    """
    return Settings(
        delegate_webhook_url="https://delegate.test/webhook",
        session_backend="memory",
        cloud_sql_password="test-password",
        cloud_sql_database="quintero_test",
    )


@pytest.fixture
def ctx() -> PhaseContext:
    """Handler context with a fixed clock."""
    return PhaseContext(
        classifier=KeywordIntentClassifier(),
        prompts=PromptRenderer("es-CL"),
        language="es",
        greeting_audio="quintero/greeting",
        today=lambda: TODAY,
    )


@pytest.fixture
def dispatcher(ctx: PhaseContext) -> PhaseDispatcher:
    """Dispatcher using the default handlers."""
    return PhaseDispatcher(ctx)


@pytest.fixture
def state() -> SessionState:
    """Fresh session state."""
    return initial_state("call-001", caller_id="+56911112222", destination_id="600")


def _make_turn(transcript: str = "", session_id: str = "call-001") -> TurnInput:
    return TurnInput(session_id=session_id, transcript=transcript)


def _make_continuation(
    name: DelegateName,
    result: dict,
    transcript: str = "",
    session_id: str = "call-001",
) -> TurnInput:
    return TurnInput(
        session_id=session_id,
        transcript=transcript,
        event=TurnEvent.DELEGATE_RESULT,
        delegate_name=name,
        delegate_result=DelegateResult(**result),
    )


@pytest.fixture
def make_turn():
    """Factory for ordinary caller turns."""
    return _make_turn


@pytest.fixture
def make_continuation():
    """Factory for turns carrying a delegated call result."""
    return _make_continuation
