"""Attempt counting and escalation policy for listening phases.

Every listening phase has exactly one counter, one threshold and one
fallback. A failure increments the counter; when the counter reaches
the threshold the fallback applies instead of another re-prompt.
"""

import enum
from dataclasses import dataclass

from src.engine.session import SessionState
from src.shared.types import ASAP, EndReason, Phase


class Fallback(str, enum.Enum):
    """What happens when a phase runs out of attempts."""

    TERMINATE = "terminate"
    IMPLICIT_CONFIRM = "implicit_confirm"
    DEFAULT_VALUE = "default_value"
    GOODBYE = "goodbye"


@dataclass(frozen=True)
class AttemptPolicy:
    """Escalation rule for one listening phase.

    Attributes:
        phase: Phase the rule applies to.
        counter: SessionState field holding the attempt count.
        threshold: Failure number that triggers the fallback.
        fallback: Behaviour once the threshold is reached.
        reason: End reason when the fallback ends the call.
        default_value: Value assumed for DEFAULT_VALUE fallbacks.
    """

    phase: Phase
    counter: str
    threshold: int
    fallback: Fallback
    reason: EndReason | None = None
    default_value: str | None = None


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of registering one failed attempt."""

    policy: AttemptPolicy
    attempt: int

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.policy.threshold


DEFAULT_POLICIES: list[AttemptPolicy] = [
    AttemptPolicy(
        phase=Phase.WAIT_ID,
        counter="id_attempts",
        threshold=3,
        fallback=Fallback.TERMINATE,
        reason=EndReason.ID_CAPTURE_FAILED,
    ),
    AttemptPolicy(
        phase=Phase.CONFIRM_ID,
        counter="confirm_attempts",
        threshold=3,
        fallback=Fallback.IMPLICIT_CONFIRM,
    ),
    AttemptPolicy(
        phase=Phase.ASK_SPECIALTY,
        counter="specialty_attempts",
        threshold=3,
        fallback=Fallback.TERMINATE,
        reason=EndReason.SPECIALTY_NOT_IDENTIFIED,
    ),
    AttemptPolicy(
        phase=Phase.ASK_DATE,
        counter="date_attempts",
        threshold=3,
        fallback=Fallback.DEFAULT_VALUE,
        default_value=ASAP,
    ),
    AttemptPolicy(
        phase=Phase.CONFIRM_APPOINTMENT,
        counter="appointment_attempts",
        threshold=3,
        fallback=Fallback.IMPLICIT_CONFIRM,
    ),
    AttemptPolicy(
        phase=Phase.OFFER_ALTERNATIVES_WAIT,
        counter="alternatives_attempts",
        threshold=2,
        fallback=Fallback.GOODBYE,
        reason=EndReason.ALTERNATIVES_DECLINED,
    ),
]

# Phases that share another phase's counter.
_SHARED: dict[Phase, Phase] = {
    Phase.PARSE_SPECIALTY: Phase.ASK_SPECIALTY,
    Phase.OFFER_ALTERNATIVES: Phase.OFFER_ALTERNATIVES_WAIT,
}


def load_policies() -> list[AttemptPolicy]:
    """Load the escalation policies.

    Returns:
        List of AttemptPolicy instances, one per listening phase.
    """
    return list(DEFAULT_POLICIES)


def policy_for(phase: Phase) -> AttemptPolicy:
    """Return the policy governing a phase.

    Raises:
        KeyError: If the phase does not listen for caller input.
    """
    owner = _SHARED.get(phase, phase)
    for policy in load_policies():
        if policy.phase == owner:
            return policy
    raise KeyError(f"No attempt policy for phase {phase.value}")


def register_failure(state: SessionState, phase: Phase) -> AttemptOutcome:
    """Count one failed attempt (silence, ambiguity, rejected input).

    Args:
        state: Session state; the phase's counter is incremented.
        phase: Phase that failed to get a usable answer.

    Returns:
        AttemptOutcome telling whether the fallback applies.
    """
    policy = policy_for(phase)
    attempt = getattr(state, policy.counter) + 1
    setattr(state, policy.counter, attempt)
    return AttemptOutcome(policy=policy, attempt=attempt)
