"""SQLAlchemy ORM models for call session persistence."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.shared.types import Phase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CallSession(Base):
    """Current state of one call, keyed by transport session id.

    Attributes:
        session_id: Transport session identifier (primary key).
        phase: Phase the call is in, duplicated out of state for queries.
        state: Serialized SessionState.
    """

    __tablename__ = "call_sessions"

    session_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    phase: Mapped[str] = mapped_column(String(40), default=Phase.START_GREETING.value)
    caller_id: Mapped[str | None] = mapped_column(String(40))
    state: Mapped[dict] = mapped_column(JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (Index("ix_call_sessions_phase", "phase"),)


class CallEvent(Base):
    """Append-only record of what happened during a call.

    Attributes:
        event_id: Primary key UUID.
        event_type: E.g. "turn_processed", "contract_violation".
        idempotency_key: Optional key preventing duplicate events.
    """

    __tablename__ = "call_events"

    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[str] = mapped_column(String(128), index=True)
    event_type: Mapped[str] = mapped_column(String(50))
    phase: Mapped[str | None] = mapped_column(String(40))
    payload: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    idempotency_key: Mapped[str | None] = mapped_column(String(200), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
