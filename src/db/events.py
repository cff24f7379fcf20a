"""Append-only call event logging with idempotency key enforcement."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import CallEvent


async def log_event(
    session: AsyncSession,
    *,
    session_id: str,
    event_type: str,
    phase: str | None = None,
    payload: dict | None = None,
    idempotency_key: str | None = None,
) -> CallEvent | None:
    """Log an event to the append-only call_events table.

    If an idempotency_key is provided and already exists, the event is
    skipped (returns None), so a redelivered turn is recorded once.

    Args:
        session: Active database session.
        session_id: Call the event belongs to.
        event_type: Type of event (e.g. "turn_processed").
        phase: Phase the call was in after the event.
        payload: Event-specific data.
        idempotency_key: Unique key to prevent duplicate events.

    Returns:
        The created CallEvent, or None if deduplicated.
    """
    if idempotency_key:
        existing = await session.execute(
            select(CallEvent).where(CallEvent.idempotency_key == idempotency_key)
        )
        if existing.scalar_one_or_none() is not None:
            return None

    event = CallEvent(
        event_id=uuid.uuid4(),
        session_id=session_id,
        event_type=event_type,
        phase=phase,
        payload=payload or {},
        idempotency_key=idempotency_key,
        created_at=datetime.now(timezone.utc),
    )
    session.add(event)
    await session.flush()
    return event
