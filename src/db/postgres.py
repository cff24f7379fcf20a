"""Call session CRUD operations for Cloud SQL Postgres."""

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import CallSession


async def get_call_session(session: AsyncSession, session_id: str) -> CallSession | None:
    """Fetch a call session by id.

    Args:
        session: Active database session.
        session_id: Transport session identifier.

    Returns:
        CallSession or None if not found.
    """
    result = await session.execute(
        select(CallSession).where(CallSession.session_id == session_id)
    )
    return result.scalar_one_or_none()


async def upsert_call_session(
    session: AsyncSession,
    *,
    session_id: str,
    phase: str,
    state: dict,
    caller_id: str | None = None,
) -> CallSession:
    """Create or update the stored state of a call.

    Args:
        session: Active database session.
        session_id: Transport session identifier.
        phase: Current phase.
        state: Serialized SessionState.
        caller_id: Caller number, if known.

    Returns:
        The stored CallSession.
    """
    now = datetime.now(timezone.utc)
    record = await get_call_session(session, session_id)
    if record is None:
        record = CallSession(
            session_id=session_id,
            phase=phase,
            caller_id=caller_id,
            state=state,
            created_at=now,
            updated_at=now,
        )
        session.add(record)
    else:
        record.phase = phase
        record.state = state
        record.updated_at = now
        if caller_id:
            record.caller_id = caller_id
    await session.flush()
    return record


async def delete_call_session(session: AsyncSession, session_id: str) -> bool:
    """Delete the stored state of a call.

    Args:
        session: Active database session.
        session_id: Transport session identifier.

    Returns:
        True if a row was deleted.
    """
    result = await session.execute(
        delete(CallSession).where(CallSession.session_id == session_id)
    )
    return (result.rowcount or 0) > 0
