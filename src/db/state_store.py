"""Session state stores: load and persist SessionState between turns."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from src.db.events import log_event
from src.db.postgres import delete_call_session, get_call_session, upsert_call_session
from src.db.session import get_session_factory, session_scope
from src.engine.session import SessionState

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from src.config.settings import Settings


class SessionStore(Protocol):
    """Persistence boundary used by the turn processor."""

    async def load(self, session_id: str) -> SessionState | None: ...

    async def save(self, state: SessionState) -> None: ...

    async def delete(self, session_id: str) -> bool: ...

    async def record_event(
        self,
        session_id: str,
        event_type: str,
        *,
        phase: str | None = None,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> None: ...


class InMemorySessionStore:
    """Process-local store for development and tests.

    Stored states are copies, so a caller mutating a loaded state does
    not change what is stored until it saves. Events are kept per session
    and dropped with it.
    """

    def __init__(self) -> None:
        self._states: dict[str, dict[str, Any]] = {}
        self._events: dict[str, list[dict[str, Any]]] = {}
        self._event_keys: dict[str, set[str]] = {}

    @property
    def events(self) -> list[dict[str, Any]]:
        """Events of every session not yet deleted, grouped by session."""
        return [event for events in self._events.values() for event in events]

    def events_for(self, session_id: str) -> list[dict[str, Any]]:
        return list(self._events.get(session_id, []))

    async def load(self, session_id: str) -> SessionState | None:
        data = self._states.get(session_id)
        if data is None:
            return None
        return SessionState.model_validate(data)

    async def save(self, state: SessionState) -> None:
        self._states[state.session_id] = state.model_dump(mode="json")

    async def delete(self, session_id: str) -> bool:
        self._events.pop(session_id, None)
        self._event_keys.pop(session_id, None)
        return self._states.pop(session_id, None) is not None

    async def record_event(
        self,
        session_id: str,
        event_type: str,
        *,
        phase: str | None = None,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> None:
        if idempotency_key:
            keys = self._event_keys.setdefault(session_id, set())
            if idempotency_key in keys:
                return
            keys.add(idempotency_key)
        self._events.setdefault(session_id, []).append(
            {
                "session_id": session_id,
                "event_type": event_type,
                "phase": phase,
                "payload": payload or {},
            }
        )


class SqlSessionStore:
    """Postgres-backed store; each operation commits before returning.

    Args:
        session_factory: Async session factory bound to the database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, session_id: str) -> SessionState | None:
        async with session_scope(self._session_factory) as session:
            record = await get_call_session(session, session_id)
            if record is None:
                return None
            return SessionState.model_validate(record.state)

    async def save(self, state: SessionState) -> None:
        async with session_scope(self._session_factory) as session:
            await upsert_call_session(
                session,
                session_id=state.session_id,
                phase=state.phase,
                state=state.model_dump(mode="json"),
                caller_id=state.caller_id,
            )

    async def delete(self, session_id: str) -> bool:
        async with session_scope(self._session_factory) as session:
            return await delete_call_session(session, session_id)

    async def record_event(
        self,
        session_id: str,
        event_type: str,
        *,
        phase: str | None = None,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> None:
        async with session_scope(self._session_factory) as session:
            await log_event(
                session,
                session_id=session_id,
                event_type=event_type,
                phase=phase,
                payload=payload,
                idempotency_key=idempotency_key,
            )


def build_session_store(settings: Settings) -> SessionStore:
    """Build the store selected by settings.session_backend.

    Args:
        settings: Application settings.

    Returns:
        InMemorySessionStore or SqlSessionStore.

    Raises:
        ValueError: If the backend name is unknown.
    """
    backend = settings.session_backend.lower()
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "postgres":
        return SqlSessionStore(get_session_factory())
    raise ValueError(f"Unknown session backend: {settings.session_backend}")
