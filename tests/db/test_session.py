"""Tests for the async database session scope."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.db.session import session_scope


def _factory(mock_session: AsyncMock) -> MagicMock:
    mock_factory = MagicMock()
    mock_ctx = AsyncMock()
    mock_ctx.__aenter__.return_value = mock_session
    mock_ctx.__aexit__.return_value = False
    mock_factory.return_value = mock_ctx
    return mock_factory


class TestSessionScope:
    """Session scope commits or rolls back."""

    async def test_commits_on_success(self) -> None:
        """Session is committed after successful use."""
        mock_session = AsyncMock()
        async with session_scope(_factory(mock_session)) as session:
            assert session is mock_session

        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    async def test_rolls_back_on_error(self) -> None:
        """Session is rolled back and the error propagates."""
        mock_session = AsyncMock()
        with pytest.raises(RuntimeError):
            async with session_scope(_factory(mock_session)):
                raise RuntimeError("boom")

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()
