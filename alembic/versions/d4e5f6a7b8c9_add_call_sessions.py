"""add_call_sessions

Revision ID: d4e5f6a7b8c9
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "d4e5f6a7b8c9"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create call_sessions and call_events tables."""
    op.create_table(
        "call_sessions",
        sa.Column("session_id", sa.String(128), primary_key=True),
        sa.Column("phase", sa.String(40), nullable=False),
        sa.Column("caller_id", sa.String(40), nullable=True),
        sa.Column("state", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_call_sessions_phase", "call_sessions", ["phase"])

    op.create_table(
        "call_events",
        sa.Column("event_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("phase", sa.String(40), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("idempotency_key", sa.String(200), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_call_events_session_id", "call_events", ["session_id"])


def downgrade() -> None:
    """Drop call_events and call_sessions tables."""
    op.drop_index("ix_call_events_session_id", table_name="call_events")
    op.drop_table("call_events")
    op.drop_index("ix_call_sessions_phase", table_name="call_sessions")
    op.drop_table("call_sessions")
