"""Add suggestion_confirmation

Revision ID: 002
Revises: 001
Create Date: 2026-10-19

Stores the user's confirm/decline of each suggested knowledge holder, one row
per (user, conversation, embedding), so a suggestion can be answered only once.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the suggestion_confirmation table."""
    op.create_table(
        "suggestion_confirmation",
        sa.Column("confirmation_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("embedding_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_name", sa.Text(), nullable=False),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column(
            "state", sa.Text(), server_default=sa.text("'awaiting_confirmation'"), nullable=False
        ),
        sa.Column("request_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.conversation_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["request_id"], ["access_request.request_id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "state IN ('awaiting_confirmation', 'confirmed', 'declined')",
            name="ck_confirmation_state",
        ),
        sa.UniqueConstraint(
            "user_id", "conversation_id", "embedding_id", name="uq_confirmation_suggestion"
        ),
    )
    op.create_index("idx_confirmation_conversation", "suggestion_confirmation", ["conversation_id"])


def downgrade() -> None:
    """Drop the suggestion_confirmation table."""
    op.drop_index("idx_confirmation_conversation", table_name="suggestion_confirmation")
    op.drop_table("suggestion_confirmation")
