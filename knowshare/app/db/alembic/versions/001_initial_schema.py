"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- org, user
- resource, conversation, message
- knowledge_chunk (resource and message chunks)
- access_request (with the one-pending-per-pair partial unique index)
- knowledge_grant, notification
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # org table
    op.create_table(
        "org",
        sa.Column("org_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    # user table
    op.create_table(
        "user",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["org.org_id"]),
        sa.UniqueConstraint("org_id", "email", name="uq_user_org_email"),
    )
    op.create_index("idx_user_org", "user", ["org_id"])

    # resource table
    op.create_table(
        "resource",
        sa.Column("resource_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["org.org_id"]),
        sa.ForeignKeyConstraint(["owner_user_id"], ["user.user_id"], ondelete="CASCADE"),
    )
    op.create_index("idx_resource_org", "resource", ["org_id", "deleted_at"])

    # conversation table
    op.create_table(
        "conversation",
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["org_id"], ["org.org_id"], ondelete="CASCADE"),
    )
    op.create_index("idx_conversation_user", "conversation", ["user_id", "created_at"])

    # message table
    op.create_table(
        "message",
        sa.Column("message_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.conversation_id"], ondelete="CASCADE"),
    )
    op.create_index("idx_message_conversation", "message", ["conversation_id"])

    # knowledge_chunk table
    op.create_table(
        "knowledge_chunk",
        sa.Column("chunk_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("owner_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("org_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resource_id", sa.Integer(), nullable=True),
        sa.Column("message_id", sa.Integer(), nullable=True),
        sa.Column("chunk_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("vector", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["owner_user_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["org_id"], ["org.org_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["resource_id"], ["resource.resource_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["message_id"], ["message.message_id"], ondelete="CASCADE"),
        sa.CheckConstraint("kind IN ('resource', 'message')", name="ck_chunk_kind"),
    )
    op.create_index("idx_chunk_owner", "knowledge_chunk", ["owner_user_id"])
    op.create_index("idx_chunk_org", "knowledge_chunk", ["org_id"])

    # access_request table
    op.create_table(
        "access_request",
        sa.Column("request_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("requester_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("chunk_id", sa.Integer(), nullable=True),
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("question", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("response_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["requester_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["chunk_id"], ["knowledge_chunk.chunk_id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversation.conversation_id"], ondelete="SET NULL"),
        sa.CheckConstraint("requester_id <> owner_id", name="ck_request_not_self"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'denied')", name="ck_request_status"),
    )
    op.create_index("idx_request_owner", "access_request", ["owner_id", "created_at"])
    op.create_index("idx_request_requester", "access_request", ["requester_id", "created_at"])
    # At most one pending request per (chunk, requester)
    op.create_index(
        "uq_request_pending",
        "access_request",
        ["chunk_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # knowledge_grant table
    op.create_table(
        "knowledge_grant",
        sa.Column("grant_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chunk_id", sa.Integer(), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("granted_to_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["chunk_id"], ["knowledge_chunk.chunk_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["granted_to_user_id"], ["user.user_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("chunk_id", "granted_to_user_id", name="uq_grant_chunk_user"),
    )
    op.create_index("idx_grant_user", "knowledge_grant", ["granted_to_user_id"])

    # notification table
    op.create_table(
        "notification",
        sa.Column("notification_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.user_id"], ondelete="CASCADE"),
    )
    op.create_index("idx_notification_user", "notification", ["user_id", "read", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("notification")
    op.drop_table("knowledge_grant")
    op.drop_index("uq_request_pending", table_name="access_request")
    op.drop_table("access_request")
    op.drop_table("knowledge_chunk")
    op.drop_table("message")
    op.drop_table("conversation")
    op.drop_table("resource")
    op.drop_table("user")
    op.drop_table("org")
