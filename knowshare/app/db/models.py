"""SQLAlchemy ORM models for the knowledge store, access requests and grants."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSON on SQLite (tests), JSONB on PostgreSQL
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Org(Base):
    """Organization table - top-level tenancy boundary."""

    __tablename__ = "org"

    org_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    users: Mapped[list["User"]] = relationship("User", back_populates="org")
    resources: Mapped[list["Resource"]] = relationship("Resource", back_populates="org")


class User(Base):
    """User table - org-scoped members."""

    __tablename__ = "user"
    __table_args__ = (
        UniqueConstraint("org_id", "email", name="uq_user_org_email"),
        Index("idx_user_org", "org_id"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    org_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("org.org_id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    email: Mapped[str] = mapped_column(Text, nullable=False)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    org: Mapped["Org"] = relationship("Org", back_populates="users")


class Resource(Base):
    """Knowledge-base entry owned by an organization and authored by a member.

    ``deleted_at`` marks a soft delete: the row and its chunks stay in place but
    are excluded from every search until restored or hard-deleted.
    """

    __tablename__ = "resource"
    __table_args__ = (Index("idx_resource_org", "org_id", "deleted_at"),)

    resource_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("org.org_id"), nullable=False)
    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    org: Mapped["Org"] = relationship("Org", back_populates="resources")
    chunks: Mapped[list["KnowledgeChunk"]] = relationship(
        "KnowledgeChunk",
        back_populates="resource",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Conversation(Base):
    """Conversation table - one chat thread of one user."""

    __tablename__ = "conversation"
    __table_args__ = (Index("idx_conversation_user", "user_id", "created_at"),)

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    org_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("org.org_id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.message_id",
    )


class Message(Base):
    """Message table - a single dialogue turn."""

    __tablename__ = "message"
    __table_args__ = (Index("idx_message_conversation", "conversation_id"),)

    message_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("conversation.conversation_id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")
    chunks: Mapped[list["KnowledgeChunk"]] = relationship(
        "KnowledgeChunk",
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class KnowledgeChunk(Base):
    """Embedded unit of content.

    Both variants share this table: ``kind='resource'`` rows hang off a
    resource, ``kind='message'`` rows off a chat message. Owner and org are
    denormalized onto the chunk so every retrieval tier is a single-table scan.
    """

    __tablename__ = "knowledge_chunk"
    __table_args__ = (
        CheckConstraint("kind IN ('resource', 'message')", name="ck_chunk_kind"),
        Index("idx_chunk_owner", "owner_user_id"),
        Index("idx_chunk_org", "org_id"),
    )

    chunk_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    org_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("org.org_id", ondelete="CASCADE"), nullable=True
    )
    resource_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("resource.resource_id", ondelete="CASCADE"), nullable=True
    )
    message_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("message.message_id", ondelete="CASCADE"), nullable=True
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    vector: Mapped[list[float]] = mapped_column(JsonType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    resource: Mapped["Resource | None"] = relationship("Resource", back_populates="chunks")
    message: Mapped["Message | None"] = relationship("Message", back_populates="chunks")
    grants: Mapped[list["KnowledgeGrant"]] = relationship(
        "KnowledgeGrant",
        back_populates="chunk",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    # Requests outlive their chunk: the database sets chunk_id to NULL
    access_requests: Mapped[list["AccessRequest"]] = relationship(
        "AccessRequest", back_populates="chunk", passive_deletes="all"
    )


class AccessRequest(Base):
    """Access request table - one requester asking one owner for one chunk."""

    __tablename__ = "access_request"
    __table_args__ = (
        CheckConstraint("requester_id <> owner_id", name="ck_request_not_self"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'denied')", name="ck_request_status"
        ),
        Index("idx_request_owner", "owner_id", "created_at"),
        Index("idx_request_requester", "requester_id", "created_at"),
        Index(
            "uq_request_pending",
            "chunk_id",
            "requester_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    request_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    chunk_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("knowledge_chunk.chunk_id", ondelete="SET NULL"), nullable=True
    )
    conversation_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("conversation.conversation_id", ondelete="SET NULL"), nullable=True
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    response_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    chunk: Mapped["KnowledgeChunk | None"] = relationship(
        "KnowledgeChunk", back_populates="access_requests"
    )
    requester: Mapped["User"] = relationship("User", foreign_keys=[requester_id])
    owner: Mapped["User"] = relationship("User", foreign_keys=[owner_id])


class KnowledgeGrant(Base):
    """Grant ledger - append-only record of chunks shared with a user."""

    __tablename__ = "knowledge_grant"
    __table_args__ = (
        UniqueConstraint("chunk_id", "granted_to_user_id", name="uq_grant_chunk_user"),
        Index("idx_grant_user", "granted_to_user_id"),
    )

    grant_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chunk_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("knowledge_chunk.chunk_id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    granted_to_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    chunk: Mapped["KnowledgeChunk"] = relationship("KnowledgeChunk", back_populates="grants")


class Notification(Base):
    """Durable notification inbox - poll fallback for realtime events."""

    __tablename__ = "notification"
    __table_args__ = (Index("idx_notification_user", "user_id", "read", "created_at"),)

    notification_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SuggestionConfirmationRow(Base):
    """User's answer to one suggested knowledge holder within a conversation.

    ``embedding_id`` is not a foreign key: the row outlives a
    hard-deleted chunk the same way its access request does.
    """

    __tablename__ = "suggestion_confirmation"
    __table_args__ = (
        CheckConstraint(
            "state IN ('awaiting_confirmation', 'confirmed', 'declined')",
            name="ck_confirmation_state",
        ),
        UniqueConstraint(
            "user_id", "conversation_id", "embedding_id", name="uq_confirmation_suggestion"
        ),
        Index("idx_confirmation_conversation", "conversation_id"),
    )

    confirmation_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("conversation.conversation_id", ondelete="CASCADE"), nullable=False
    )
    embedding_id: Mapped[int] = mapped_column(Integer, nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False
    )
    owner_name: Mapped[str] = mapped_column(Text, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False, default="awaiting_confirmation")
    request_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("access_request.request_id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
