"""Access request coordinator - the pending/approved/denied state machine.

    pending --approve--> approved   (+ one grant, same transaction)
    pending --deny-----> denied

Both terminal states are final. Only this module writes ``access_request`` and
(through the grant ledger) ``knowledge_grant`` rows. Durable writes commit
first; the realtime push happens afterwards and its failure never undoes them.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from knowshare.app.db.models import AccessRequest, KnowledgeChunk, Message, Resource, User
from knowshare.app.db.queries import searchable_chunks
from knowshare.app.errors import (
    AlreadySharedError,
    ChunkNotFoundError,
    DuplicateRequestError,
    OwnKnowledgeError,
    RequestNotFoundOrResolvedError,
)
from knowshare.app.knowledge.directory import get_member
from knowshare.app.knowledge.grants import is_granted, record_grant
from knowshare.app.knowledge.inbox import store_notification
from knowshare.app.models.access import (
    AccessRequestRecord,
    AccessRequestStatus,
    ChunkPreview,
    Decision,
    EnrichedAccessRequest,
    ParentContext,
    RequestDirection,
    RequestParty,
)
from knowshare.app.models.events import (
    NotificationEvent,
    RequestCreatedPayload,
    RequestResponsePayload,
)
from knowshare.app.realtime.notifier import Notifier
from knowshare.app.utils.logging import StructuredAccessLogger
from knowshare.app.utils.metrics import metrics

logger = logging.getLogger(__name__)


def _to_record(row: AccessRequest) -> AccessRequestRecord:
    return AccessRequestRecord(
        request_id=row.request_id,
        requester_id=row.requester_id,
        owner_id=row.owner_id,
        chunk_id=row.chunk_id,
        conversation_id=row.conversation_id,
        question=row.question,
        status=AccessRequestStatus(row.status),
        response_note=row.response_note,
        created_at=row.created_at,
        responded_at=row.responded_at,
    )


def _resolution_payload(row: AccessRequest, responded_at: datetime) -> RequestResponsePayload:
    return RequestResponsePayload(
        request_id=row.request_id,
        status=row.status,
        response_content=row.response_note,
        responded_at=responded_at,
        embedding_id=row.chunk_id,
        conversation_id=row.conversation_id,
        question=row.question,
    )


def preview_text(content: str, max_chars: int) -> str:
    """Trim chunk content for a notification preview."""
    if len(content) <= max_chars:
        return content
    return content[: max(max_chars - 3, 0)].rstrip() + "..."


class AccessRequestCoordinator:
    """Creates, resolves and lists access requests."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        *,
        preview_chars: int = 280,
        access_logger: StructuredAccessLogger | None = None,
    ) -> None:
        self._session = session
        self._notifier = notifier
        self._preview_chars = preview_chars
        self._log = access_logger or StructuredAccessLogger()

    async def create(
        self,
        requester_id: UUID,
        chunk_id: int,
        question: str,
        *,
        conversation_id: UUID | None = None,
    ) -> AccessRequestRecord:
        """Open a pending request for someone else's chunk.

        Preconditions are checked in order and the first failure wins.

        Args:
            requester_id: User asking for access
            chunk_id: Chunk they want to read
            question: Question that surfaced the chunk, shown to the owner
            conversation_id: Conversation to resume once the owner responds

        Returns:
            The new pending request

        Raises:
            ChunkNotFoundError: Chunk does not exist, its resource is soft-deleted, or it
                belongs to another organization
            OwnKnowledgeError: Requester owns the chunk
            AlreadySharedError: Chunk is already granted to the requester
            DuplicateRequestError: A pending request for the pair already exists
        """
        result = await self._session.execute(
            searchable_chunks().where(KnowledgeChunk.chunk_id == chunk_id)
        )
        row = result.first()

        if row is None:
            self._reject("chunk_not_found", requester_id, chunk_id)
            raise ChunkNotFoundError()

        chunk: KnowledgeChunk = row[0]
        owner_id = chunk.owner_user_id

        if not await self._same_org(requester_id, owner_id):
            # Other organizations' chunks do not exist for the requester
            self._reject("other_org", requester_id, chunk_id)
            raise ChunkNotFoundError()

        if owner_id == requester_id:
            self._reject("own_knowledge", requester_id, chunk_id)
            raise OwnKnowledgeError()

        if await is_granted(self._session, chunk_id, requester_id):
            self._reject("already_shared", requester_id, chunk_id)
            raise AlreadySharedError()

        if await self._has_pending(requester_id, chunk_id):
            self._reject("duplicate_pending", requester_id, chunk_id)
            raise DuplicateRequestError()

        requester = await get_member(self._session, requester_id)
        created_at = datetime.now(UTC)

        request = AccessRequest(
            requester_id=requester_id,
            owner_id=owner_id,
            chunk_id=chunk_id,
            conversation_id=conversation_id,
            question=question,
            status=AccessRequestStatus.pending.value,
            response_note=None,
            created_at=created_at,
            responded_at=None,
        )

        try:
            self._session.add(request)
            await self._session.flush()

            event = NotificationEvent.request_created(
                owner_id,
                RequestCreatedPayload(
                    request_id=request.request_id,
                    question=question,
                    requester_id=requester_id,
                    requester_name=requester.name if requester else "",
                    requester_email=requester.email if requester else "",
                    embedding_id=chunk_id,
                    chunk_preview=preview_text(chunk.content, self._preview_chars),
                    created_at=created_at,
                ),
            )
            await store_notification(self._session, event)
            record = _to_record(request)
            await self._session.commit()
        except IntegrityError:
            # Lost the race against a concurrent create() for the same pair
            await self._session.rollback()
            if await self._has_pending(requester_id, chunk_id):
                self._reject("duplicate_pending", requester_id, chunk_id)
                raise DuplicateRequestError() from None
            raise

        self._log.log_transition(
            request_id=record.request_id,
            transition="created",
            requester_id=requester_id,
            owner_id=owner_id,
            chunk_id=chunk_id,
        )
        metrics.inc_request_event("created")

        await self._deliver(event)
        return record

    async def respond(
        self,
        responder_id: UUID,
        request_id: int,
        decision: Decision,
        response_note: str | None = None,
    ) -> AccessRequestRecord:
        """Resolve a pending request as its owner.

        The status flip, the grant (on approve) and the requester's inbox entry
        commit together or not at all.

        Args:
            responder_id: Caller; must own the request
            request_id: Request to resolve
            decision: "approve" or "deny"
            response_note: Optional message for the requester

        Returns:
            The resolved request

        Raises:
            RequestNotFoundOrResolvedError: Missing, not owned by the caller, or not pending
        """
        new_status = AccessRequestStatus.from_decision(decision)
        responded_at = datetime.now(UTC)

        conditions = [
            AccessRequest.request_id == request_id,
            AccessRequest.owner_id == responder_id,
            AccessRequest.status == AccessRequestStatus.pending.value,
        ]
        if new_status is AccessRequestStatus.approved:
            # Nothing left to grant once the chunk was hard-deleted
            conditions.append(AccessRequest.chunk_id.is_not(None))

        try:
            result = await self._session.execute(
                update(AccessRequest)
                .where(*conditions)
                .values(
                    status=new_status.value,
                    response_note=response_note or None,
                    responded_at=responded_at,
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount != 1:
                await self._session.rollback()
                raise RequestNotFoundOrResolvedError()

            loaded = await self._session.execute(
                select(AccessRequest)
                .where(AccessRequest.request_id == request_id)
                .execution_options(populate_existing=True)
            )
            request = loaded.scalar_one()

            if new_status is AccessRequestStatus.approved and request.chunk_id is not None:
                await record_grant(
                    self._session,
                    chunk_id=request.chunk_id,
                    owner_id=request.owner_id,
                    user_id=request.requester_id,
                )

            event = NotificationEvent.request_resolved(
                request.requester_id, _resolution_payload(request, responded_at)
            )
            await store_notification(self._session, event)
            record = _to_record(request)
            await self._session.commit()
        except RequestNotFoundOrResolvedError:
            raise
        except Exception:
            await self._session.rollback()
            raise

        self._log.log_transition(
            request_id=record.request_id,
            transition=new_status.value,
            requester_id=record.requester_id,
            owner_id=record.owner_id,
            chunk_id=record.chunk_id,
        )
        metrics.inc_request_event(new_status.value)

        await self._deliver(event)
        return record

    async def resolution_for(
        self, requester_id: UUID, request_id: int
    ) -> RequestResponsePayload | None:
        """The owner's decision on one of the requester's requests.

        Same payload ``respond()`` pushes to the requester, read back from the
        durable row. None while the request is pending, or if it is not theirs.
        """
        result = await self._session.execute(
            select(AccessRequest).where(
                AccessRequest.request_id == request_id,
                AccessRequest.requester_id == requester_id,
                AccessRequest.status != AccessRequestStatus.pending.value,
            )
        )
        request = result.scalar_one_or_none()

        if request is None or request.responded_at is None:
            return None

        return _resolution_payload(request, request.responded_at)

    async def list_requests(
        self,
        viewer_id: UUID,
        direction: RequestDirection = RequestDirection.received,
        status: AccessRequestStatus | None = None,
    ) -> list[EnrichedAccessRequest]:
        """List requests the viewer sent and/or received, newest first.

        Unbounded: callers impose their own limit.
        """
        requester_user = aliased(User, name="requester_user")
        owner_user = aliased(User, name="owner_user")

        if direction is RequestDirection.received:
            scope = AccessRequest.owner_id == viewer_id
        elif direction is RequestDirection.sent:
            scope = AccessRequest.requester_id == viewer_id
        else:
            scope = or_(
                AccessRequest.owner_id == viewer_id, AccessRequest.requester_id == viewer_id
            )

        where = [scope]
        if status is not None:
            where.append(AccessRequest.status == status.value)

        stmt = (
            select(AccessRequest, KnowledgeChunk, Message, Resource, requester_user, owner_user)
            .outerjoin(KnowledgeChunk, KnowledgeChunk.chunk_id == AccessRequest.chunk_id)
            .outerjoin(Message, Message.message_id == KnowledgeChunk.message_id)
            .outerjoin(Resource, Resource.resource_id == KnowledgeChunk.resource_id)
            .join(requester_user, requester_user.user_id == AccessRequest.requester_id)
            .join(owner_user, owner_user.user_id == AccessRequest.owner_id)
            .where(and_(*where))
            .order_by(AccessRequest.created_at.desc(), AccessRequest.request_id.desc())
        )

        result = await self._session.execute(stmt)

        enriched: list[EnrichedAccessRequest] = []
        for request, chunk, message, resource, requester, owner in result.all():
            parent: ParentContext | None = None
            if message is not None:
                parent = ParentContext(content=message.content, role=message.role)
            elif resource is not None:
                parent = ParentContext(content=resource.content)

            enriched.append(
                EnrichedAccessRequest(
                    id=request.request_id,
                    question=request.question,
                    status=AccessRequestStatus(request.status),
                    response_content=request.response_note,
                    conversation_id=request.conversation_id,
                    created_at=request.created_at,
                    responded_at=request.responded_at,
                    is_owner=request.owner_id == viewer_id,
                    embedding=ChunkPreview(
                        id=request.chunk_id,
                        content=chunk.content if chunk else None,
                        chunk_index=chunk.chunk_index if chunk else None,
                        kind=chunk.kind if chunk else None,
                    ),
                    parent_context=parent,
                    requester=_party(requester),
                    owner=_party(owner),
                )
            )

        return enriched

    async def _has_pending(self, requester_id: UUID, chunk_id: int) -> bool:
        result = await self._session.execute(
            select(AccessRequest.request_id)
            .where(
                AccessRequest.chunk_id == chunk_id,
                AccessRequest.requester_id == requester_id,
                AccessRequest.status == AccessRequestStatus.pending.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _same_org(self, requester_id: UUID, owner_id: UUID) -> bool:
        members = {requester_id, owner_id}
        result = await self._session.execute(
            select(User.org_id).where(User.user_id.in_(members))
        )
        org_ids = list(result.scalars().all())
        return len(org_ids) == len(members) and len(set(org_ids)) == 1

    def _reject(self, reason: str, requester_id: UUID, chunk_id: int) -> None:
        self._log.log_rejection(reason=reason, requester_id=requester_id, chunk_id=chunk_id)
        metrics.inc_request_event("rejected")

    async def _deliver(self, event: NotificationEvent) -> None:
        """Push an event; failures are logged and never propagate."""
        try:
            await self._notifier.publish(event)
        except Exception as e:
            self._log.log_delivery(
                kind=event.kind,
                target_user_id=event.target_user_id,
                outcome="failed",
                error_reason=f"{type(e).__name__}: {e}",
            )
            metrics.inc_notification_failure(event.kind)
            return

        self._log.log_delivery(
            kind=event.kind, target_user_id=event.target_user_id, outcome="delivered"
        )


def _party(user: User) -> RequestParty:
    return RequestParty(id=user.user_id, name=user.name, email=user.email, image=user.image)
