"""
Conversation registry and directory.

A conversation is the canonical pairing of two users: the smaller id is
always stored in ``participant_a``, so each unordered pair maps to exactly
one row and a unique constraint plus upsert settles concurrent creators.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import desc, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.errors import NotFound, NotParticipant, SelfConversation, translate_storage_error
from clinic.core.logging import log
from clinic.db.session import unit_of_work
from clinic.models import DELIVERED, Conversation, DeliveryStatus, Message
from clinic.services.delivery import unread_counts


@dataclass(frozen=True)
class ConversationView:
    conversation_id: int
    participant_a: int
    participant_b: int
    last_message_id: int | None
    created_at: datetime
    last_message_sender_id: int | None = None
    last_message_content: str | None = None
    last_message_created_at: datetime | None = None
    unread_count: int = 0


@dataclass(frozen=True)
class TranscriptEntry:
    message_id: int
    conversation_id: int
    sender_id: int
    recipient_id: int | None
    content: str
    status: str
    created_at: datetime


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    return min(a, b), max(a, b)


def _upsert_statement(dialect_name: str, low: int, high: int):
    insert = postgresql.insert if dialect_name == "postgresql" else sqlite.insert
    stmt = insert(Conversation).values(
        participant_a=low,
        participant_b=high,
        created_at=datetime.now(timezone.utc),
    )
    # No-op update so the statement returns the row whether it inserted or not.
    return stmt.on_conflict_do_update(
        index_elements=[Conversation.participant_a, Conversation.participant_b],
        set_={"participant_a": stmt.excluded.participant_a},
    ).returning(Conversation.id)


def _preview_query():
    return (
        select(
            Conversation.id,
            Conversation.participant_a,
            Conversation.participant_b,
            Conversation.last_message_id,
            Conversation.created_at,
            Message.sender_id,
            Message.content,
            Message.created_at,
        )
        .outerjoin(Message, Message.id == Conversation.last_message_id)
    )


def _to_view(row, unread: int = 0) -> ConversationView:
    return ConversationView(*row, unread_count=unread)


async def get_or_create(db: AsyncSession, requester: int, other: int) -> ConversationView:
    if requester == other:
        raise SelfConversation()
    low, high = canonical_pair(requester, other)
    dialect_name = db.get_bind().dialect.name
    try:
        async with unit_of_work(db):
            conversation_id = (await db.execute(_upsert_statement(dialect_name, low, high))).scalar_one()
            row = (await db.execute(_preview_query().where(Conversation.id == conversation_id))).one()
    except IntegrityError:
        # only the user foreign keys can fail here
        raise NotFound("User not found")
    except SQLAlchemyError as exc:
        raise translate_storage_error(exc) from exc
    log.debug("conversation %s resolved for pair (%s, %s)", conversation_id, low, high)
    return _to_view(row)


async def get_conversation(db: AsyncSession, conversation_id: int) -> Conversation:
    conv = (await db.execute(select(Conversation).where(Conversation.id == conversation_id))).scalar_one_or_none()
    if conv is None:
        raise NotFound("Conversation not found")
    return conv


async def list_transcript(db: AsyncSession, conversation_id: int, viewer: int | None = None) -> list[TranscriptEntry]:
    try:
        conv = await get_conversation(db, conversation_id)
        if viewer is not None and not conv.has_participant(viewer):
            raise NotParticipant()
        res = await db.execute(
            select(
                Message.id,
                Message.conversation_id,
                Message.sender_id,
                DeliveryStatus.recipient_id,
                Message.content,
                func.coalesce(DeliveryStatus.status, DELIVERED),
                Message.created_at,
            )
            .outerjoin(DeliveryStatus, DeliveryStatus.message_id == Message.id)
            .where(Message.conversation_id == conversation_id)
            .order_by(desc(Message.created_at), desc(Message.id))
        )
    except SQLAlchemyError as exc:
        raise translate_storage_error(exc) from exc
    return [TranscriptEntry(*row) for row in res.all()]


async def list_inbox(db: AsyncSession, user: int) -> list[ConversationView]:
    try:
        res = await db.execute(
            _preview_query()
            .where(or_(Conversation.participant_a == user, Conversation.participant_b == user))
            # active conversations first, newest activity on top; empty ones after by creation time
            .order_by(
                Message.created_at.is_(None),
                desc(Message.created_at),
                desc(Conversation.created_at),
                desc(Conversation.id),
            )
        )
        rows = res.all()
        counts = await unread_counts(db, user)
    except SQLAlchemyError as exc:
        raise translate_storage_error(exc) from exc
    return [_to_view(row, counts.get(row.id, 0)) for row in rows]
