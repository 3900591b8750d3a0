from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.errors import NotFound, translate_storage_error
from clinic.db.session import unit_of_work
from clinic.models import DELIVERED, READ, DeliveryStatus, Message


@dataclass(frozen=True)
class UnreadMessage:
    status_id: int
    message_id: int
    conversation_id: int
    sender_id: int
    recipient_id: int
    content: str
    status: str
    created_at: datetime

    def to_payload(self) -> dict:
        return {
            "status_id": self.status_id,
            "message_id": self.message_id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "content": self.content,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }


async def unread_for(db: AsyncSession, user: int) -> list[UnreadMessage]:
    try:
        res = await db.execute(
            select(
                DeliveryStatus.id,
                Message.id,
                Message.conversation_id,
                Message.sender_id,
                DeliveryStatus.recipient_id,
                Message.content,
                DeliveryStatus.status,
                Message.created_at,
            )
            .join(Message, Message.id == DeliveryStatus.message_id)
            .where(DeliveryStatus.recipient_id == user, DeliveryStatus.status == DELIVERED)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
    except SQLAlchemyError as exc:
        raise translate_storage_error(exc) from exc
    return [UnreadMessage(*row) for row in res.all()]


async def unread_counts(db: AsyncSession, user: int) -> dict[int, int]:
    res = await db.execute(
        select(Message.conversation_id, func.count(DeliveryStatus.id))
        .join(Message, Message.id == DeliveryStatus.message_id)
        .where(DeliveryStatus.recipient_id == user, DeliveryStatus.status == DELIVERED)
        .group_by(Message.conversation_id)
    )
    return {conversation_id: count for conversation_id, count in res.all()}


async def mark_read(db: AsyncSession, message_id: int, user: int) -> bool:
    """Move the recipient's status row to ``read``.

    Returns True when the row transitioned and False when it was already read.
    Raises NotFound when the message has no status row addressed to ``user``.
    """
    try:
        async with unit_of_work(db):
            res = await db.execute(
                update(DeliveryStatus)
                .where(
                    DeliveryStatus.message_id == message_id,
                    DeliveryStatus.recipient_id == user,
                    DeliveryStatus.status == DELIVERED,
                )
                .values(status=READ)
            )
            if res.rowcount:
                return True
            exists = (await db.execute(
                select(DeliveryStatus.id).where(
                    DeliveryStatus.message_id == message_id,
                    DeliveryStatus.recipient_id == user,
                )
            )).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise translate_storage_error(exc) from exc
    if exists is None:
        raise NotFound("Message not found")
    return False
