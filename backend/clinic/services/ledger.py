from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.errors import IntegrityFault, NotFound, NotParticipant, translate_storage_error
from clinic.core.logging import log
from clinic.db.session import unit_of_work
from clinic.models import DELIVERED, Conversation, DeliveryStatus, Message


async def send(db: AsyncSession, sender: int, conversation_id: int, content: str) -> Message:
    """Append a message, move the conversation pointer and record delivery.

    The three writes commit together or not at all.
    """
    try:
        async with unit_of_work(db):
            conv = (await db.execute(
                select(Conversation).where(Conversation.id == conversation_id).with_for_update()
            )).scalar_one_or_none()
            if conv is None:
                raise NotFound("Conversation not found")
            recipient = conv.other_participant(sender)
            if recipient is None:
                raise NotParticipant()

            now = datetime.now(timezone.utc)
            msg = Message(conversation_id=conversation_id, sender_id=sender, content=content, created_at=now)
            db.add(msg)
            await db.flush()

            updated = (await db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .values(last_message_id=msg.id)
                .returning(Conversation.id)
                .execution_options(synchronize_session=False)
            )).scalar_one_or_none()
            if updated is None:
                raise IntegrityFault("Conversation vanished while sending")

            db.add(DeliveryStatus(message_id=msg.id, recipient_id=recipient, status=DELIVERED, created_at=now))
            await db.flush()
    except SQLAlchemyError as exc:
        log.warning("send into conversation %s failed: %s", conversation_id, exc)
        raise translate_storage_error(exc) from exc

    log.info("message %s sent in conversation %s", msg.id, conversation_id)
    return msg
