from __future__ import annotations
from dataclasses import asdict
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.db.session import get_db
from clinic.api.deps import Caller, get_caller, get_current_user, get_detached_caller, get_pollers, get_transport
from clinic.api.schemas import (
    ConversationOut,
    ConversationStartIn,
    MessageOut,
    MessageSendIn,
    MessageWithStatusOut,
    NotificationsOut,
    PollingOut,
    ReadReceiptOut,
)
from clinic.models import User
from clinic.services import conversations, delivery, ledger
from clinic.services.notifications import NotificationTransport
from clinic.services.poller import PollerRegistry

router = APIRouter(prefix="/messaging", tags=["messaging"])

@router.post("/conversations", response_model=ConversationOut)
async def get_or_create_conversation(data: ConversationStartIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    view = await conversations.get_or_create(db, user.id, data.other_user_id)
    return ConversationOut(**asdict(view))

@router.get("/conversations", response_model=list[ConversationOut])
async def list_inbox(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return [ConversationOut(**asdict(v)) for v in await conversations.list_inbox(db, user.id)]

@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageWithStatusOut])
async def get_transcript(conversation_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    entries = await conversations.list_transcript(db, conversation_id, viewer=user.id)
    return [MessageWithStatusOut(**asdict(e)) for e in entries]

@router.post("/conversations/{conversation_id}/messages", response_model=MessageOut, status_code=201)
async def send_message(conversation_id: int, data: MessageSendIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    msg = await ledger.send(db, user.id, conversation_id, data.content)
    return MessageOut(message_id=msg.id, conversation_id=msg.conversation_id, sender_id=msg.sender_id, content=msg.content, created_at=msg.created_at)

@router.post("/messages/{message_id}/read", response_model=ReadReceiptOut)
async def mark_read(message_id: int, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    changed = await delivery.mark_read(db, message_id, user.id)
    return ReadReceiptOut(message_id=message_id, changed=changed)

@router.post("/poll", response_model=PollingOut, status_code=202)
async def start_polling(caller: Caller = Depends(get_caller), pollers: PollerRegistry = Depends(get_pollers)):
    # fire-and-forget: poll failures are logged by the poller, never returned here
    pollers.start(caller.session_id, caller.user.id, expires_at=caller.expires_at)
    return PollingOut(session_id=caller.session_id, running=True)

@router.delete("/poll", response_model=PollingOut)
async def stop_polling(caller: Caller = Depends(get_caller), pollers: PollerRegistry = Depends(get_pollers)):
    await pollers.stop(caller.session_id)
    return PollingOut(session_id=caller.session_id, running=False)

@router.get("/notifications", response_model=NotificationsOut)
async def drain_notifications(
    wait: float = Query(default=0.0, ge=0.0, le=30.0),
    caller: Caller = Depends(get_detached_caller),
    transport: NotificationTransport = Depends(get_transport),
):
    return NotificationsOut(batches=await transport.drain(caller.session_id, wait=wait))
