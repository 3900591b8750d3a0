import asyncio

import pytest
from sqlalchemy import func, select

from clinic.core.errors import NotFound, SelfConversation
from clinic.models import Conversation
from clinic.services import conversations, ledger


@pytest.mark.asyncio
async def test_get_or_create_is_order_independent(db, users):
    alice, bob, _ = users

    first = await conversations.get_or_create(db, alice, bob)
    second = await conversations.get_or_create(db, bob, alice)

    assert first.conversation_id == second.conversation_id
    assert (first.participant_a, first.participant_b) == (min(alice, bob), max(alice, bob))
    assert first.last_message_id is None
    assert first.last_message_content is None
    assert first.last_message_sender_id is None


@pytest.mark.asyncio
async def test_get_or_create_rejects_self_conversation(db, users):
    alice, _, _ = users

    with pytest.raises(SelfConversation):
        await conversations.get_or_create(db, alice, alice)

    count = (await db.execute(select(func.count(Conversation.id)))).scalar_one()
    assert count == 0


@pytest.mark.asyncio
async def test_get_or_create_unknown_user_is_not_found(db, users):
    alice, _, _ = users

    with pytest.raises(NotFound):
        await conversations.get_or_create(db, alice, 9999)


@pytest.mark.asyncio
async def test_concurrent_get_or_create_yields_one_row(session_factory, users):
    alice, bob, _ = users

    async def attempt(i: int):
        async with session_factory() as s:
            if i % 2:
                return await conversations.get_or_create(s, alice, bob)
            return await conversations.get_or_create(s, bob, alice)

    views = await asyncio.gather(*(attempt(i) for i in range(8)))

    assert len({v.conversation_id for v in views}) == 1
    async with session_factory() as s:
        count = (await s.execute(select(func.count(Conversation.id)))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_preview_reflects_last_message(db, users):
    alice, bob, _ = users
    conv = await conversations.get_or_create(db, alice, bob)

    await ledger.send(db, alice, conv.conversation_id, "first")
    msg = await ledger.send(db, alice, conv.conversation_id, "hi")
    again = await conversations.get_or_create(db, bob, alice)

    assert again.last_message_id == msg.id
    assert again.last_message_content == "hi"
    assert again.last_message_sender_id == alice
    assert again.last_message_created_at is not None


@pytest.mark.asyncio
async def test_inbox_orders_by_activity_and_puts_empty_conversations_last(db, users):
    alice, bob, carol = users
    with_bob = await conversations.get_or_create(db, alice, bob)
    await ledger.send(db, bob, with_bob.conversation_id, "ping")
    # created later but has no messages yet
    with_carol = await conversations.get_or_create(db, alice, carol)

    inbox = await conversations.list_inbox(db, alice)
    assert [v.conversation_id for v in inbox] == [with_bob.conversation_id, with_carol.conversation_id]
    assert inbox[0].unread_count == 1
    assert inbox[0].last_message_content == "ping"
    assert inbox[1].unread_count == 0

    await ledger.send(db, carol, with_carol.conversation_id, "newer")
    inbox = await conversations.list_inbox(db, alice)
    assert [v.conversation_id for v in inbox] == [with_carol.conversation_id, with_bob.conversation_id]


@pytest.mark.asyncio
async def test_inbox_only_lists_own_conversations(db, users):
    alice, bob, carol = users
    await conversations.get_or_create(db, alice, bob)

    assert await conversations.list_inbox(db, carol) == []
    assert len(await conversations.list_inbox(db, bob)) == 1
