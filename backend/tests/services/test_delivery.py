import pytest

from clinic.core.errors import NotFound
from clinic.services import conversations, delivery, ledger


@pytest.mark.asyncio
async def test_unread_then_mark_read_is_idempotent(db, users):
    alice, bob, _ = users
    conv = await conversations.get_or_create(db, alice, bob)
    msg = await ledger.send(db, alice, conv.conversation_id, "ping")

    unread = await delivery.unread_for(db, bob)
    assert len(unread) == 1
    assert unread[0].message_id == msg.id
    assert unread[0].sender_id == alice
    assert unread[0].content == "ping"
    assert await delivery.unread_for(db, alice) == []

    assert await delivery.mark_read(db, msg.id, bob) is True
    assert await delivery.unread_for(db, bob) == []
    assert await delivery.mark_read(db, msg.id, bob) is False
    assert await delivery.unread_for(db, bob) == []


@pytest.mark.asyncio
async def test_mark_read_by_sender_or_unknown_message_is_not_found(db, users):
    alice, bob, _ = users
    conv = await conversations.get_or_create(db, alice, bob)
    msg = await ledger.send(db, alice, conv.conversation_id, "ping")

    with pytest.raises(NotFound):
        await delivery.mark_read(db, msg.id, alice)
    with pytest.raises(NotFound):
        await delivery.mark_read(db, 31337, bob)


@pytest.mark.asyncio
async def test_unread_is_oldest_first_and_counted_per_conversation(db, users):
    alice, bob, carol = users
    ab = await conversations.get_or_create(db, alice, bob)
    cb = await conversations.get_or_create(db, carol, bob)
    m1 = await ledger.send(db, alice, ab.conversation_id, "1")
    m2 = await ledger.send(db, carol, cb.conversation_id, "2")
    m3 = await ledger.send(db, alice, ab.conversation_id, "3")

    unread = await delivery.unread_for(db, bob)
    assert [u.message_id for u in unread] == [m1.id, m2.id, m3.id]

    counts = await delivery.unread_counts(db, bob)
    assert counts == {ab.conversation_id: 2, cb.conversation_id: 1}

    await delivery.mark_read(db, m1.id, bob)
    assert (await delivery.unread_counts(db, bob))[ab.conversation_id] == 1
