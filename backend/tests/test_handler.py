import json

import pytest
from sqlalchemy.exc import OperationalError

from messenger.crud import messages as messages_crud
from messenger.db.session import SessionLocal
from messenger.models.message import Message
from messenger.realtime.handler import ProtocolHandler

pytestmark = pytest.mark.anyio


def frame(**fields) -> str:
    return json.dumps(fields)


def failing_on(call_no: int):
    """Session factory whose n-th session cannot be opened."""
    calls = {"n": 0}

    def factory():
        calls["n"] += 1
        if calls["n"] == call_no:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return SessionLocal()

    return factory


@pytest.fixture
def connect(registry, make_channel):
    async def _connect(user, name=None):
        channel = make_channel(name or user.username)
        handler = ProtocolHandler(channel, registry, SessionLocal)
        await handler.handle(frame(type="authenticate", userId=user.id))
        return handler, channel

    return _connect


async def test_authenticate_binds_channel(registry, make_channel, alice):
    channel = make_channel()
    handler = ProtocolHandler(channel, registry, SessionLocal)

    await handler.handle(frame(type="authenticate", userId=alice.id))

    assert channel.sent == [{"type": "authenticated", "success": True}]
    assert handler.user_id == alice.id
    assert registry.lookup(alice.id) is channel


async def test_authenticate_unknown_user(registry, make_channel):
    channel = make_channel()
    handler = ProtocolHandler(channel, registry, SessionLocal)

    await handler.handle(frame(type="authenticate", userId=999))

    assert channel.sent == [{"type": "authenticated", "success": False, "error": "User not found"}]
    assert handler.user_id is None
    assert len(registry) == 0


async def test_frames_before_authentication_are_refused(registry, make_channel, conversation):
    channel = make_channel()
    handler = ProtocolHandler(channel, registry, SessionLocal)

    await handler.handle(frame(type="message", conversationId=conversation.id, content="hi"))
    await handler.handle(frame(type="read_receipt", messageIds=[1]))

    assert channel.types() == ["error", "error"]
    assert channel.sent[0]["error"] == "not authenticated"
    with SessionLocal() as s:
        assert messages_crud.list_for_conversation(s, conversation.id) == []


async def test_malformed_frame_gets_error_and_channel_stays_usable(connect, alice):
    handler, channel = await connect(alice)

    await handler.handle("{not json")
    await handler.handle(frame(type="dance"))

    assert channel.types() == ["authenticated", "error", "error"]
    assert handler.user_id == alice.id


async def test_send_to_offline_counterpart(connect, alice, conversation, fetch):
    handler, channel = await connect(alice)

    await handler.handle(frame(type="message", conversationId=conversation.id, content="hi"))

    assert channel.types() == ["authenticated", "message_sent"]
    sent = channel.of_type("message_sent")[0]["message"]
    assert sent["content"] == "hi"
    assert sent["senderId"] == alice.id
    assert sent["conversationId"] == conversation.id
    assert sent["status"] == "sent"
    assert fetch(Message, sent["id"]).status == "sent"


async def test_send_to_live_counterpart(connect, alice, bob, conversation, fetch):
    a_handler, a_channel = await connect(alice)
    _, b_channel = await connect(bob)

    await a_handler.handle(frame(type="message", conversationId=conversation.id, content="hello bob"))

    assert b_channel.types() == ["authenticated", "new_message"]
    delivered = b_channel.of_type("new_message")[0]["message"]
    assert delivered["content"] == "hello bob"

    assert a_channel.types() == ["authenticated", "message_update", "message_sent"]
    assert a_channel.of_type("message_update") == [
        {"type": "message_update", "messageId": delivered["id"], "status": "delivered"}
    ]
    assert a_channel.of_type("message_sent")[0]["message"]["status"] == "delivered"
    assert fetch(Message, delivered["id"]).status == "delivered"


async def test_send_updates_conversation_timestamp(connect, alice, conversation, fetch):
    handler, channel = await connect(alice)
    before = conversation.last_message_time

    await handler.handle(frame(type="message", conversationId=conversation.id, content="tick"))

    msg_id = channel.of_type("message_sent")[0]["message"]["id"]
    stored = fetch(Message, msg_id)
    conv = fetch(type(conversation), conversation.id)
    assert conv.last_message_time == stored.timestamp
    assert conv.last_message_time >= before


async def test_unknown_conversation_still_acknowledged(connect, alice, fetch):
    handler, channel = await connect(alice)

    await handler.handle(frame(type="message", conversationId=4242, content="anyone?"))

    assert channel.types() == ["authenticated", "message_sent"]
    msg_id = channel.of_type("message_sent")[0]["message"]["id"]
    assert fetch(Message, msg_id).content == "anyone?"


async def test_outsider_cannot_post_into_conversation(connect, make_user, conversation):
    mallory = make_user("Mallory")
    handler, channel = await connect(mallory)

    await handler.handle(frame(type="message", conversationId=conversation.id, content="hi"))

    assert channel.types() == ["authenticated", "error"]
    with SessionLocal() as s:
        assert messages_crud.list_for_conversation(s, conversation.id) == []


async def test_empty_content_rejected(connect, alice, conversation):
    handler, channel = await connect(alice)

    await handler.handle(frame(type="message", conversationId=conversation.id, content="   \n  "))

    assert channel.types() == ["authenticated", "error"]


async def test_dead_counterpart_channel_is_dropped(connect, registry, alice, bob, conversation, fetch):
    a_handler, a_channel = await connect(alice)
    _, b_channel = await connect(bob)
    b_channel.closed = True

    await a_handler.handle(frame(type="message", conversationId=conversation.id, content="still there?"))

    assert a_channel.types() == ["authenticated", "message_sent"]
    msg_id = a_channel.of_type("message_sent")[0]["message"]["id"]
    assert fetch(Message, msg_id).status == "sent"
    assert registry.lookup(bob.id) is None


async def test_read_receipt_notifies_live_sender(connect, alice, bob, conversation, fetch):
    a_handler, a_channel = await connect(alice)
    await a_handler.handle(frame(type="message", conversationId=conversation.id, content="hi"))
    msg_id = a_channel.of_type("message_sent")[0]["message"]["id"]

    b_handler, b_channel = await connect(bob)
    await b_handler.handle(frame(type="read_receipt", messageIds=[msg_id]))

    assert fetch(Message, msg_id).status == "read"
    assert a_channel.sent[-1] == {"type": "message_update", "messageId": msg_id, "status": "read"}
    assert b_channel.types() == ["authenticated"]


async def test_read_receipt_twice_is_harmless(connect, db, alice, bob, conversation, fetch):
    msg = messages_crud.create_message(db, conversation.id, alice.id, "hi")
    b_handler, b_channel = await connect(bob)

    await b_handler.handle(frame(type="read_receipt", messageIds=[msg.id]))
    await b_handler.handle(frame(type="read_receipt", messageIds=[msg.id]))

    assert fetch(Message, msg.id).status == "read"
    assert b_channel.of_type("error") == []


async def test_read_receipt_skips_bad_ids(connect, db, alice, bob, conversation, fetch):
    first = messages_crud.create_message(db, conversation.id, alice.id, "one")
    own = messages_crud.create_message(db, conversation.id, bob.id, "mine")
    last = messages_crud.create_message(db, conversation.id, alice.id, "two")
    b_handler, _ = await connect(bob)

    await b_handler.handle(frame(type="read_receipt", messageIds=[first.id, 9999, own.id, last.id]))

    assert fetch(Message, first.id).status == "read"
    assert fetch(Message, last.id).status == "read"
    # a user cannot mark their own message read
    assert fetch(Message, own.id).status == "sent"


async def test_outsider_receipt_is_ignored(connect, db, make_user, alice, conversation, fetch):
    msg = messages_crud.create_message(db, conversation.id, alice.id, "private")
    mallory = make_user("Mallory")
    handler, _ = await connect(mallory)

    await handler.handle(frame(type="read_receipt", messageIds=[msg.id]))

    assert fetch(Message, msg.id).status == "sent"


async def test_close_unbinds_only_the_owning_channel(connect, registry, alice):
    old_handler, old_channel = await connect(alice, "old")
    new_handler, new_channel = await connect(alice, "new")

    assert registry.lookup(alice.id) is new_channel

    old_handler.close()
    assert registry.lookup(alice.id) is new_channel

    new_handler.close()
    assert registry.lookup(alice.id) is None


async def test_reauthenticating_as_someone_else_releases_previous_identity(connect, registry, alice, bob):
    handler, channel = await connect(alice)

    await handler.handle(frame(type="authenticate", userId=bob.id))

    assert handler.user_id == bob.id
    assert registry.lookup(alice.id) is None
    assert registry.lookup(bob.id) is channel


async def test_oversized_ids_are_invalid_frames(connect, db, alice, bob, conversation, fetch):
    good = messages_crud.create_message(db, conversation.id, alice.id, "hi")
    b_handler, b_channel = await connect(bob)

    await b_handler.handle(frame(type="read_receipt", messageIds=[2**70, good.id]))
    await b_handler.handle(frame(type="message", conversationId=2**63, content="hi"))
    await b_handler.handle(frame(type="authenticate", userId=2**70))

    assert b_channel.types() == ["authenticated", "error", "error", "error"]
    assert {f["error"] for f in b_channel.of_type("error")} == {"invalid frame"}
    assert b_handler.user_id == bob.id

    await b_handler.handle(frame(type="read_receipt", messageIds=[good.id]))
    assert fetch(Message, good.id).status == "read"


async def test_store_error_on_send_drops_frame_silently(registry, make_channel, alice, conversation):
    channel = make_channel()
    # sessions: 1 authenticate, 2 conversation lookup, 3 insert
    handler = ProtocolHandler(channel, registry, failing_on(3))
    await handler.handle(frame(type="authenticate", userId=alice.id))

    await handler.handle(frame(type="message", conversationId=conversation.id, content="lost"))

    assert channel.types() == ["authenticated"]
    with SessionLocal() as s:
        assert messages_crud.list_for_conversation(s, conversation.id) == []

    await handler.handle(frame(type="message", conversationId=conversation.id, content="again"))
    assert channel.types() == ["authenticated", "message_sent"]


async def test_store_error_on_one_receipt_keeps_the_rest(registry, make_channel, db, alice, bob, conversation, fetch):
    first = messages_crud.create_message(db, conversation.id, alice.id, "one")
    middle = messages_crud.create_message(db, conversation.id, alice.id, "two")
    last = messages_crud.create_message(db, conversation.id, alice.id, "three")
    channel = make_channel()
    # sessions: 1 authenticate, then one per receipt id
    handler = ProtocolHandler(channel, registry, failing_on(3))
    await handler.handle(frame(type="authenticate", userId=bob.id))

    await handler.handle(frame(type="read_receipt", messageIds=[first.id, middle.id, last.id]))

    assert fetch(Message, first.id).status == "read"
    assert fetch(Message, middle.id).status == "sent"
    assert fetch(Message, last.id).status == "read"
    assert channel.types() == ["authenticated"]
