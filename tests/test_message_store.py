from datetime import datetime, timedelta

from models import Message
from routers.messaging.repository import (
    append_message,
    count_unread,
    get_conversation,
    get_message,
    list_worker_conversations,
    mark_conversation_read,
    serialize_message,
)


def _at(test_db, sender, receiver, content, minutes):
    """Append a message with a fixed timestamp so ordering is deterministic."""
    message = append_message(test_db, sender_id=sender, receiver_id=receiver, content=content, gem_cost=0)
    message.created_at = datetime(2024, 1, 1, 12, 0) + timedelta(minutes=minutes)
    test_db.flush()
    return message


class TestConversation:
    def test_append_assigns_id_and_timestamp(self, test_db, users):
        message = append_message(
            test_db, sender_id=users.fan, receiver_id=users.model, content="hi", gem_cost=1
        )
        test_db.commit()

        assert message.id is not None
        assert message.created_at is not None
        assert message.is_read is False
        assert get_message(test_db, message_id=message.id).content == "hi"

    def test_conversation_is_symmetric_and_ordered(self, test_db, users):
        _at(test_db, users.fan, users.model, "one", 0)
        _at(test_db, users.model, users.fan, "two", 1)
        _at(test_db, users.fan, users.model, "three", 2)
        _at(test_db, users.other_fan, users.model, "elsewhere", 3)
        test_db.commit()

        forward = [m.content for m in get_conversation(test_db, users.fan, users.model)]
        backward = [m.content for m in get_conversation(test_db, users.model, users.fan)]

        assert forward == ["one", "two", "three"]
        assert backward == forward

    def test_same_timestamp_falls_back_to_id(self, test_db, users):
        _at(test_db, users.fan, users.model, "a", 0)
        _at(test_db, users.fan, users.model, "b", 0)
        test_db.commit()

        assert [m.content for m in get_conversation(test_db, users.fan, users.model)] == ["a", "b"]

    def test_limit_keeps_newest(self, test_db, users):
        for i in range(5):
            _at(test_db, users.fan, users.model, f"m{i}", i)
        test_db.commit()

        recent = get_conversation(test_db, users.fan, users.model, limit=2)
        assert [m.content for m in recent] == ["m3", "m4"]


class TestReadState:
    def test_mark_read_only_touches_peer_messages(self, test_db, users):
        _at(test_db, users.model, users.fan, "to fan 1", 0)
        _at(test_db, users.model, users.fan, "to fan 2", 1)
        _at(test_db, users.fan, users.model, "to model", 2)
        test_db.commit()

        assert count_unread(test_db, receiver_id=users.fan) == 2
        assert mark_conversation_read(test_db, reader_id=users.fan, peer_id=users.model) == 2
        test_db.commit()

        assert count_unread(test_db, receiver_id=users.fan) == 0
        assert count_unread(test_db, receiver_id=users.model) == 1


class TestWorkerConversations:
    def test_one_summary_per_fan_model_pair(self, test_db, users):
        _at(test_db, users.fan, users.model, "fan first", 0)
        _at(test_db, users.model, users.fan, "model reply", 1)
        _at(test_db, users.other_fan, users.model, "other fan", 2)
        _at(test_db, users.fan, users.other_fan, "not involving the model", 3)
        test_db.commit()

        summaries = list_worker_conversations(test_db, model_ids={users.model})

        assert [(s["fan_id"], s["model_id"]) for s in summaries] == [
            (users.other_fan, users.model),
            (users.fan, users.model),
        ]
        assert summaries[1]["last_message"].content == "model reply"

    def test_no_models_no_conversations(self, test_db, users):
        assert list_worker_conversations(test_db, model_ids=set()) == []


def test_serialize_message_shape(test_db, users):
    message = _at(test_db, users.fan, users.model, "hello", 0)
    test_db.commit()

    payload = serialize_message(message)
    assert payload == {
        "id": message.id,
        "senderId": users.fan,
        "receiverId": users.model,
        "content": "hello",
        "gemCost": 0,
        "createdAt": "2024-01-01T12:00:00",
        "isRead": False,
    }
    assert isinstance(test_db.get(Message, message.id), Message)
