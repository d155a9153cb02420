import pytest

from beniocord.errors import ProtocolError
from beniocord.ingest.payloads import (
    MessageCreatePayload,
    MessageEditPayload,
    StatusUpdatePayload,
    parse_event,
)


def test_message_new_ids_are_normalized_to_strings():
    parsed = parse_event("message:new", {"id": 101, "channel_id": 7, "user_id": 2, "content": "hi"})

    assert isinstance(parsed, MessageCreatePayload)
    assert parsed.id == "101"
    assert parsed.channel_id == "7"
    assert parsed.user_id == "2"
    assert parsed.raw["content"] == "hi"


def test_edit_accepts_camel_and_snake_keys():
    camel = parse_event("message:edited", {"messageId": 5, "content": "x", "editedAt": "t"})
    snake = parse_event("message:edited", {"message_id": "5", "content": "x", "edited_at": "t"})

    assert isinstance(camel, MessageEditPayload)
    assert (camel.message_id, camel.edited_at) == ("5", "t")
    assert (snake.message_id, snake.edited_at) == ("5", "t")


def test_extra_fields_are_kept():
    parsed = parse_event("user:status-update", {"userId": 3, "status": "away", "mood": "busy"})

    assert isinstance(parsed, StatusUpdatePayload)
    assert parsed.raw["mood"] == "busy"


def test_unknown_event_raises_protocol_error():
    with pytest.raises(ProtocolError) as info:
        parse_event("message:exploded", {"id": 1})
    assert info.value.event == "message:exploded"


@pytest.mark.parametrize(
    "event, payload",
    [
        ("message:new", {"content": "no id"}),
        ("message:new", ["not", "an", "object"]),
        ("user:status-update", {"userId": 3}),
        ("channel:delete", {"channelId": ""}),
    ],
)
def test_malformed_payloads_raise_protocol_error(event, payload):
    with pytest.raises(ProtocolError):
        parse_event(event, payload)
