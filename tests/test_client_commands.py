import asyncio

import pytest

from beniocord.client import Client
from beniocord.errors import BeniocordError, CommandError, ConnectionError, RequestFailure
from beniocord.cache.records import CachedChannel, CachedMessage

from conftest import wait_until


async def _send_and_ack(client, transport, response, channel_id=7, content="hello"):
    task = asyncio.create_task(client.send_message(channel_id, content))
    await wait_until(lambda: transport.sent_events("message:send"))
    transport.ack("message:send", response)
    return await task


def test_token_is_required(config):
    config.token = ""
    with pytest.raises(ValueError):
        Client(config)


@pytest.mark.asyncio
async def test_commands_require_a_connection(client):
    with pytest.raises(ConnectionError):
        await client.send_message(7, "hello")
    with pytest.raises(ConnectionError):
        await client.start_typing(7)


@pytest.mark.asyncio
async def test_send_message_payload(client, transport):
    await client.connect()
    task = asyncio.create_task(client.send_message(7, "hello", reply_to=3))
    await wait_until(lambda: transport.sent_events("message:send"))

    _, payload, _ = transport.sent_events("message:send")[0]
    assert payload == {
        "channelId": "7",
        "content": "hello",
        "messageType": "text",
        "replyTo": "3",
        "fileUrl": None,
        "fileName": None,
        "fileSize": None,
        "stickerId": None,
    }
    transport.ack("message:send", {"id": 1, "channel_id": 7, "user_id": 1, "content": "hello"})
    await task
    await client.disconnect()


@pytest.mark.asyncio
async def test_acknowledged_send_then_echo_notifies_once(client, transport):
    created = []
    client.on("messageCreate", lambda message: created.append(message.id))
    await client.connect()

    message = await _send_and_ack(
        client, transport, {"id": 55, "channel_id": 7, "user_id": 1, "content": "hello"},
    )
    await transport.push("message:new", {"id": 55, "channel_id": 7, "user_id": 1, "content": "hello"})

    assert message.id == "55"
    assert message.author is client.user
    assert created == ["55"]
    assert [m.id for m in client.store.messages_for("7")] == ["55"]
    assert "55" not in client.echo
    await client.disconnect()


@pytest.mark.asyncio
async def test_echo_arriving_before_ack_notifies_once(client, transport):
    created = []
    client.on("messageCreate", lambda message: created.append(message.id))
    await client.connect()

    task = asyncio.create_task(client.send_message(7, "hello"))
    await wait_until(lambda: transport.sent_events("message:send"))
    await transport.push("message:new", {"id": 56, "channel_id": 7, "user_id": 1, "content": "hello"})
    transport.ack("message:send", {"id": 56, "channel_id": 7, "user_id": 1, "content": "hello"})
    message = await task

    assert created == ["56"]
    assert message is client.store.get_message("56")
    assert "56" not in client.echo
    await client.disconnect()


@pytest.mark.asyncio
async def test_rejected_send_raises_command_error(client, transport):
    await client.connect()

    with pytest.raises(CommandError) as info:
        await _send_and_ack(client, transport, {"error": "Channel is read-only"})

    assert str(info.value) == "Channel is read-only"
    assert info.value.command == "message:send"
    assert client.is_ready()
    await client.disconnect()


@pytest.mark.asyncio
async def test_unacknowledged_command_times_out(config, gateway, transport):
    config.connection.command_timeout_s = 0.05
    client = Client(config, gateway=gateway, transport=transport)
    await client.connect()

    with pytest.raises(CommandError):
        await client.delete_message(5)

    assert client.commands.pending_count == 0
    await client.disconnect()


@pytest.mark.asyncio
async def test_late_acknowledgement_is_ignored(config, gateway, transport):
    config.connection.command_timeout_s = 0.05
    client = Client(config, gateway=gateway, transport=transport)
    await client.connect()

    with pytest.raises(CommandError):
        await client.send_message(7, "slow")
    transport.ack("message:send", {"id": 77, "channel_id": 7})

    assert "77" not in client.echo
    await client.disconnect()


@pytest.mark.asyncio
async def test_edit_updates_cached_message(client, transport):
    await client.connect()
    client.store.add_message("7", CachedMessage(id="5", channel_id="7", content="old"))

    task = asyncio.create_task(client.edit_message(5, "new"))
    await wait_until(lambda: transport.sent_events("message:edit"))
    assert transport.sent_events("message:edit")[0][1] == {"messageId": "5", "content": "new"}
    transport.ack("message:edit", {"success": True})
    await task

    message = client.store.get_message("5")
    assert message.content == "new"
    assert message.edited is True
    await client.disconnect()


@pytest.mark.asyncio
async def test_delete_marks_cached_message(client, transport):
    await client.connect()
    client.store.add_message("7", CachedMessage(id="5", channel_id="7"))

    task = asyncio.create_task(client.delete_message("5"))
    await wait_until(lambda: transport.sent_events("message:delete"))
    transport.ack("message:delete", {"success": True})
    await task

    assert client.store.get_message("5").deleted is True
    await client.disconnect()


@pytest.mark.asyncio
async def test_set_status_validates_and_feeds_heartbeat(client, transport):
    await client.connect()

    with pytest.raises(ValueError):
        await client.set_status("sleeping")
    await client.set_status("dnd")

    assert transport.sent_events("status:update")[-1][1] == {"status": "dnd"}
    assert client.session.status == "dnd"
    assert client.user.status == "dnd"
    await client.disconnect()


@pytest.mark.asyncio
async def test_typing_commands(client, transport):
    await client.connect()

    await client.start_typing(7)
    await client.stop_typing("7")

    assert [e for e, _, _ in transport.sent if e.startswith("typing:")] == ["typing:start", "typing:stop"]
    assert transport.sent_events("typing:stop")[0][1] == {"channelId": "7"}
    await client.disconnect()


@pytest.mark.asyncio
async def test_fetch_user_prefers_cache(client, gateway):
    gateway.responses[("GET", "/api/users/2")] = {"id": 2, "username": "alice"}

    first = await client.fetch_user(2)
    second = await client.fetch_user("2")
    forced = await client.fetch_user(2, force=True)

    assert first is second is forced
    assert gateway.paths().count("/api/users/2") == 2


@pytest.mark.asyncio
async def test_fetch_channel_raises_request_failure(client):
    with pytest.raises(RequestFailure) as info:
        await client.fetch_channel(404)
    assert info.value.reason.value == "not_found"


@pytest.mark.asyncio
async def test_fetch_message_from_cache_or_channel(client, gateway):
    client.store.add_message("7", CachedMessage(id="5", channel_id="7"))
    gateway.responses[("GET", "/api/channels/7/messages/6")] = {"id": 6, "user_id": 2, "content": "hey"}

    cached = await client.fetch_message(5)
    fetched = await client.fetch_message(6, channel_id=7)

    assert cached is client.store.get_message("5")
    assert fetched.channel_id == "7"
    with pytest.raises(ValueError):
        await client.fetch_message(8)


@pytest.mark.asyncio
async def test_fetch_channel_messages_fills_sequence(client, gateway):
    gateway.responses[("GET", "/api/channels/7/messages")] = [
        {"id": 1, "user_id": 2, "content": "a"},
        {"id": 2, "user_id": 2, "content": "b"},
    ]
    await client.connect()

    messages = await client.fetch_channel_messages(7, limit=2, before=3)

    assert [m.id for m in messages] == ["1", "2"]
    assert [m.id for m in client.store.messages_for("7")] == ["1", "2"]
    params = [p for _, path, _, p in gateway.calls if path == "/api/channels/7/messages"]
    assert params == [{"limit": 2, "before": "3"}]
    await client.disconnect()


@pytest.mark.asyncio
async def test_channel_management_keeps_cache_in_sync(client, gateway):
    gateway.responses[("POST", "/api/channels")] = {"channel": {"id": 9, "name": "new"}}
    gateway.responses[("PATCH", "/api/channels/9")] = {"channel": {"id": 9, "name": "renamed"}}
    gateway.responses[("DELETE", "/api/channels/9")] = {"success": True}

    created = await client.create_channel("  new  ", "desc")
    updated = await client.update_channel(9, name="renamed")

    assert gateway.calls[0][2] == {"name": "new", "description": "desc", "type": "text"}
    assert updated is created
    assert created.name == "renamed"

    await client.delete_channel(9)
    assert "9" not in client.store.channels

    with pytest.raises(ValueError):
        await client.create_channel("   ")
    with pytest.raises(ValueError):
        await client.update_channel(9)


@pytest.mark.asyncio
async def test_channel_member_management(client, gateway):
    gateway.responses.update({
        ("POST", "/api/channels/7/members"): {"success": True},
        ("PATCH", "/api/channels/7/members/2"): {"success": True},
        ("DELETE", "/api/channels/7/members/2"): {"success": True},
    })

    await client.add_channel_member(7, 2)
    await client.update_channel_member(7, 2, {"role": "admin"})
    await client.remove_channel_member("7", "2")

    assert [(m, body) for m, _, body, _ in gateway.calls] == [
        ("POST", {"userId": "2", "role": "member"}),
        ("PATCH", {"role": "admin"}),
        ("DELETE", None),
    ]


@pytest.mark.asyncio
async def test_members_presence_emojis_and_stickers(client, gateway):
    gateway.responses.update({
        ("GET", "/api/channels/7/members"): [{"id": 2, "username": "alice"}],
        ("GET", "/api/presence/2"): {"status": "away"},
        ("GET", "/api/emojis/all"): [{"id": 4, "name": "wave", "url": "/e/wave.png"}],
        ("GET", "/api/stickers/all"): [{"id": 5, "name": "cat", "url": "https://x/cat.png", "tags": ["cute"]}],
    })

    members = await client.fetch_channel_members(7)
    presence = await client.fetch_presence(2)
    emojis = await client.fetch_all_emojis(include_others=True, search="wa")
    stickers = await client.fetch_all_stickers()

    assert members[0] is client.store.users["2"]
    assert presence.status == "away" and client.store.presence["2"] is presence
    assert emojis[0].url == "https://api.beniocord.site/e/wave.png"
    assert client.store.emojis["4"] is emojis[0]
    assert stickers[0].tags == ["cute"]
    assert gateway.calls[2][3] == {"search": "wa"}


@pytest.mark.asyncio
async def test_clear_cache(client):
    client.store.ensure_channel(CachedChannel(id="7"))
    client.store.add_message("7", CachedMessage(id="1", channel_id="7"))

    client.clear_cache()

    assert client.store.channels == {}
    assert client.store.get_message("1") is None


@pytest.mark.asyncio
async def test_refetched_emoji_and_sticker_update_in_place(client, gateway):
    gateway.responses[("GET", "/api/emojis/9")] = {"id": 9, "name": "old"}
    gateway.responses[("GET", "/api/stickers/5")] = {"id": 5, "name": "old"}
    first_emoji = await client.fetch_emoji(9)
    first_sticker = await client.fetch_sticker(5)

    gateway.responses[("GET", "/api/emojis/9")] = {"id": 9, "name": "new"}
    gateway.responses[("GET", "/api/stickers/all")] = [{"id": 5, "name": "new"}]
    second_emoji = await client.fetch_emoji(9)
    [second_sticker] = await client.fetch_all_stickers()

    assert first_emoji is second_emoji
    assert first_emoji.name == "new"
    assert first_sticker is second_sticker
    assert first_sticker.name == "new"


@pytest.mark.asyncio
async def test_message_reply_edit_and_delete_go_through_client(client, transport):
    await client.connect()
    await transport.push("message:new", {"id": 5, "channel_id": 7, "user_id": 2, "content": "!ping"})
    message = client.store.get_message("5")
    assert message.client is client

    reply = asyncio.create_task(message.reply("pong"))
    await wait_until(lambda: transport.sent_events("message:send"))
    _, payload, _ = transport.sent_events("message:send")[0]
    assert payload["channelId"] == "7"
    assert payload["replyTo"] == "5"
    transport.ack("message:send", {"id": 6, "channel_id": 7, "user_id": 1, "content": "pong"})
    sent = await reply
    assert sent.client is client

    edit = asyncio.create_task(sent.edit("pong!"))
    await wait_until(lambda: transport.sent_events("message:edit"))
    transport.ack("message:edit", {"success": True})
    await edit

    delete = asyncio.create_task(sent.delete())
    await wait_until(lambda: transport.sent_events("message:delete"))
    transport.ack("message:delete", {"success": True})
    await delete

    assert sent.content == "pong!"
    assert sent.deleted is True
    assert transport.sent_events("message:delete")[0][1] == {"messageId": "6"}
    await client.disconnect()


@pytest.mark.asyncio
async def test_channel_helpers_go_through_client(client, gateway, transport):
    gateway.responses[("GET", "/api/channels/7")] = {"id": 7, "name": "general"}
    await client.connect()
    channel = await client.fetch_channel(7)

    await channel.start_typing()
    await channel.stop_typing()
    collector = channel.create_message_collector(max_items=1)
    send = asyncio.create_task(channel.send("hello"))
    await wait_until(lambda: transport.sent_events("message:send"))
    transport.ack("message:send", {"id": 8, "channel_id": 7, "user_id": 1, "content": "hello"})
    message = await send

    assert [e for e, _, _ in transport.sent if e.startswith("typing:")] == ["typing:start", "typing:stop"]
    assert message.channel is channel
    assert collector.collected == [message]
    assert collector.end_reason == "limit"
    await client.disconnect()


@pytest.mark.asyncio
async def test_unbound_record_helpers_raise():
    message = CachedMessage(id="1", channel_id="7")

    with pytest.raises(BeniocordError):
        await message.reply("hi")
    with pytest.raises(BeniocordError):
        await CachedChannel(id="7").send("hi")
