"""
客户端模块 - beniocord 的公开命令面。

Client 持有一个会话所需的全部协作者，没有任何模块级单例：

    Client
    ├── HttpGateway        REST 请求（身份确认、引用解析、fetch_*）
    ├── SocketIOTransport  推送连接
    ├── CacheStore         远端状态的有界镜像
    ├── EchoSuppressor     发送确认 ↔ 推送回声 的关联
    ├── EventBus           应用监听器订阅入口
    ├── EventIngestion     推送事件 → 缓存变更 + 领域事件
    └── SessionController  连接状态机、心跳、重连

使用示例：
    client = Client(token="...")

    @client.on("messageCreate")
    async def on_message(message):
        if message.content == "!ping":
            await client.send_message(message.channel_id, "pong")

    await client.login()

【Java 开发者类比】
- Client 相当于门面（Facade），把各子系统组合成一个易用的 API
"""

from typing import Any, Callable

from loguru import logger

from beniocord.bus.emitter import EventBus, Listener
from beniocord.bus.events import MESSAGE_CREATE
from beniocord.cache.records import (
    VALID_STATUSES,
    CachedChannel,
    CachedMessage,
    CachedUser,
    EmojiRecord,
    PresenceRecord,
    StickerRecord,
)
from beniocord.cache.store import CacheStore
from beniocord.collector import MessageCollector
from beniocord.config.schema import Config
from beniocord.errors import CommandError, ConnectionError
from beniocord.ingest.echo import EchoSuppressor
from beniocord.ingest.ingestion import EventIngestion
from beniocord.rest.base import RequestGateway
from beniocord.rest.http import HttpGateway
from beniocord.session.commands import CommandTracker
from beniocord.session.controller import SessionController
from beniocord.session.state import Session
from beniocord.transport.base import Transport, TransportError
from beniocord.transport.sio import SocketIOTransport
from beniocord.utils.helpers import normalize_id, timestamp


class Client:
    """
    beniocord 机器人客户端。

    参数:
        config: 完整配置；为 None 时使用默认配置（环境变量可覆盖）
        token: 机器人令牌；给出时覆盖 config.token
        gateway: 自定义请求网关（默认 HttpGateway）
        transport: 自定义推送传输（默认 SocketIOTransport）
    """

    def __init__(
        self,
        config: Config | None = None,
        token: str | None = None,
        gateway: RequestGateway | None = None,
        transport: Transport | None = None,
    ):
        self.config = config or Config()
        if token is not None:
            self.config = self.config.model_copy(update={"token": token})
        if not self.config.token:
            raise ValueError("A bot token is required")

        conn = self.config.connection
        self.asset_url = conn.asset_url
        self.gateway = gateway or HttpGateway(conn.api_url, self.config.token, timeout=conn.request_timeout_s)
        self.transport = transport or SocketIOTransport(conn.socket_path, wait_timeout=conn.request_timeout_s)

        self.session = Session()
        self.store = CacheStore(self.config.cache.message_capacity, owner=self)
        self.echo = EchoSuppressor(self.config.cache.echo_capacity)
        self.bus = EventBus()
        self.commands = CommandTracker(self.transport, timeout=conn.command_timeout_s)
        self.ingestion = EventIngestion(
            self.store, self.echo, self.bus, self.gateway, self.session, asset_url=self.asset_url,
        )
        self.controller = SessionController(
            self.session,
            self.transport,
            self.gateway,
            self.bus,
            self.commands,
            self.store,
            conn,
            self.config.token,
            on_event=self.ingestion.handle,
        )

    # ---- 生命周期 -----------------------------------------------------------------

    @property
    def user(self) -> CachedUser | None:
        """已确认的机器人自身用户（未连接时为 None）。"""
        return self.session.identity

    async def connect(self) -> CachedUser:
        return await self.controller.connect()

    async def login(self) -> CachedUser:
        """校验令牌后建立连接。"""
        return await self.controller.login()

    async def disconnect(self) -> None:
        await self.controller.disconnect()

    async def close(self) -> None:
        """断开连接并释放 HTTP 客户端。"""
        await self.controller.disconnect()
        await self.gateway.close()

    async def __aenter__(self) -> "Client":
        await self.login()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def is_ready(self) -> bool:
        return self.controller.is_ready()

    def clear_cache(self) -> None:
        self.store.clear()

    # ---- 事件订阅 -----------------------------------------------------------------

    def on(self, event: str, listener: Listener | None = None):
        """订阅事件，可作为装饰器使用。见 EventBus.on。"""
        return self.bus.on(event, listener)

    def once(self, event: str, listener: Listener) -> Listener:
        return self.bus.once(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.bus.off(event, listener)

    def create_message_collector(
        self,
        channel_id: Any,
        filter: Callable[[CachedMessage], Any] | None = None,
        time_s: float | None = 60.0,
        max_items: int | None = None,
    ) -> MessageCollector:
        """为频道创建消息收集器，见 collector.MessageCollector。"""
        return MessageCollector(
            self.bus, normalize_id(channel_id) or "", filter=filter, time_s=time_s, max_items=max_items,
        )

    # ---- 命令 -------------------------------------------------------------------

    def _ensure_connected(self) -> None:
        if not self.is_ready():
            raise ConnectionError("Socket is not connected - please call login() first")

    async def _send(self, event: str, payload: dict[str, Any]) -> None:
        """发送无需确认的命令（状态、输入中提示）。"""
        self._ensure_connected()
        try:
            await self.transport.send(event, payload)
        except TransportError as e:
            raise CommandError(f"{event} failed: {e}", command=event) from e

    async def send_message(
        self,
        channel_id: Any,
        content: str,
        message_type: str = "text",
        reply_to: Any = None,
        file_url: str | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
        sticker_id: Any = None,
    ) -> CachedMessage:
        """
        发送消息并等待服务端确认。

        确认到达时立即把消息 ID 登记到回声抑制表，并由确认路径发出一次 messageCreate；
        随后同一条消息的 message:new 推送被丢弃。若推送先于确认到达，
        则推送路径已经发出过 messageCreate，确认路径不再重复发出。

        返回:
            服务端创建的消息（已写入频道消息序列）

        异常:
            ConnectionError: 未连接
            CommandError: 服务端拒绝或等待确认超时
        """
        self._ensure_connected()
        payload = {
            "channelId": normalize_id(channel_id),
            "content": content,
            "messageType": message_type or "text",
            "replyTo": normalize_id(reply_to),
            "fileUrl": file_url,
            "fileName": file_name,
            "fileSize": file_size,
            "stickerId": normalize_id(sticker_id),
        }
        epoch = self.session.epoch

        pushed_first = False

        def remember_echo(response: Any) -> None:
            nonlocal pushed_first
            if not isinstance(response, dict):
                return
            message_id = normalize_id(response.get("id"))
            if not message_id:
                return
            if self.ingestion.has_seen(message_id):
                pushed_first = True
            else:
                self.echo.remember(message_id)

        response = await self.commands.request("message:send", payload, on_ack=remember_echo)
        if not isinstance(response, dict) or normalize_id(response.get("id")) is None:
            raise CommandError("message:send acknowledgement carried no message", command="message:send")
        message = await self.ingestion.materialize_message(response, epoch)
        if not pushed_first and self.session.is_current(epoch):
            await self.bus.emit(MESSAGE_CREATE, message)
        return message

    async def edit_message(self, message_id: Any, content: str) -> Any:
        """编辑消息；确认后同步更新缓存中的消息。返回确认载荷。"""
        self._ensure_connected()
        message_id = normalize_id(message_id)
        response = await self.commands.request(
            "message:edit", {"messageId": message_id, "content": content},
        )
        message = self.store.get_message(message_id) if message_id else None
        if message is not None:
            message.apply_edit(content, timestamp())
        return response

    async def delete_message(self, message_id: Any) -> Any:
        """删除消息；确认后把缓存中的消息标记为已删除。返回确认载荷。"""
        self._ensure_connected()
        message_id = normalize_id(message_id)
        response = await self.commands.request("message:delete", {"messageId": message_id})
        message = self.store.get_message(message_id) if message_id else None
        if message is not None:
            message.deleted = True
        return response

    async def set_status(self, status: str) -> None:
        """
        设置机器人的在线状态，心跳会持续重申该状态。

        异常:
            ValueError: 状态不是 online / offline / away / dnd 之一
        """
        if status not in VALID_STATUSES:
            raise ValueError(f"Invalid status {status!r}. Valid statuses are: {', '.join(VALID_STATUSES)}")
        await self._send("status:update", {"status": status})
        self.session.status = status
        if self.session.identity:
            self.session.identity.status = status

    async def start_typing(self, channel_id: Any) -> None:
        await self._send("typing:start", {"channelId": normalize_id(channel_id)})

    async def stop_typing(self, channel_id: Any) -> None:
        await self._send("typing:stop", {"channelId": normalize_id(channel_id)})

    # ---- 查询：用户 / 频道 / 消息 ---------------------------------------------------

    async def fetch_me(self) -> CachedUser:
        data = await self.gateway.request("GET", "/api/users/me")
        return self.store.upsert_user(data, self.asset_url)

    async def fetch_user(self, user_id: Any, force: bool = False) -> CachedUser:
        """
        获取用户：默认先查缓存，未命中再请求。

        异常:
            RequestFailure: 请求失败（含 NOT_FOUND）
        """
        user_id = normalize_id(user_id)
        if not force and user_id in self.store.users:
            return self.store.users[user_id]
        data = await self.gateway.request("GET", f"/api/users/{user_id}")
        return self.store.upsert_user(data, self.asset_url)

    async def fetch_channel(self, channel_id: Any, force: bool = False) -> CachedChannel:
        channel_id = normalize_id(channel_id)
        if not force and channel_id in self.store.channels:
            return self.store.channels[channel_id]
        data = await self.gateway.request("GET", f"/api/channels/{channel_id}")
        return self.store.upsert_channel(data, self.asset_url)

    async def fetch_channels(self) -> list[CachedChannel]:
        data = await self.gateway.request("GET", "/api/channels")
        return [self.store.upsert_channel(item, self.asset_url) for item in data or []]

    async def fetch_message(self, message_id: Any, channel_id: Any = None) -> CachedMessage:
        """
        获取消息：先查缓存；未命中时需要 channel_id 才能请求。

        异常:
            ValueError: 消息未缓存且未提供 channel_id
            RequestFailure: 请求失败
        """
        message_id = normalize_id(message_id)
        cached = self.store.get_message(message_id) if message_id else None
        if cached is not None:
            return cached
        channel_id = normalize_id(channel_id)
        if channel_id is None:
            raise ValueError(f"Message {message_id} is not cached; channel_id is required to fetch it")
        epoch = self.session.epoch
        data = await self.gateway.request("GET", f"/api/channels/{channel_id}/messages/{message_id}")
        return await self.ingestion.materialize_message({"channel_id": channel_id, **data}, epoch)

    async def fetch_channel_messages(
        self, channel_id: Any, limit: int = 50, before: Any = None
    ) -> list[CachedMessage]:
        """拉取频道历史消息并写入消息序列（已缓存的消息保持原实例）。"""
        channel_id = normalize_id(channel_id)
        params: dict[str, Any] = {"limit": limit}
        if before is not None:
            params["before"] = normalize_id(before)
        epoch = self.session.epoch
        data = await self.gateway.request("GET", f"/api/channels/{channel_id}/messages", params=params)
        messages = []
        for item in data or []:
            messages.append(await self.ingestion.materialize_message({"channel_id": channel_id, **item}, epoch))
        return messages

    async def fetch_channel_members(self, channel_id: Any) -> list[CachedUser]:
        data = await self.gateway.request("GET", f"/api/channels/{normalize_id(channel_id)}/members")
        return [self.store.upsert_user(item, self.asset_url) for item in data or []]

    async def fetch_presence(self, user_id: Any) -> PresenceRecord:
        user_id = normalize_id(user_id)
        data = await self.gateway.request("GET", f"/api/presence/{user_id}")
        return self.store.upsert_presence({**(data or {}), "userId": user_id})

    # ---- 频道管理 -----------------------------------------------------------------

    async def create_channel(self, name: str, description: str = "") -> CachedChannel:
        if not name or not name.strip():
            raise ValueError("Channel name is required")
        data = await self.gateway.request(
            "POST", "/api/channels", body={"name": name.strip(), "description": description, "type": "text"},
        )
        channel = self.store.upsert_channel(data.get("channel", data), self.asset_url)
        logger.info(f"Created channel {channel.name} ({channel.id})")
        return channel

    async def update_channel(
        self, channel_id: Any, name: str | None = None, description: str | None = None
    ) -> CachedChannel:
        if name is None and description is None:
            raise ValueError("At least one field must be provided to update")
        body: dict[str, Any] = {"type": "text"}
        if name is not None:
            body["name"] = name.strip()
        if description is not None:
            body["description"] = description
        data = await self.gateway.request("PATCH", f"/api/channels/{normalize_id(channel_id)}", body=body)
        return self.store.upsert_channel(data.get("channel", data), self.asset_url)

    async def delete_channel(self, channel_id: Any) -> Any:
        channel_id = normalize_id(channel_id)
        response = await self.gateway.request("DELETE", f"/api/channels/{channel_id}")
        self.store.remove_channel(channel_id)
        return response

    async def add_channel_member(self, channel_id: Any, user_id: Any, role: str = "member") -> Any:
        return await self.gateway.request(
            "POST",
            f"/api/channels/{normalize_id(channel_id)}/members",
            body={"userId": normalize_id(user_id), "role": role},
        )

    async def update_channel_member(self, channel_id: Any, user_id: Any, data: dict[str, Any]) -> Any:
        """更新成员属性（如 role），data 原样作为请求体。"""
        return await self.gateway.request(
            "PATCH", f"/api/channels/{normalize_id(channel_id)}/members/{normalize_id(user_id)}", body=data,
        )

    async def remove_channel_member(self, channel_id: Any, user_id: Any) -> Any:
        return await self.gateway.request(
            "DELETE", f"/api/channels/{normalize_id(channel_id)}/members/{normalize_id(user_id)}",
        )

    # ---- 表情 / 贴纸 --------------------------------------------------------------

    async def fetch_emoji(self, emoji_id: Any) -> EmojiRecord:
        data = await self.gateway.request("GET", f"/api/emojis/{normalize_id(emoji_id)}")
        return self.store.upsert_emoji(data, self.asset_url)

    async def fetch_all_emojis(self, include_others: bool = False, search: str | None = None) -> list[EmojiRecord]:
        """拉取表情列表；include_others=True 时包含其他用户上传的表情。"""
        path = "/api/emojis/all" if include_others else "/api/emojis"
        params = {"search": search} if search else None
        data = await self.gateway.request("GET", path, params=params)
        return [self.store.upsert_emoji(item, self.asset_url) for item in data or []]

    async def fetch_sticker(self, sticker_id: Any) -> StickerRecord:
        data = await self.gateway.request("GET", f"/api/stickers/{normalize_id(sticker_id)}")
        return self.store.upsert_sticker(data, self.asset_url)

    async def fetch_all_stickers(self, search: str | None = None) -> list[StickerRecord]:
        params = {"search": search} if search else None
        data = await self.gateway.request("GET", "/api/stickers/all", params=params)
        return [self.store.upsert_sticker(item, self.asset_url) for item in data or []]


__all__ = ["Client"]
