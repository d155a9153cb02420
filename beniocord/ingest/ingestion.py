"""
事件摄取模块 - 把推送事件转换为缓存变更与领域事件。

处理流程（每个入站事件）：
1. 边界校验：parse_event 把原始载荷校验为类型明确的模型，失败 → ProtocolError → "error" 事件
2. 回声检查（仅 message:new）：命中回声登记表则消费条目并丢弃事件
3. 引用解析：先查缓存，再通过请求网关拉取；失败则降级为 None，事件照常发出
4. 缓存变更：在两次 await 之间同步完成；await 之后先确认会话仍然存活
5. 发出零个或一个领域事件

事件按到达顺序处理，不重排、不合并：编辑一条尚未缓存的消息只是缓存上的空操作，
事件依旧转发给监听器。

【二开提示】
新增一种推送事件时：在 payloads.py 中增加模型并登记到 WIRE_PAYLOADS，
再在 _handlers 中增加处理函数即可。
"""

from functools import partial
from typing import Any, Awaitable, Callable

from loguru import logger

from beniocord.bus import events as ev
from beniocord.bus.emitter import EventBus
from beniocord.cache.records import CachedChannel, CachedMessage, CachedUser
from beniocord.cache.store import CacheStore
from beniocord.errors import CacheInconsistency, ProtocolError, RequestFailure
from beniocord.ingest.echo import EchoSuppressor
from beniocord.ingest.payloads import (
    ChannelDeletePayload,
    ChannelUpdatePayload,
    MemberJoinPayload,
    MessageCreatePayload,
    MessageDeletePayload,
    MessageEditPayload,
    PresenceUpdatePayload,
    RateLimitPayload,
    StatusUpdatePayload,
    TypingStartPayload,
    parse_event,
)
from beniocord.rest.base import RequestGateway
from beniocord.session.state import Session

Handler = Callable[[Any, int], Awaitable[None]]


class EventIngestion:
    """
    推送事件摄取器。

    属性:
        store: 缓存存储
        echo: 回声抑制登记表
        bus: 领域事件总线
        gateway: 请求网关（用于引用解析）
        session: 当前会话（用于判断 await 之后会话是否仍然存活）
        asset_url: 资源相对路径的基础地址
    """

    def __init__(
        self,
        store: CacheStore,
        echo: EchoSuppressor,
        bus: EventBus,
        gateway: RequestGateway,
        session: Session,
        asset_url: str = "",
    ):
        self.store = store
        self.echo = echo
        self.bus = bus
        self.gateway = gateway
        self.session = session
        self.asset_url = asset_url
        self._inflight: set[str] = set()
        self._handlers: dict[str, Handler] = {
            "message:new": self._on_message_create,
            "message:edited": self._on_message_edit,
            "message:deleted": self._on_message_delete,
            "member:join": partial(self._on_member, ev.MEMBER_JOIN),
            "member:leave": partial(self._on_member, ev.MEMBER_LEAVE),
            "channel:update": self._on_channel_update,
            "channel:delete": self._on_channel_delete,
            "typing:user-start": partial(self._on_typing, ev.TYPING_START),
            "typing:user-stop": partial(self._on_typing, ev.TYPING_STOP),
            "user:status-update": self._on_status_update,
            "presence:update": self._on_presence_update,
            "rate:limited": self._on_rate_limited,
        }

    async def handle(self, event: str, payload: Any) -> None:
        """
        摄取一个入站事件。任何失败都汇入 "error" 事件，绝不向传输层抛出。

        参数:
            event: 线上事件名
            payload: 原始载荷
        """
        epoch = self.session.epoch
        try:
            parsed = parse_event(event, payload)
        except ProtocolError as e:
            logger.warning(f"Dropping push event: {e}")
            await self.bus.emit(ev.ERROR, e)
            return

        try:
            await self._handlers[parsed.event](parsed, epoch)
        except Exception as e:
            logger.error(f"Error ingesting {event}: {e}")
            await self.bus.emit(ev.ERROR, e)

    def _stale(self, epoch: int) -> bool:
        return not self.session.is_current(epoch)

    def has_seen(self, message_id: str) -> bool:
        """消息已经入缓存，或其 message:new 正在摄取中。"""
        return message_id in self._inflight or self.store.get_message(message_id) is not None

    # ---- 引用解析 ---------------------------------------------------------------

    async def resolve_user(
        self, user_id: str | None, inline: dict[str, Any] | None, epoch: int
    ) -> CachedUser | None:
        """
        解析用户引用：缓存 → 载荷内联数据 → 请求网关。

        返回:
            缓存中的用户实例；无法解析或会话已结束时返回 None
        """
        if not user_id and inline:
            user_id = CachedUser.from_payload(inline).id or None
        if not user_id:
            return None
        cached = self.store.users.get(user_id)
        if cached is not None:
            return cached
        if inline and inline.get("username"):
            return self.store.ensure_user(CachedUser.from_payload({**inline, "id": user_id}, self.asset_url))

        data = await self._lookup(f"/api/users/{user_id}", f"user {user_id}")
        if data is None or self._stale(epoch):
            return None
        return self.store.ensure_user(CachedUser.from_payload(data, self.asset_url))

    async def resolve_channel(
        self, channel_id: str | None, inline: dict[str, Any] | None, epoch: int
    ) -> CachedChannel | None:
        """解析频道引用：缓存 → 载荷内联数据 → 请求网关。"""
        if not channel_id and inline:
            channel_id = CachedChannel.from_payload(inline).id or None
        if not channel_id:
            return None
        cached = self.store.channels.get(channel_id)
        if cached is not None:
            return cached
        if inline and inline.get("name") is not None:
            return self.store.ensure_channel(CachedChannel.from_payload({**inline, "id": channel_id}, self.asset_url))

        data = await self._lookup(f"/api/channels/{channel_id}", f"channel {channel_id}")
        if data is None or self._stale(epoch):
            return None
        return self.store.ensure_channel(CachedChannel.from_payload(data, self.asset_url))

    async def _lookup(self, path: str, label: str) -> dict[str, Any] | None:
        try:
            data = await self.gateway.request("GET", path)
        except RequestFailure as e:
            error = CacheInconsistency(f"Could not resolve {label}: {e}")
            logger.warning(f"{error} (degrading to null reference)")
            return None
        return data if isinstance(data, dict) else None

    async def materialize_message(self, data: dict[str, Any], epoch: int) -> CachedMessage:
        """
        由消息载荷构造消息、解析 author / channel 并写入频道消息序列。

        推送的 message:new 与发送确认共用此方法。会话在解析期间结束时，
        返回未入缓存的消息实例。
        """
        message = CachedMessage.from_payload(data, self.asset_url)
        inline_user = data.get("user") if isinstance(data.get("user"), dict) else None
        if inline_user is None and data.get("username"):
            inline_user = {
                "id": message.author_id,
                "username": data.get("username"),
                "display_name": data.get("display_name"),
                "avatar_url": data.get("avatar_url"),
            }
        inline_channel = data.get("channel") if isinstance(data.get("channel"), dict) else None

        message.author = await self.resolve_user(message.author_id, inline_user, epoch)
        message.channel = await self.resolve_channel(message.channel_id, inline_channel, epoch)

        if self._stale(epoch) or not message.channel_id:
            return message
        return self.store.add_message(message.channel_id, message)

    # ---- 各事件处理 ---------------------------------------------------------------

    async def _on_message_create(self, payload: MessageCreatePayload, epoch: int) -> None:
        if self.echo.consume(payload.id):
            logger.debug(f"Suppressed echo of message {payload.id}")
            return
        self._inflight.add(payload.id)
        try:
            message = await self.materialize_message(payload.raw, epoch)
        finally:
            self._inflight.discard(payload.id)
        if self._stale(epoch):
            logger.debug(f"Session ended while resolving message {payload.id}, dropping")
            return
        await self.bus.emit(ev.MESSAGE_CREATE, message)

    async def _on_message_edit(self, payload: MessageEditPayload, epoch: int) -> None:
        message = self.store.get_message(payload.message_id)
        if message is not None:
            content = payload.content if payload.content is not None else message.content
            message.apply_edit(content, payload.edited_at)
        await self.bus.emit(ev.MESSAGE_EDIT, ev.MessageEdit(
            message_id=payload.message_id,
            content=payload.content,
            edited_at=payload.edited_at,
            message=message,
        ))

    async def _on_message_delete(self, payload: MessageDeletePayload, epoch: int) -> None:
        message = self.store.get_message(payload.message_id)
        if message is not None:
            message.deleted = True
        await self.bus.emit(ev.MESSAGE_DELETE, ev.MessageDelete(
            message_id=payload.message_id,
            channel_id=payload.channel_id or (message.channel_id if message else None),
            message=message,
        ))

    async def _on_member(self, event_name: str, payload: MemberJoinPayload, epoch: int) -> None:
        user = await self.resolve_user(payload.user_id, payload.user, epoch)
        if self._stale(epoch):
            return
        await self.bus.emit(event_name, ev.MemberEvent(
            channel_id=payload.channel_id,
            user_id=payload.user_id or (user.id if user else None),
            user=user,
            channel=self.store.channels.get(payload.channel_id) if payload.channel_id else None,
            data=payload.raw,
        ))

    async def _on_channel_update(self, payload: ChannelUpdatePayload, epoch: int) -> None:
        channel = self.store.channels.get(payload.id)
        if channel is not None:
            channel.update(payload.raw, self.asset_url)
        await self.bus.emit(ev.CHANNEL_UPDATE, ev.ChannelUpdate(
            channel_id=payload.id, channel=channel, data=payload.raw,
        ))

    async def _on_channel_delete(self, payload: ChannelDeletePayload, epoch: int) -> None:
        channel = self.store.remove_channel(payload.channel_id)
        await self.bus.emit(ev.CHANNEL_DELETE, ev.ChannelDelete(
            channel_id=payload.channel_id, channel=channel,
        ))

    async def _on_typing(self, event_name: str, payload: TypingStartPayload, epoch: int) -> None:
        # 输入状态频率高，只查缓存不发请求
        user = self.store.users.get(payload.user_id) if payload.user_id else None
        await self.bus.emit(event_name, ev.TypingEvent(
            channel_id=payload.channel_id, user_id=payload.user_id, user=user, data=payload.raw,
        ))

    async def _on_status_update(self, payload: StatusUpdatePayload, epoch: int) -> None:
        user = self.store.users.get(payload.user_id)
        if user is not None:
            user.status = payload.status
            if payload.last_seen:
                user.last_seen = payload.last_seen
        presence = self.store.presence.get(payload.user_id)
        if presence is not None:
            presence.status = payload.status
        await self.bus.emit(ev.USER_STATUS_UPDATE, ev.StatusUpdate(
            user_id=payload.user_id, status=payload.status, last_seen=payload.last_seen, user=user,
        ))

    async def _on_presence_update(self, payload: PresenceUpdatePayload, epoch: int) -> None:
        record = self.store.upsert_presence({**payload.raw, "userId": payload.user_id})
        await self.bus.emit(ev.PRESENCE_UPDATE, record)

    async def _on_rate_limited(self, payload: RateLimitPayload, epoch: int) -> None:
        logger.warning(
            f"Rate limited by server (retry after {payload.retry_after}s, command={payload.command})"
        )
        await self.bus.emit(ev.RATE_LIMITED, ev.RateLimitNotice(
            retry_after=payload.retry_after, event=payload.command, message=payload.message,
        ))


__all__ = ["EventIngestion"]
