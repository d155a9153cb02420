"""
缓存存储模块 - 有界、按键索引的实体存储。

CacheStore 为每类实体维护一个字典，另外为每个频道维护一个
有容量上限的消息序列（先进先出淘汰最旧的消息），以及一个
消息 ID → 消息实例 的索引，用于编辑/删除事件的快速查找。

核心原语：
- ensure_cached(store, key, value)：键不存在才插入，否则原样返回已有实例
  （保证持有旧引用的代码看到的始终是同一个对象）
- add_message(channel_id, message)：追加到频道序列尾部，超出容量时淘汰最旧的一条

本模块是纯数据结构，不做任何 I/O，也不感知会话状态。
"""

from collections import deque
from typing import Any, TypeVar

from beniocord.cache.records import (
    CachedChannel,
    CachedMessage,
    CachedUser,
    EmojiRecord,
    PresenceRecord,
    StickerRecord,
)

DEFAULT_MESSAGE_CAPACITY = 50

T = TypeVar("T")


def ensure_cached(store: dict[str, T], key: str, value: T) -> T:
    """
    仅当 key 不存在时插入 value；否则返回已有实例，value 被丢弃。

    参数:
        store: 目标字典
        key: 实体 ID
        value: 候选实例

    返回:
        缓存中与 key 对应的唯一实例
    """
    existing = store.get(key)
    if existing is not None:
        return existing
    store[key] = value
    return value


class CacheStore:
    """
    客户端镜像的全部缓存。

    属性:
        users / channels / presence / stickers / emojis: 各类实体的 ID → 实例字典
        message_capacity: 每个频道最多保留的消息数
        owner: 所属 Client；入缓存的用户、频道、消息会绑定到它（用于 reply / send 等便捷方法）
    """

    def __init__(self, message_capacity: int = DEFAULT_MESSAGE_CAPACITY, owner: Any = None):
        self.message_capacity = message_capacity
        self.owner = owner
        self.users: dict[str, CachedUser] = {}
        self.channels: dict[str, CachedChannel] = {}
        self.presence: dict[str, PresenceRecord] = {}
        self.stickers: dict[str, StickerRecord] = {}
        self.emojis: dict[str, EmojiRecord] = {}
        self._messages: dict[str, deque[CachedMessage]] = {}
        self._message_index: dict[str, CachedMessage] = {}

    # ---- 用户 / 频道 -----------------------------------------------------------

    def _bind(self, record: T) -> T:
        if self.owner is not None and getattr(record, "client", None) is None:
            record.client = self.owner
        return record

    def ensure_user(self, user: CachedUser) -> CachedUser:
        return self._bind(ensure_cached(self.users, user.id, user))

    def ensure_channel(self, channel: CachedChannel) -> CachedChannel:
        """缓存频道并把它的 messages 绑定到该频道的消息序列。"""
        cached = ensure_cached(self.channels, channel.id, channel)
        cached.messages = self._sequence(cached.id)
        return self._bind(cached)

    def upsert_user(self, data: dict[str, Any], asset_url: str = "") -> CachedUser:
        """已缓存则原地更新并返回原实例，否则新建并缓存。用于 REST 拉取结果。"""
        candidate = CachedUser.from_payload(data, asset_url)
        cached = self.ensure_user(candidate)
        if cached is not candidate:
            cached.update(data, asset_url)
        return cached

    def upsert_channel(self, data: dict[str, Any], asset_url: str = "") -> CachedChannel:
        candidate = CachedChannel.from_payload(data, asset_url)
        cached = self.ensure_channel(candidate)
        if cached is not candidate:
            cached.update(data, asset_url)
        return cached

    def remove_channel(self, channel_id: str) -> CachedChannel | None:
        """移除频道及其消息序列，返回被移除的频道（未缓存时为 None）。"""
        for message in self._messages.pop(channel_id, ()):
            if self._message_index.get(message.id) is message:
                del self._message_index[message.id]
        return self.channels.pop(channel_id, None)

    # ---- 消息 -----------------------------------------------------------------

    def _sequence(self, channel_id: str) -> deque[CachedMessage]:
        sequence = self._messages.get(channel_id)
        if sequence is None:
            sequence = self._messages[channel_id] = deque()
        return sequence

    def add_message(self, channel_id: str, message: CachedMessage) -> CachedMessage:
        """
        把消息追加到频道序列尾部。

        - 同一消息 ID 已缓存时不重复追加，直接返回已有实例
        - 序列长度超过 message_capacity 时淘汰最旧的消息（同时移出索引）

        返回:
            缓存中与 message.id 对应的唯一实例
        """
        existing = self._message_index.get(message.id)
        if existing is not None:
            return existing

        sequence = self._sequence(channel_id)
        sequence.append(message)
        self._message_index[message.id] = message
        while len(sequence) > self.message_capacity:
            evicted = sequence.popleft()
            if self._message_index.get(evicted.id) is evicted:
                del self._message_index[evicted.id]
        return self._bind(message)

    def get_message(self, message_id: str) -> CachedMessage | None:
        return self._message_index.get(message_id)

    def messages_for(self, channel_id: str) -> list[CachedMessage]:
        """返回频道已缓存消息的快照（按到达顺序）。"""
        return list(self._messages.get(channel_id, ()))

    # ---- 在线状态 / 贴纸 / 表情 --------------------------------------------------

    def upsert_presence(self, data: dict[str, Any]) -> PresenceRecord:
        candidate = PresenceRecord.from_payload(data)
        cached = ensure_cached(self.presence, candidate.user_id, candidate)
        if cached is not candidate:
            cached.update(data)
        return cached

    def upsert_sticker(self, data: dict[str, Any], asset_url: str = "") -> StickerRecord:
        candidate = StickerRecord.from_payload(data, asset_url)
        cached = ensure_cached(self.stickers, candidate.id, candidate)
        if cached is not candidate:
            cached.update(data, asset_url)
        return cached

    def upsert_emoji(self, data: dict[str, Any], asset_url: str = "") -> EmojiRecord:
        candidate = EmojiRecord.from_payload(data, asset_url)
        cached = ensure_cached(self.emojis, candidate.id, candidate)
        if cached is not candidate:
            cached.update(data, asset_url)
        return cached

    def clear(self) -> None:
        """清空所有存储。仅用于显式重置（例如测试清理），正常运行不调用。"""
        self.users.clear()
        self.channels.clear()
        self.presence.clear()
        self.stickers.clear()
        self.emojis.clear()
        self._messages.clear()
        self._message_index.clear()
