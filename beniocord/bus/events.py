"""
领域事件类型定义模块 - 定义事件总线上传递给应用监听器的数据结构。

messageCreate 直接携带 CachedMessage，presenceUpdate 直接携带 PresenceRecord；
其余事件使用本模块的数据类，既包含原始 ID，也包含（可能为 None 的）缓存实体引用。
引用为 None 表示实体不在缓存中且无法解析，事件照常发出。

【Java 开发者类比】
- 使用 Python 的 @dataclass 装饰器，等价于 Java 的 record 类
"""

from dataclasses import dataclass, field
from typing import Any

from beniocord.cache.records import CachedChannel, CachedMessage, CachedUser

# 事件总线支持的全部事件名
READY = "ready"
DISCONNECT = "disconnect"
RECONNECT = "reconnect"
ERROR = "error"
MESSAGE_CREATE = "messageCreate"
MESSAGE_EDIT = "messageEdit"
MESSAGE_DELETE = "messageDelete"
MEMBER_JOIN = "memberJoin"
MEMBER_LEAVE = "memberLeave"
PRESENCE_UPDATE = "presenceUpdate"
USER_STATUS_UPDATE = "userStatusUpdate"
CHANNEL_UPDATE = "channelUpdate"
CHANNEL_DELETE = "channelDelete"
TYPING_START = "typingStart"
TYPING_STOP = "typingStop"
RATE_LIMITED = "rateLimited"

EVENT_NAMES = frozenset({
    READY, DISCONNECT, RECONNECT, ERROR,
    MESSAGE_CREATE, MESSAGE_EDIT, MESSAGE_DELETE,
    MEMBER_JOIN, MEMBER_LEAVE, PRESENCE_UPDATE, USER_STATUS_UPDATE,
    CHANNEL_UPDATE, CHANNEL_DELETE,
    TYPING_START, TYPING_STOP, RATE_LIMITED,
})


@dataclass
class MessageEdit:
    """消息被编辑。message 为缓存中的消息（未缓存时为 None）。"""
    message_id: str
    content: str | None
    edited_at: str | None
    message: CachedMessage | None = None


@dataclass
class MessageDelete:
    """消息被删除。"""
    message_id: str
    channel_id: str | None = None
    message: CachedMessage | None = None


@dataclass
class MemberEvent:
    """成员加入/离开频道。"""
    channel_id: str | None
    user_id: str | None
    user: CachedUser | None = None
    channel: CachedChannel | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelUpdate:
    """频道属性更新。channel 为原地更新后的缓存实例（未缓存时为 None）。"""
    channel_id: str
    channel: CachedChannel | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChannelDelete:
    """频道被删除。channel 为刚从缓存中移除的实例。"""
    channel_id: str
    channel: CachedChannel | None = None


@dataclass
class TypingEvent:
    """用户开始/停止输入。"""
    channel_id: str | None
    user_id: str | None
    user: CachedUser | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class StatusUpdate:
    """用户状态变更（online / offline / away / dnd）。"""
    user_id: str
    status: str
    last_seen: str | None = None
    user: CachedUser | None = None


@dataclass
class RateLimitNotice:
    """服务端发出的限流通知。"""
    retry_after: float | None = None
    event: str | None = None
    message: str | None = None
