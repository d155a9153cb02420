"""
事件总线模块 - 实现摄取管道与应用监听器之间的解耦通信。

事件流向：
  推送连接 → 会话控制器 → 事件摄取 → 缓存 / 回声抑制 → EventBus → 应用监听器
"""

from beniocord.bus.emitter import EventBus
from beniocord.bus.events import (
    EVENT_NAMES,
    ChannelDelete,
    ChannelUpdate,
    MemberEvent,
    MessageDelete,
    MessageEdit,
    RateLimitNotice,
    StatusUpdate,
    TypingEvent,
)

__all__ = [
    "EventBus",
    "EVENT_NAMES",
    "MessageEdit",
    "MessageDelete",
    "MemberEvent",
    "ChannelUpdate",
    "ChannelDelete",
    "TypingEvent",
    "StatusUpdate",
    "RateLimitNotice",
]
