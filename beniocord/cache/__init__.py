"""
缓存模块 - 远端聊天平台状态在本地的有界镜像。

- records.py：缓存实体（用户、频道、消息、在线状态、贴纸、表情）
- store.py：CacheStore 与 ensure_cached 原语
"""

from beniocord.cache.records import (
    CachedChannel,
    CachedMessage,
    CachedUser,
    EmojiRecord,
    PresenceRecord,
    StickerRecord,
)
from beniocord.cache.store import CacheStore, ensure_cached

__all__ = [
    "CacheStore",
    "ensure_cached",
    "CachedUser",
    "CachedChannel",
    "CachedMessage",
    "PresenceRecord",
    "StickerRecord",
    "EmojiRecord",
]
