"""
缓存实体定义模块 - 定义客户端镜像的远端实体。

本模块定义了缓存中保存的六类实体：
- CachedUser：用户
- CachedChannel：频道（持有该频道最近消息的有序序列）
- CachedMessage：消息
- PresenceRecord：在线状态
- StickerRecord / EmojiRecord：贴纸与表情

【设计要点】
- 引用语义：实体一经缓存就原地修改（update），持有旧引用的代码能直接看到更新
- 所有 ID 统一为字符串，见 utils.helpers.normalize_id
- from_payload 负责把服务端的 snake_case 字段映射为实体属性

【Java 开发者类比】
- 使用 @dataclass 等价于 Lombok 的 @Data（可变、带 equals/hashCode 之外的字段）
- eq=False 保证比较按对象身份进行，类似 Java 默认的 Object.equals
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from beniocord.errors import BeniocordError
from beniocord.utils.helpers import format_url, normalize_id

VALID_STATUSES = ("online", "offline", "away", "dnd")


def _owner(record: Any) -> Any:
    """返回实体绑定的 Client；实体未经缓存（未绑定）时抛出 BeniocordError。"""
    if record.client is None:
        raise BeniocordError(f"{type(record).__name__} {record.id} is not bound to a client")
    return record.client


@dataclass(eq=False)
class CachedUser:
    """缓存中的用户。"""

    id: str
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    status: str = "offline"
    emblems: list[Any] = field(default_factory=list)
    last_seen: str | None = None
    created_at: str | None = None
    is_bot: bool = False
    client: Any = field(default=None, repr=False)

    @classmethod
    def from_payload(cls, data: dict[str, Any], asset_url: str = "") -> "CachedUser":
        """从服务端用户载荷构造实体。"""
        user = cls(id=normalize_id(data.get("id")) or "")
        user.update(data, asset_url)
        return user

    def update(self, data: dict[str, Any], asset_url: str = "") -> None:
        """用载荷中出现的字段原地更新（未出现的字段保持不变）。"""
        if "username" in data:
            self.username = data["username"]
        if "display_name" in data:
            self.display_name = data["display_name"]
        if "avatar_url" in data:
            self.avatar_url = format_url(data["avatar_url"], asset_url)
        if data.get("status"):
            self.status = data["status"]
        if "emblems" in data:
            self.emblems = list(data["emblems"] or [])
        if "last_seen" in data:
            self.last_seen = data["last_seen"]
        if "created_at" in data:
            self.created_at = data["created_at"]
        if "is_bot" in data:
            self.is_bot = bool(data["is_bot"])


@dataclass(eq=False)
class CachedChannel:
    """
    缓存中的频道。

    messages 与 CacheStore 中该频道的消息序列是同一个 deque 对象，
    由 CacheStore 在频道入缓存时绑定。
    """

    id: str
    name: str | None = None
    description: str | None = None
    type: str = "text"
    is_private: bool = False
    is_dm: bool = False
    icon_url: str | None = None
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    messages: deque = field(default_factory=deque, repr=False)
    client: Any = field(default=None, repr=False)

    @classmethod
    def from_payload(cls, data: dict[str, Any], asset_url: str = "") -> "CachedChannel":
        channel = cls(id=normalize_id(data.get("id")) or "")
        channel.update(data, asset_url)
        return channel

    def update(self, data: dict[str, Any], asset_url: str = "") -> None:
        """用载荷中出现的字段原地更新。"""
        for key in ("name", "description", "created_at", "updated_at"):
            if key in data:
                setattr(self, key, data[key])
        if data.get("type"):
            self.type = data["type"]
        if "is_private" in data:
            self.is_private = bool(data["is_private"])
        if "is_dm" in data:
            self.is_dm = bool(data["is_dm"])
        if "icon_url" in data:
            self.icon_url = format_url(data["icon_url"], asset_url)
        if "created_by" in data:
            self.created_by = normalize_id(data["created_by"])

    # ---- 便捷方法（委托给所属 Client） -------------------------------------------

    async def send(self, content: str, **options: Any) -> "CachedMessage":
        """向本频道发送消息，options 同 Client.send_message。"""
        return await _owner(self).send_message(self.id, content, **options)

    async def start_typing(self) -> None:
        await _owner(self).start_typing(self.id)

    async def stop_typing(self) -> None:
        await _owner(self).stop_typing(self.id)

    def create_message_collector(self, **options: Any) -> Any:
        """为本频道创建 MessageCollector，options 同 Client.create_message_collector。"""
        return _owner(self).create_message_collector(self.id, **options)


@dataclass(eq=False)
class CachedMessage:
    """缓存中的消息。author / channel 在引用解析失败时为 None。"""

    id: str
    channel_id: str | None = None
    author_id: str | None = None
    content: str | None = None
    message_type: str = "text"
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    reply_to: str | None = None
    sticker_id: str | None = None
    created_at: str | None = None
    edited_at: str | None = None
    edited: bool = False
    deleted: bool = False
    attachments: list[dict[str, Any]] = field(default_factory=list)
    author: CachedUser | None = field(default=None, repr=False)
    channel: CachedChannel | None = field(default=None, repr=False)
    client: Any = field(default=None, repr=False)

    @classmethod
    def from_payload(cls, data: dict[str, Any], asset_url: str = "") -> "CachedMessage":
        """
        从服务端消息载荷构造实体（不解析 author / channel 引用）。

        参数:
            data: message:new 事件或发送确认中的消息载荷
            asset_url: 附件相对路径的基础地址
        """
        user = data.get("user") if isinstance(data.get("user"), dict) else {}
        channel = data.get("channel") if isinstance(data.get("channel"), dict) else {}
        message = cls(
            id=normalize_id(data.get("id")) or "",
            channel_id=normalize_id(data.get("channel_id")) or normalize_id(channel.get("id")),
            author_id=normalize_id(data.get("user_id")) or normalize_id(user.get("id")),
            content=data.get("content"),
            message_type=data.get("message_type") or "text",
            file_url=format_url(data.get("file_url"), asset_url),
            file_name=data.get("file_name"),
            file_size=data.get("file_size"),
            reply_to=normalize_id(data.get("reply_to")),
            sticker_id=normalize_id(data.get("sticker_id")),
            created_at=data.get("created_at"),
            edited_at=data.get("edited_at"),
            edited=bool(data.get("edited_at")),
        )
        if message.file_url:
            message.attachments.append({
                "url": message.file_url,
                "name": message.file_name,
                "size": message.file_size,
            })
        return message

    def apply_edit(self, content: str | None, edited_at: str | None) -> None:
        """应用一次编辑。重复应用同一编辑结果不变。"""
        self.content = content
        self.edited_at = edited_at
        self.edited = True

    # ---- 便捷方法（委托给所属 Client） -------------------------------------------

    async def reply(self, content: str, **options: Any) -> "CachedMessage":
        """
        在同一频道回复本消息。

        参数:
            content: 回复内容
            options: 其余发送选项，同 Client.send_message

        异常:
            BeniocordError: 消息未绑定 Client
        """
        options.setdefault("reply_to", self.id)
        return await _owner(self).send_message(self.channel_id, content, **options)

    async def edit(self, content: str) -> Any:
        return await _owner(self).edit_message(self.id, content)

    async def delete(self) -> Any:
        return await _owner(self).delete_message(self.id)


@dataclass(eq=False)
class PresenceRecord:
    """用户在线状态记录。"""

    user_id: str
    status: str = "offline"
    last_seen: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "PresenceRecord":
        record = cls(user_id=normalize_id(data.get("userId") or data.get("user_id")) or "")
        record.update(data)
        return record

    def update(self, data: dict[str, Any]) -> None:
        if data.get("status"):
            self.status = data["status"]
        last_seen = data.get("lastSeen") or data.get("last_seen")
        if last_seen:
            self.last_seen = last_seen
        skip = {"userId", "user_id", "status", "lastSeen", "last_seen"}
        self.extra.update({k: v for k, v in data.items() if k not in skip})


@dataclass(eq=False)
class StickerRecord:
    """贴纸。"""

    id: str
    user_id: str | None = None
    name: str | None = None
    url: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any], asset_url: str = "") -> "StickerRecord":
        sticker = cls(id=normalize_id(data.get("id")) or "")
        sticker.update(data, asset_url)
        return sticker

    def update(self, data: dict[str, Any], asset_url: str = "") -> None:
        """用载荷中出现的字段原地更新。"""
        for key in ("name", "created_at", "updated_at"):
            if key in data:
                setattr(self, key, data[key])
        if "user_id" in data:
            self.user_id = normalize_id(data["user_id"])
        if "url" in data:
            self.url = format_url(data["url"], asset_url)
        if "tags" in data:
            tags = data["tags"]
            self.tags = list(tags) if isinstance(tags, list) else []


@dataclass(eq=False)
class EmojiRecord:
    """自定义表情。"""

    id: str
    user_id: str | None = None
    name: str | None = None
    url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any], asset_url: str = "") -> "EmojiRecord":
        emoji = cls(id=normalize_id(data.get("id")) or "")
        emoji.update(data, asset_url)
        return emoji

    def update(self, data: dict[str, Any], asset_url: str = "") -> None:
        for key in ("name", "created_at", "updated_at"):
            if key in data:
                setattr(self, key, data[key])
        if "user_id" in data:
            self.user_id = normalize_id(data["user_id"])
        if "url" in data:
            self.url = format_url(data["url"], asset_url)
