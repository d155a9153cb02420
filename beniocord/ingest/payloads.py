"""
推送载荷模型模块 - 在摄取边界对线上事件做一次性校验。

每种线上事件对应一个 Pydantic 模型，以事件名为标签构成"带标签的联合类型"：
parse_event(事件名, 原始载荷) 查表得到模型类并校验，之后的分发逻辑只处理
类型明确的模型，不再对松散的字典做鸭子类型判断。

服务端字段命名不统一（message:new 用 snake_case，其他事件多用 camelCase），
这里用 AliasChoices 同时接受两种写法；所有实体 ID 统一转为字符串。

无法识别的事件名、非字典载荷、校验失败 → ProtocolError。
"""

from typing import Annotated, Any, ClassVar

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from beniocord.errors import ProtocolError
from beniocord.utils.helpers import normalize_id


def _required_id(value: Any) -> str:
    normalized = normalize_id(value)
    if normalized is None:
        raise ValueError("missing entity id")
    return normalized


EntityId = Annotated[str, BeforeValidator(_required_id)]
OptionalId = Annotated[str | None, BeforeValidator(normalize_id)]


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class WirePayload(BaseModel):
    """所有线上载荷模型的基类。保留未声明的字段以便透传给监听器。"""

    event: ClassVar[str] = ""
    model_config = ConfigDict(extra="allow")

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)


class MessageCreatePayload(WirePayload):
    event: ClassVar[str] = "message:new"

    id: EntityId
    content: str | None = None
    user_id: OptionalId = None
    channel_id: OptionalId = None
    user: dict[str, Any] | None = None
    channel: dict[str, Any] | None = None


class MessageEditPayload(WirePayload):
    event: ClassVar[str] = "message:edited"

    message_id: EntityId = Field(validation_alias=_alias("messageId", "message_id", "id"))
    content: str | None = None
    edited_at: str | None = Field(default=None, validation_alias=_alias("editedAt", "edited_at"))


class MessageDeletePayload(WirePayload):
    event: ClassVar[str] = "message:deleted"

    message_id: EntityId = Field(validation_alias=_alias("messageId", "message_id", "id"))
    channel_id: OptionalId = Field(default=None, validation_alias=_alias("channelId", "channel_id"))


class MemberJoinPayload(WirePayload):
    event: ClassVar[str] = "member:join"

    channel_id: OptionalId = Field(default=None, validation_alias=_alias("channelId", "channel_id"))
    user_id: OptionalId = Field(default=None, validation_alias=_alias("userId", "user_id"))
    user: dict[str, Any] | None = None


class MemberLeavePayload(MemberJoinPayload):
    event: ClassVar[str] = "member:leave"


class ChannelUpdatePayload(WirePayload):
    event: ClassVar[str] = "channel:update"

    id: EntityId = Field(validation_alias=_alias("id", "channelId", "channel_id"))


class ChannelDeletePayload(WirePayload):
    event: ClassVar[str] = "channel:delete"

    channel_id: EntityId = Field(validation_alias=_alias("channelId", "channel_id", "id"))


class TypingStartPayload(WirePayload):
    event: ClassVar[str] = "typing:user-start"

    channel_id: OptionalId = Field(default=None, validation_alias=_alias("channelId", "channel_id"))
    user_id: OptionalId = Field(default=None, validation_alias=_alias("userId", "user_id"))


class TypingStopPayload(TypingStartPayload):
    event: ClassVar[str] = "typing:user-stop"


class StatusUpdatePayload(WirePayload):
    event: ClassVar[str] = "user:status-update"

    user_id: EntityId = Field(validation_alias=_alias("userId", "user_id"))
    status: str
    last_seen: str | None = Field(default=None, validation_alias=_alias("lastSeen", "last_seen"))


class PresenceUpdatePayload(WirePayload):
    event: ClassVar[str] = "presence:update"

    user_id: EntityId = Field(validation_alias=_alias("userId", "user_id"))
    status: str | None = None


class RateLimitPayload(WirePayload):
    event: ClassVar[str] = "rate:limited"

    retry_after: float | None = Field(default=None, validation_alias=_alias("retryAfter", "retry_after"))
    command: str | None = Field(default=None, validation_alias=_alias("event", "command"))
    message: str | None = None


WIRE_PAYLOADS: dict[str, type[WirePayload]] = {
    model.event: model
    for model in (
        MessageCreatePayload,
        MessageEditPayload,
        MessageDeletePayload,
        MemberJoinPayload,
        MemberLeavePayload,
        ChannelUpdatePayload,
        ChannelDeletePayload,
        TypingStartPayload,
        TypingStopPayload,
        StatusUpdatePayload,
        PresenceUpdatePayload,
        RateLimitPayload,
    )
}


def parse_event(event: str, payload: Any) -> WirePayload:
    """
    把 (事件名, 原始载荷) 校验为对应的载荷模型。

    参数:
        event: 线上事件名
        payload: 原始载荷（应为 dict）

    返回:
        对应事件的 WirePayload 子类实例，raw 字段保存原始字典

    异常:
        ProtocolError: 未知事件、载荷不是对象或字段校验失败
    """
    model = WIRE_PAYLOADS.get(event)
    if model is None:
        raise ProtocolError(f"Unrecognized push event: {event}", event=event, payload=payload)
    if not isinstance(payload, dict):
        raise ProtocolError(f"Malformed {event} payload: expected an object", event=event, payload=payload)
    try:
        parsed = model.model_validate(payload)
    except ValidationError as e:
        raise ProtocolError(
            f"Malformed {event} payload: {e.error_count()} validation error(s)",
            event=event,
            payload=payload,
        ) from e
    parsed.raw = dict(payload)
    return parsed
