"""
推送传输基类模块 - 定义持久双向连接的统一接口。

Transport 是会话控制器与具体推送协议之间的边界：
- open(endpoint, credential)：建立连接；正常返回即"已打开"，
  抛出 TransportError 即"打开失败"
- closed(reason)：连接在打开之后断开时，通过 on_closed 回调通知
- 入站事件：每个命名事件通过 on_event 回调逐个投递
- send(event, payload, callback)：发送命令；callback 在服务端确认时被调用

【Java 开发者类比】
- Transport 相当于 Java 的 abstract class，SocketIOTransport 是其实现
- set_handlers 类似于注册 WebSocket 的 onClose / onMessage 监听器
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from beniocord.errors import BeniocordError

# 服务端主动踢下线（Socket.IO 的 "io server disconnect"），不应自动重连
SERVER_DISCONNECT = "io server disconnect"
CLIENT_DISCONNECT = "io client disconnect"
TRANSPORT_CLOSE = "transport close"

ClosedHandler = Callable[[str], Awaitable[None]]
EventHandler = Callable[[str, Any], Awaitable[None]]


class TransportError(BeniocordError):
    """
    传输层错误（打开失败、未连接时发送等）。

    属性:
        unauthorized: 服务端是否以认证失败拒绝了连接
    """

    def __init__(self, message: str, unauthorized: bool = False):
        super().__init__(message)
        self.unauthorized = unauthorized

    @classmethod
    def from_connect_error(cls, error: Any) -> "TransportError":
        """根据服务端返回的连接错误文本判断是否为认证失败。"""
        text = str(error)
        lowered = text.lower()
        unauthorized = "401" in text or "403" in text or "unauthorized" in lowered
        return cls(text or "Failed to connect to server", unauthorized=unauthorized)


class Transport(ABC):
    """
    推送传输抽象基类。

    属性:
        _on_closed: 连接断开回调，参数为断开原因
        _on_event: 入站事件回调，参数为 (事件名, 载荷)
    """

    def __init__(self):
        self._on_closed: ClosedHandler | None = None
        self._on_event: EventHandler | None = None

    def set_handlers(
        self,
        on_closed: ClosedHandler | None = None,
        on_event: EventHandler | None = None,
    ) -> None:
        """注册生命周期与入站事件回调（由会话控制器调用）。"""
        self._on_closed = on_closed
        self._on_event = on_event

    @property
    @abstractmethod
    def connected(self) -> bool:
        """连接当前是否可用。"""

    @abstractmethod
    async def open(self, endpoint: str, credential: str) -> None:
        """
        建立连接。

        异常:
            TransportError: 连接失败（unauthorized 标记认证失败）
        """

    @abstractmethod
    async def close(self) -> None:
        """关闭连接。任何状态下调用都是安全的，且不会触发 on_closed。"""

    @abstractmethod
    async def send(
        self,
        event: str,
        payload: dict[str, Any],
        callback: Callable[..., Any] | None = None,
    ) -> None:
        """
        发送命名事件。

        参数:
            event: 事件名（如 message:send）
            payload: 事件载荷
            callback: 可选的确认回调，服务端确认时以确认载荷调用

        异常:
            TransportError: 未连接
        """

    async def _signal_closed(self, reason: str) -> None:
        if self._on_closed:
            await self._on_closed(reason)

    async def _deliver(self, event: str, payload: Any) -> None:
        if self._on_event:
            await self._on_event(event, payload)
