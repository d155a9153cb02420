"""
Socket.IO 推送传输实现 - 基于 python-socketio 的 AsyncClient。

要点：
- 关闭 python-socketio 自带的自动重连（reconnection=False），
  重连策略完全由会话控制器掌控，保证同一时间最多只有一个连接尝试
- 通过 "*" 通配处理器接收所有命名事件，统一交给 on_event 回调
- 认证令牌放在 Socket.IO 握手的 auth 字段中
- 命令确认使用 emit(..., callback=...)，由服务端的 ack 触发

依赖：
- python-socketio[asyncio_client]：Socket.IO 异步客户端
"""

from typing import Any, Callable

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError
from loguru import logger

from beniocord.transport.base import TRANSPORT_CLOSE, Transport, TransportError


class SocketIOTransport(Transport):
    """
    Socket.IO 推送传输。

    属性:
        socket_path: Socket.IO 路径（默认 /socket.io）
        wait_timeout: 握手等待超时（秒）
        _client: 当前的 socketio.AsyncClient（未连接时为 None）
        _closing: 本端主动关闭中，忽略随之而来的 disconnect 回调
    """

    def __init__(self, socket_path: str = "/socket.io", wait_timeout: float = 5.0):
        super().__init__()
        self.socket_path = socket_path
        self.wait_timeout = wait_timeout
        self._client: socketio.AsyncClient | None = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return bool(self._client and self._client.connected)

    def _build_client(self) -> socketio.AsyncClient:
        """创建客户端并注册生命周期与事件处理器。"""
        client = socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)

        @client.event
        async def connect() -> None:
            logger.info("Beniocord socket connected")

        @client.event
        async def disconnect(reason: str = "") -> None:
            if self._closing or client is not self._client:
                return
            logger.warning(f"Beniocord socket disconnected: {reason or TRANSPORT_CLOSE}")
            await self._signal_closed(reason or TRANSPORT_CLOSE)

        @client.event
        async def connect_error(data: Any) -> None:
            logger.error(f"Beniocord socket connect error: {data}")

        @client.on("*")
        async def catch_all(event: str, data: Any = None) -> None:
            await self._deliver(event, data)

        return client

    async def open(self, endpoint: str, credential: str) -> None:
        await self.close()
        self._closing = False
        client = self._build_client()
        self._client = client
        socket_path = (self.socket_path or "/socket.io").strip().lstrip("/")
        try:
            await client.connect(
                endpoint.strip().rstrip("/"),
                transports=["websocket"],
                socketio_path=socket_path,
                auth={"token": credential},
                wait_timeout=self.wait_timeout,
            )
        except SocketIOConnectionError as e:
            await self.close()
            raise TransportError.from_connect_error(e) from e

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        self._closing = True
        try:
            await client.disconnect()
        except Exception as e:
            logger.debug(f"Ignoring error while closing socket: {e}")
        finally:
            self._closing = False

    async def send(
        self,
        event: str,
        payload: dict[str, Any],
        callback: Callable[..., Any] | None = None,
    ) -> None:
        if not self.connected:
            raise TransportError("Socket is not connected")
        await self._client.emit(event, payload, callback=callback)
