"""
推送传输模块 - 持久双向的服务端 → 客户端事件通道。

- base.py：Transport 抽象基类与断开原因常量
- sio.py：基于 python-socketio 的 SocketIOTransport
"""

from beniocord.transport.base import (
    CLIENT_DISCONNECT,
    SERVER_DISCONNECT,
    TRANSPORT_CLOSE,
    Transport,
    TransportError,
)
from beniocord.transport.sio import SocketIOTransport

__all__ = [
    "Transport",
    "TransportError",
    "SocketIOTransport",
    "SERVER_DISCONNECT",
    "CLIENT_DISCONNECT",
    "TRANSPORT_CLOSE",
]
