"""
beniocord - Beniocord 聊天平台的机器人客户端库

模块概述：
    维护远端聊天平台状态（用户、频道、消息、在线状态、贴纸、表情）的
    内存有界镜像，协调两条相互独立的更新通道：
    - 同步的 REST 请求/响应
    - 异步的 Socket.IO 推送连接

    核心功能：
    - 推送连接的生命周期管理（连接、重试、心跳、拆除）
    - 推送事件 → 缓存变更 → 领域事件
    - 引用解析（缓存优先，网络回退，失败降级为空引用）
    - 本客户端命令引起的推送回声抑制
"""

__version__ = "0.1.0"

__logo__ = "💬"

from beniocord.client import Client  # noqa: E402
from beniocord.collector import MessageCollector  # noqa: E402
from beniocord.config.schema import Config  # noqa: E402
from beniocord.errors import (  # noqa: E402
    AuthError,
    BeniocordError,
    CacheInconsistency,
    CommandError,
    ConnectionError,
    FailureReason,
    ProtocolError,
    RequestFailure,
)

__all__ = [
    "__version__",
    "__logo__",
    "Client",
    "Config",
    "MessageCollector",
    "BeniocordError",
    "AuthError",
    "ConnectionError",
    "ProtocolError",
    "CommandError",
    "CacheInconsistency",
    "FailureReason",
    "RequestFailure",
]
