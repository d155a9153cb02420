"""
异常类型定义模块 - beniocord 客户端的错误分类体系。

所有异常都继承自 BeniocordError，按照"如何恢复"进行分类：
- AuthError：凭证无效/过期/权限不足，致命错误，绝不重试
- ConnectionError：超时、拒绝连接、网络抖动，按配置有限重试后才视为致命
- ProtocolError：推送事件格式错误或无法识别，丢弃该事件，会话继续
- CommandError：发送/编辑/删除等命令被服务端拒绝，只影响该命令的调用方
- CacheInconsistency：引用解析失败，降级为空引用，事件照常发出
- RequestFailure：REST 请求失败，携带结构化的失败原因

【Java 开发者类比】
- 类似于 Java 中自定义的 checked exception 层级（BeniocordException 为根）
- RequestFailure.reason 类似于 HTTP 客户端异常中携带的错误码枚举
"""

from enum import Enum


class BeniocordError(Exception):
    """beniocord 所有异常的基类。"""


class AuthError(BeniocordError):
    """凭证无效、过期或权限不足（例如令牌不属于机器人用户）。"""


class ConnectionError(BeniocordError):  # noqa: A001
    """推送连接建立失败、超时或在重试耗尽后断开。"""


class ProtocolError(BeniocordError):
    """
    推送事件无法识别或载荷格式错误。

    属性:
        event: 出错的线上事件名
        payload: 原始载荷（便于排查）
    """

    def __init__(self, message: str, event: str = "", payload: object = None):
        super().__init__(message)
        self.event = event
        self.payload = payload


class CommandError(BeniocordError):
    """单条命令（发送/编辑/删除/状态）被服务端拒绝或等待确认超时。"""

    def __init__(self, message: str, command: str = ""):
        super().__init__(message)
        self.command = command


class CacheInconsistency(BeniocordError):
    """事件中引用的实体既不在缓存中，也无法通过请求解析。"""


class FailureReason(str, Enum):
    """REST 请求失败的结构化原因。"""
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK = "network"
    REJECTED = "rejected"


class RequestFailure(BeniocordError):
    """
    REST 请求失败。

    调用方根据 reason 决定如何反应：
    - 连接阶段的 UNAUTHORIZED / FORBIDDEN → AuthError（致命）
    - 引用解析阶段的任何失败 → 降级为空引用并继续

    属性:
        reason: 失败原因（FailureReason 枚举）
        status: HTTP 状态码（网络错误/超时时为 None）
        retry_after: 被限流时服务端建议的等待秒数
    """

    def __init__(
        self,
        reason: FailureReason,
        message: str = "",
        status: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message or reason.value)
        self.reason = reason
        self.status = status
        self.retry_after = retry_after

    @property
    def is_auth_failure(self) -> bool:
        return self.reason in (FailureReason.UNAUTHORIZED, FailureReason.FORBIDDEN)
