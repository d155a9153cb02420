"""
请求网关基类模块 - 定义同步请求/响应通道的统一接口。

会话控制器用它确认机器人身份，事件摄取用它解析缓存中缺失的引用，
Client 的 fetch_* 方法也都经过它。

失败一律以 RequestFailure 抛出，reason 字段给出结构化原因，
调用方据此决定"致命"还是"降级继续"。
"""

from abc import ABC, abstractmethod
from typing import Any


class RequestGateway(ABC):
    """请求网关抽象基类。"""

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        发送一次请求并返回解析后的实体（通常是 dict 或 list）。

        参数:
            method: HTTP 方法（GET / POST / PATCH / DELETE）
            path: 以 / 开头的 API 路径，如 /api/users/me
            body: 可选的 JSON 请求体
            params: 可选的查询参数

        异常:
            RequestFailure: 请求失败（原因见 FailureReason）
        """

    async def close(self) -> None:
        """释放底层资源。默认无操作。"""
