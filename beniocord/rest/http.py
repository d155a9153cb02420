"""
HTTP 请求网关实现 - 基于 httpx 的 REST 调用。

职责：
1. 为每个请求附加 Bearer 认证头和单次请求超时
2. 把 httpx 的异常和 HTTP 状态码归类为 FailureReason
3. 解析 JSON 响应体

状态码映射：
- 401 → UNAUTHORIZED
- 403 → FORBIDDEN
- 404 → NOT_FOUND
- 429 → RATE_LIMITED（携带 retry_after）
- 其他非 2xx → REJECTED
- httpx.TimeoutException → TIMEOUT
- 其他 httpx.RequestError（连接、解码、重定向过多等）→ NETWORK
"""

from typing import Any

import httpx
from loguru import logger

from beniocord.errors import FailureReason, RequestFailure
from beniocord.rest.base import RequestGateway

_STATUS_REASONS = {
    401: FailureReason.UNAUTHORIZED,
    403: FailureReason.FORBIDDEN,
    404: FailureReason.NOT_FOUND,
    429: FailureReason.RATE_LIMITED,
}


def _error_message(response: httpx.Response) -> str:
    """从错误响应中提取服务端给出的错误描述。"""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or "")
    return ""


def _retry_after(response: httpx.Response) -> float | None:
    """读取限流等待时间：优先响应体 retry_after，其次 Retry-After 头。"""
    try:
        data = response.json()
        if isinstance(data, dict) and data.get("retry_after") is not None:
            return float(data["retry_after"])
    except ValueError:
        pass
    header = response.headers.get("Retry-After")
    try:
        return float(header) if header else None
    except ValueError:
        return None


class HttpGateway(RequestGateway):
    """
    基于 httpx.AsyncClient 的请求网关。

    属性:
        api_url: 服务基础地址
        token: 机器人令牌
        timeout: 单次请求超时（秒）
        _http: 惰性创建的 HTTP 客户端；也可注入（测试时传入 MockTransport 客户端）
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        timeout: float = 5.0,
        http: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url.strip().rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = http

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        return self._http

    async def request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.api_url}{path}"
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            response = await self._client().request(
                method, url, headers=headers, json=body, params=params, timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestFailure(FailureReason.TIMEOUT, f"{method} {path} timed out") from e
        except httpx.RequestError as e:
            raise RequestFailure(FailureReason.NETWORK, f"{method} {path} failed: {e!r}") from e

        if not response.is_success:
            reason = _STATUS_REASONS.get(response.status_code, FailureReason.REJECTED)
            detail = _error_message(response)
            retry_after = _retry_after(response) if reason is FailureReason.RATE_LIMITED else None
            if reason is FailureReason.RATE_LIMITED:
                logger.warning(f"Rate limited on {method} {path}, retry after {retry_after}s")
            raise RequestFailure(
                reason,
                f"{method} {path} -> HTTP {response.status_code}" + (f": {detail}" if detail else ""),
                status=response.status_code,
                retry_after=retry_after,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None
