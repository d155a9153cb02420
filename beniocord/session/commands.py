"""
命令确认模块 - 把基于回调的命令确认建模为按关联 ID 索引的 Future。

每条命令（message:send / message:edit / message:delete …）：
1. 生成关联 ID，创建一个 Future 放入 _pending
2. 通过传输层发送，确认回调绑定该关联 ID
3. 确认到达 → _settle 以结果或 CommandError 结束 Future（只结束一次）
4. 超时 / 断开 → CommandError

失败只影响发出该命令的调用方，不影响会话状态和其他进行中的命令。
"""

import asyncio
import uuid
from typing import Any, Callable

from loguru import logger

from beniocord.errors import CommandError
from beniocord.transport.base import Transport, TransportError

AckHook = Callable[[Any], None]


class CommandTracker:
    """
    进行中命令的登记表。

    属性:
        transport: 推送传输
        timeout: 等待确认的超时（秒）
        _pending: 关联 ID → Future
    """

    def __init__(self, transport: Transport, timeout: float = 15.0):
        self.transport = transport
        self.timeout = timeout
        self._pending: dict[str, asyncio.Future] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def request(
        self,
        event: str,
        payload: dict[str, Any],
        on_ack: AckHook | None = None,
    ) -> Any:
        """
        发送命令并等待服务端确认。

        参数:
            event: 命令事件名
            payload: 命令载荷
            on_ack: 成功确认时在确认回调内同步调用的钩子（先于调用方恢复执行）

        返回:
            服务端确认载荷

        异常:
            CommandError: 服务端拒绝、等待超时、未连接或会话被拆除
        """
        correlation_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[correlation_id] = future

        def callback(*args: Any) -> None:
            self._settle(correlation_id, event, args[0] if args else None, on_ack)

        try:
            await self.transport.send(event, payload, callback=callback)
        except TransportError as e:
            self._pending.pop(correlation_id, None)
            raise CommandError(f"{event} failed: {e}", command=event) from e

        try:
            return await asyncio.wait_for(future, self.timeout)
        except asyncio.TimeoutError:
            raise CommandError(f"{event} timed out after {self.timeout}s", command=event) from None
        finally:
            self._pending.pop(correlation_id, None)

    def _settle(
        self,
        correlation_id: str,
        event: str,
        response: Any,
        on_ack: AckHook | None,
    ) -> None:
        future = self._pending.pop(correlation_id, None)
        if future is None or future.done():
            logger.debug(f"Ignoring late acknowledgement for {event}")
            return

        if isinstance(response, dict) and response.get("error"):
            future.set_exception(CommandError(str(response["error"]), command=event))
            return

        if on_ack is not None:
            try:
                on_ack(response)
            except Exception as e:
                logger.warning(f"Acknowledgement hook for {event} raised: {e}")
        future.set_result(response)

    def reject_all(self, reason: str) -> None:
        """以 CommandError 结束所有进行中的命令（会话拆除时调用）。"""
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(CommandError(reason))
        if pending:
            logger.debug(f"Rejected {len(pending)} pending command(s): {reason}")
