"""
消息收集器模块 - 在一段时间内收集某个频道中满足条件的消息。

收集器订阅事件总线的 messageCreate，满足以下任一条件时结束：
- 达到 max_items 条（reason="limit"）
- 超过 time_s 秒（reason="time"）
- 调用 stop()（reason="user"，或自定义原因）

使用示例：
    collector = client.create_message_collector(channel_id, filter=lambda m: "hello" in (m.content or ""))

    @collector.on_collect
    async def collected(message): ...

    messages = await collector.wait()
"""

import asyncio
import inspect
from typing import Any, Callable

from loguru import logger

from beniocord.bus.emitter import EventBus
from beniocord.bus.events import MESSAGE_CREATE
from beniocord.cache.records import CachedMessage

MessageFilter = Callable[[CachedMessage], Any]


async def _call(listener: Callable[..., Any], *args: Any) -> None:
    result = listener(*args)
    if inspect.isawaitable(result):
        await result


class MessageCollector:
    """
    频道消息收集器。

    属性:
        channel_id: 目标频道
        filter: 过滤函数（可返回 bool 或 awaitable[bool]）
        time_s: 自动结束前的秒数（None 表示不限时）
        max_items: 最多收集条数（None 表示不限）
        collected: 已收集的消息
        ended: 是否已结束
        end_reason: 结束原因
    """

    def __init__(
        self,
        bus: EventBus,
        channel_id: str,
        filter: MessageFilter | None = None,
        time_s: float | None = 60.0,
        max_items: int | None = None,
    ):
        self.bus = bus
        self.channel_id = channel_id
        self.filter = filter or (lambda message: True)
        self.time_s = time_s
        self.max_items = max_items
        self.collected: list[CachedMessage] = []
        self.ended = False
        self.end_reason: str | None = None

        self._collect_listeners: list[Callable[..., Any]] = []
        self._end_listeners: list[Callable[..., Any]] = []
        self._done = asyncio.Event()
        self._timer: asyncio.Task | None = None

        self.bus.on(MESSAGE_CREATE, self._handle_message)
        self.reset_timer()

    def on_collect(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        """注册 collect 监听器（参数：消息），可作为装饰器使用。"""
        self._collect_listeners.append(listener)
        return listener

    def on_end(self, listener: Callable[..., Any]) -> Callable[..., Any]:
        """注册 end 监听器（参数：已收集消息列表, 结束原因），可作为装饰器使用。"""
        self._end_listeners.append(listener)
        return listener

    async def _handle_message(self, message: CachedMessage) -> None:
        if self.ended or message.channel_id != self.channel_id:
            return

        accepted = self.filter(message)
        if inspect.isawaitable(accepted):
            accepted = await accepted
        if not accepted:
            return

        self.collected.append(message)
        for listener in list(self._collect_listeners):
            await _call(listener, message)

        if self.max_items is not None and len(self.collected) >= self.max_items:
            await self.stop("limit")

    async def stop(self, reason: str = "user") -> None:
        """结束收集。重复调用无效果。"""
        if self.ended:
            return
        self.ended = True
        self.end_reason = reason
        self._cancel_timer()
        self.bus.off(MESSAGE_CREATE, self._handle_message)
        self._done.set()
        logger.debug(f"Collector for channel {self.channel_id} ended ({reason}), {len(self.collected)} collected")
        for listener in list(self._end_listeners):
            await _call(listener, self.collected, reason)

    def reset_timer(self, time_s: float | None = None) -> None:
        """重新开始计时，可选地指定新的时长。"""
        self._cancel_timer()
        duration = time_s if time_s is not None else self.time_s
        if duration and not self.ended:
            self._timer = asyncio.create_task(self._expire(duration))

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer and timer is not asyncio.current_task():
            timer.cancel()

    async def _expire(self, duration: float) -> None:
        await asyncio.sleep(duration)
        try:
            await self.stop("time")
        except Exception as e:
            logger.error(f"Collector end listener raised: {e}")

    async def wait(self) -> list[CachedMessage]:
        """等待收集结束，返回已收集的消息。"""
        await self._done.wait()
        return self.collected
