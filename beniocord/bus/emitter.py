"""
事件总线模块 - 向应用暴露组合后的领域事件。

EventBus 是摄取管道与应用监听器之间的唯一出口：
  推送事件 → EventIngestion → EventBus.emit() → 应用监听器

【核心设计】
- 每个事件名可注册多个相互独立的监听器，按注册顺序依次调用
- 监听器可以是普通函数，也可以是协程函数（返回值为 awaitable 时自动 await）
- 监听器抛出的任何异常都不会向上传播，而是汇入 "error" 事件；
  "error" 监听器自身的异常只记录日志，避免无限递归
- on() 既可直接调用，也可作为装饰器使用

【Java 开发者类比】
- 类似于 Guava 的 EventBus，或 Node.js 的 EventEmitter
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from beniocord.bus.events import ERROR, EVENT_NAMES

Listener = Callable[..., Any]


@dataclass
class _Subscription:
    listener: Listener
    once: bool = False


class EventBus:
    """
    领域事件总线。

    属性:
        _subscribers: 订阅者字典 {事件名: [订阅记录列表]}
    """

    def __init__(self):
        self._subscribers: dict[str, list[_Subscription]] = {}

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {event!r}")

    def on(self, event: str, listener: Listener | None = None):
        """
        订阅事件。

        用法:
            bus.on("messageCreate", handler)

            @bus.on("ready")
            async def on_ready(): ...

        参数:
            event: 事件名（见 bus.events.EVENT_NAMES）
            listener: 监听器；为 None 时返回装饰器
        """
        self._check_event(event)
        if listener is None:
            def decorator(fn: Listener) -> Listener:
                self._subscribers.setdefault(event, []).append(_Subscription(fn))
                return fn
            return decorator
        self._subscribers.setdefault(event, []).append(_Subscription(listener))
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """订阅事件，仅触发一次后自动移除。"""
        self._check_event(event)
        self._subscribers.setdefault(event, []).append(_Subscription(listener, once=True))
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """取消订阅。监听器未注册时静默忽略。"""
        subs = self._subscribers.get(event, [])
        self._subscribers[event] = [s for s in subs if s.listener != listener]

    def listener_count(self, event: str) -> int:
        return len(self._subscribers.get(event, []))

    def clear(self) -> None:
        self._subscribers.clear()

    async def emit(self, event: str, *args: Any) -> None:
        """
        依次调用某事件的所有监听器。

        监听器异常会被捕获并转发到 "error" 事件，
        单个监听器失败不影响其他监听器和后续事件。
        """
        subs = list(self._subscribers.get(event, []))
        if not subs:
            if event == ERROR and args:
                logger.error(f"Unhandled beniocord error: {args[0]}")
            return

        for sub in subs:
            if sub.once:
                current = self._subscribers.get(event, [])
                if not any(s is sub for s in current):
                    continue
                # 只移除这一条订阅，同一函数通过 on() 的注册保持不变
                self._subscribers[event] = [s for s in current if s is not sub]
            try:
                result = sub.listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                if event == ERROR:
                    logger.error(f"Error listener raised: {e}")
                else:
                    logger.error(f"Listener for {event} raised: {e}")
                    await self.emit(ERROR, e)
