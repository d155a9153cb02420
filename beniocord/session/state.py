"""
会话状态模块 - 一个客户端实例唯一拥有的会话对象。

状态机：
    DISCONNECTED → CONNECTING → CONNECTED → {DISCONNECTED, RECONNECTING} → …

epoch（纪元）在每次开始连接与每次拆除时递增。异步查找在 await 之前记下 epoch，
完成后用 is_current(epoch) 判断会话是否还是同一个，从而避免在 disconnect()
之后把实体重新写回缓存。
"""

import asyncio
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from beniocord.cache.records import CachedUser


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


@dataclass
class Session:
    """
    推送连接的会话。

    属性:
        state: 当前状态（任意时刻只处于一个状态）
        retry_count: 当前这一轮连接/重连已连续失败的次数
        heartbeat_task: 心跳任务（仅在 CONNECTED 状态下存在）
        identity: 已确认的机器人自身用户
        status: 心跳时向服务端重申的在线状态
        epoch: 会话纪元
    """
    state: SessionState = SessionState.DISCONNECTED
    retry_count: int = 0
    heartbeat_task: asyncio.Task | None = None
    identity: CachedUser | None = None
    status: str = "online"
    epoch: int = 0

    def transition(self, new_state: SessionState) -> None:
        if new_state is self.state:
            return
        logger.debug(f"Session {self.state.value} -> {new_state.value}")
        self.state = new_state

    def begin(self) -> int:
        """开始一轮新的连接，返回新的纪元。"""
        self.epoch += 1
        self.retry_count = 0
        self.transition(SessionState.CONNECTING)
        return self.epoch

    def teardown(self) -> None:
        """回到 DISCONNECTED 并作废当前纪元。心跳任务由控制器负责取消。"""
        self.epoch += 1
        self.retry_count = 0
        self.identity = None
        self.heartbeat_task = None
        self.transition(SessionState.DISCONNECTED)

    def is_current(self, epoch: int) -> bool:
        """epoch 仍是当前纪元且会话尚未拆除。"""
        return epoch == self.epoch and self.state is not SessionState.DISCONNECTED

    @property
    def connected(self) -> bool:
        return self.state is SessionState.CONNECTED
