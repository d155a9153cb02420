"""
会话模块 - 推送连接的生命周期管理。

- state.py：SessionState 状态枚举与 Session 会话对象
- commands.py：CommandTracker，按关联 ID 等待命令确认
- controller.py：SessionController，连接/重试/心跳/拆除
"""

from beniocord.session.commands import CommandTracker
from beniocord.session.controller import HEARTBEAT_EVENT, SessionController
from beniocord.session.state import Session, SessionState

__all__ = ["Session", "SessionState", "CommandTracker", "SessionController", "HEARTBEAT_EVENT"]
