"""
工具函数集合 - beniocord 项目全局通用的辅助函数。

函数分类：
- 标识符：normalize_id
- 资源地址：format_url
- 字符串工具：truncate_string
- 时间工具：timestamp
"""

from datetime import datetime, timezone
from typing import Any


def normalize_id(value: Any) -> str | None:
    """
    将服务端下发的实体 ID 统一为字符串。

    服务端有时下发整数、有时下发字符串，统一后才能保证
    "一个缓存键只对应一个实例"。

    参数:
        value: 原始 ID（int / str / None）

    返回:
        字符串 ID；空值返回 None
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def format_url(url: str | None, base: str) -> str | None:
    """
    将相对资源路径补全为绝对 URL。

    - 空值 → None
    - 已是 http(s) 地址 → 原样返回
    - 相对路径 → base + 路径（自动补齐斜杠）
    """
    if not url:
        return None
    if url.startswith("http"):
        return url
    base = base.rstrip("/")
    return base + (url if url.startswith("/") else "/" + url)


def timestamp() -> str:
    """获取当前 UTC 时间的 ISO 8601 格式字符串。"""
    return datetime.now(timezone.utc).isoformat()


def truncate_string(s: str, max_len: int = 100, suffix: str = "...") -> str:
    """截断字符串到指定最大长度（包含后缀），超出时添加后缀。"""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix
