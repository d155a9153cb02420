"""
工具函数模块 - 提供 beniocord 项目全局通用的辅助函数。
"""

from beniocord.utils.helpers import format_url, normalize_id, timestamp, truncate_string

__all__ = ["format_url", "normalize_id", "timestamp", "truncate_string"]
