"""
事件摄取模块 - 推送事件 → 缓存变更 + 领域事件。

- payloads.py：线上载荷的 Pydantic 模型与 parse_event
- echo.py：EchoSuppressor，回声抑制登记表
- ingestion.py：EventIngestion，引用解析与事件分发
"""

from beniocord.ingest.echo import EchoSuppressor
from beniocord.ingest.ingestion import EventIngestion
from beniocord.ingest.payloads import WIRE_PAYLOADS, WirePayload, parse_event

__all__ = ["EchoSuppressor", "EventIngestion", "WIRE_PAYLOADS", "WirePayload", "parse_event"]
