"""
请求网关模块 - 同步请求/响应通道（REST）。
"""

from beniocord.rest.base import RequestGateway
from beniocord.rest.http import HttpGateway

__all__ = ["RequestGateway", "HttpGateway"]
