"""
回声抑制模块 - 识别并丢弃由本客户端命令引起的推送回声。

一条 message:send 命令会经由两条路径到达：
1. 命令确认（ack）直接带回服务端创建的消息 → 调用方已拿到权威结果
2. 同一条消息随后又通过推送通道以 message:new 再次下发（即"回声"）

确认到达时立刻登记消息 ID；摄取 message:new 之前先询问本登记表：
命中则消费该条目并丢弃事件，未命中则该事件就是唯一的通知路径。

只按 ID 精确匹配，绝不按内容或时间猜测：误抑制他人的消息不可接受，
而未匹配的回声被多处理一次只是浪费。

登记表有软上限，按 LRU 淘汰最早登记的 ID，用于确认与回声长期失配时
仍然保证内存有界（代价是极少数回声可能被重复通知）。
"""

from collections import OrderedDict

from loguru import logger

DEFAULT_ECHO_CAPACITY = 1000


class EchoSuppressor:
    """
    命令来源消息 ID 的短期登记表。

    属性:
        capacity: 软上限
        _pending: 有序字典，键为待消费的消息 ID（按登记顺序排列）
    """

    def __init__(self, capacity: int = DEFAULT_ECHO_CAPACITY):
        self.capacity = capacity
        self._pending: OrderedDict[str, None] = OrderedDict()

    def remember(self, message_id: str) -> None:
        """登记一条由本客户端创建的消息 ID。"""
        self._pending[message_id] = None
        self._pending.move_to_end(message_id)
        while len(self._pending) > self.capacity:
            forgotten, _ = self._pending.popitem(last=False)
            logger.debug(f"Echo registry full, forgetting {forgotten}")

    def consume(self, message_id: str) -> bool:
        """
        如果 ID 在登记表中则移除并返回 True（该事件是回声）。

        每个登记条目最多被消费一次。
        """
        if message_id in self._pending:
            del self._pending[message_id]
            return True
        return False

    def clear(self) -> None:
        self._pending.clear()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
