"""
通知渠道接口：域无关的通知抽象

club 层通过实现 INotificationChannel 来对接具体通知渠道（站内信、推送等）。
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional


class INotificationChannel(ABC):
    """通知渠道接口"""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """发送通知

        Args:
            recipient: 接收方标识（由渠道实现决定含义）
            subject: 通知标题
            content: 通知内容
            extra: 扩展参数

        Returns:
            是否发送成功
        """

    @abstractmethod
    def get_channel_type(self) -> str:
        """返回渠道类型标识，如 'internal', 'push'"""
