"""
站内通知渠道：写入 notifications 表
"""
import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clubcore.notification.channel import INotificationChannel
from club.models.ontology import Notification, NotificationStatus

logger = logging.getLogger(__name__)


class InternalChannel(INotificationChannel):
    """站内消息渠道

    复用调用方的会话；主业务已提交后才调用，失败时只回滚通知本身。
    """

    def __init__(self, db: Session):
        self.db = db

    def send(
        self,
        recipient: str,
        subject: str,
        content: str,
        extra: Optional[Dict] = None,
    ) -> bool:
        """写入一条站内通知

        Args:
            recipient: 接收成员 ID（字符串形式）
            subject: 通知标题
            content: 通知内容
            extra: 可选 reservation_id
        """
        try:
            self.db.add(Notification(
                recipient_id=int(recipient),
                channel=self.get_channel_type(),
                title=subject,
                body=content,
                reservation_id=(extra or {}).get("reservation_id"),
                status=NotificationStatus.SENT,
            ))
            self.db.commit()
            return True
        except (SQLAlchemyError, ValueError) as e:
            self.db.rollback()
            logger.error(f"Failed to store internal notification for {recipient}: {e}")
            return False

    def get_channel_type(self) -> str:
        return "internal"
