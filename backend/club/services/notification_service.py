"""
通知服务
尽力而为：发送失败只记录日志，不影响已提交的业务操作
"""
import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from clubcore.notification.channel import INotificationChannel
from club.models.ontology import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """通知服务，按注册顺序向所有渠道发送"""

    def __init__(self, channels: Optional[List[INotificationChannel]] = None):
        self._channels: List[INotificationChannel] = list(channels or [])

    @classmethod
    def for_session(cls, db: Session) -> "NotificationService":
        """默认配置：仅站内通知"""
        from club.system.notification.internal_channel import InternalChannel
        return cls([InternalChannel(db)])

    @property
    def channels(self) -> List[INotificationChannel]:
        return list(self._channels)

    def notify(self, recipient_id: int, title: str, body: str,
               reservation_id: Optional[int] = None) -> bool:
        """发送通知，任一渠道成功即返回 True"""
        delivered = False
        extra = {"reservation_id": reservation_id}
        for channel in self._channels:
            try:
                ok = channel.send(str(recipient_id), title, body, extra)
            except Exception as e:
                logger.error(
                    f"Notification channel {channel.get_channel_type()} failed for {recipient_id}: {e}"
                )
                continue
            if ok:
                delivered = True
            else:
                logger.warning(f"Notification via {channel.get_channel_type()} not delivered to {recipient_id}")
        return delivered

    @staticmethod
    def list_for(db: Session, recipient_id: int, unread_only: bool = False) -> List[Notification]:
        query = db.query(Notification).filter(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc()).all()
