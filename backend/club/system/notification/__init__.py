"""通知渠道实现"""
from club.system.notification.internal_channel import InternalChannel

__all__ = ["InternalChannel"]
