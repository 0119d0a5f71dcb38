from clubcore.notification.channel import INotificationChannel

__all__ = ["INotificationChannel"]
