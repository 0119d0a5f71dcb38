"""
调度器接口：域无关的定时任务抽象
"""
from clubcore.scheduler.base import ISchedulerBackend

__all__ = ["ISchedulerBackend"]
