"""
APScheduler 调度后端：实现 clubcore 层 ISchedulerBackend 接口
"""
import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from clubcore.scheduler import ISchedulerBackend

logger = logging.getLogger(__name__)


class APSchedulerBackend(ISchedulerBackend):
    """基于 APScheduler 的调度后端"""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self._scheduler = scheduler or BackgroundScheduler()

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Background jobs scheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Background jobs scheduler stopped")

    def add_job(self, job_id: str, func: Callable, trigger: str, **trigger_args) -> None:
        """cron 任务优先使用 cron_expression，其余参数原样交给 APScheduler"""
        if trigger == "cron" and "cron_expression" in trigger_args:
            trigger = CronTrigger.from_crontab(trigger_args.pop("cron_expression"))
        self._scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True, **trigger_args)
        logger.info(f"Scheduled job {job_id}: {trigger}")
