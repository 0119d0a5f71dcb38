"""
调度器后端接口：域无关的定时任务抽象

club 层通过实现 ISchedulerBackend 来对接具体调度框架（APScheduler 等）。
"""
from abc import ABC, abstractmethod
from typing import Callable


class ISchedulerBackend(ABC):
    """调度后端接口"""

    @abstractmethod
    def start(self) -> None:
        """启动调度"""

    @abstractmethod
    def shutdown(self) -> None:
        """停止调度"""

    @abstractmethod
    def add_job(
        self,
        job_id: str,
        func: Callable,
        trigger: str,
        **trigger_args,
    ) -> None:
        """添加定时任务，同 id 的任务会被替换

        Args:
            job_id: 任务唯一标识
            func: 要执行的函数（无参）
            trigger: 触发器类型（'cron', 'interval'）
            **trigger_args: 触发器参数，cron 任务可传 cron_expression
        """
