"""
后台任务
每个任务使用独立会话；单个任务失败只记录日志，不影响调度器
"""
import calendar
import logging
from datetime import date, datetime
from typing import Callable, Optional, Tuple

from sqlalchemy.orm import Session

from clubcore.scheduler import ISchedulerBackend
from club.config import settings as default_settings
from club.models.schemas import SettlementRunResult
from club.services.membership_service import MembershipService
from club.services.reservation_service import ReservationService
from club.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]

JOB_EXPIRE_APPROVALS = "expire_pending_approvals"
JOB_SUSPENSION_SWEEP = "suspension_sweep"
JOB_COMPLETE_FINISHED = "complete_finished"
JOB_SETTLEMENT_MID_MONTH = "settlements_mid_month"
JOB_SETTLEMENT_MONTH_END = "settlements_month_end"
JOB_PROMOTE_ADULTS = "promote_adult_profiles"


def settlement_period_for(today: date) -> Optional[Tuple[date, date]]:
    """
    当天应结算的半月周期
    15 日结算 1-15 日；月末结算 16 日至月末；其他日期返回 None
    """
    last_day = calendar.monthrange(today.year, today.month)[1]
    if today.day == 15:
        return today.replace(day=1), today.replace(day=15)
    if today.day == last_day:
        return today.replace(day=16), today
    return None


def _run(session_factory: SessionFactory, name: str, work: Callable[[Session], object]):
    db = session_factory()
    try:
        return work(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Job {name} failed: {e}")
        return None
    finally:
        db.close()


def expire_pending_approvals(session_factory: SessionFactory, now: Optional[datetime] = None) -> int:
    expired = _run(
        session_factory, JOB_EXPIRE_APPROVALS,
        lambda db: ReservationService(db).expire_pending_approvals(now)
    )
    count = len(expired or [])
    logger.info(f"[Job] approval expiry sweep: {count} expired")
    return count


def sweep_suspended_memberships(session_factory: SessionFactory, today: Optional[date] = None) -> int:
    count = _run(
        session_factory, JOB_SUSPENSION_SWEEP,
        lambda db: MembershipService(db).sweep_suspended(today)
    ) or 0
    logger.info(f"[Job] suspension sweep: {count} reservations cancelled")
    return count


def complete_finished_reservations(session_factory: SessionFactory, now: Optional[datetime] = None) -> int:
    completed = _run(
        session_factory, JOB_COMPLETE_FINISHED,
        lambda db: ReservationService(db).complete_finished(now)
    )
    count = len(completed or [])
    logger.info(f"[Job] completion sweep: {count} completed")
    return count


def generate_periodic_settlements(session_factory: SessionFactory,
                                  today: Optional[date] = None) -> Optional[SettlementRunResult]:
    today = today or date.today()
    period = settlement_period_for(today)
    if period is None:
        logger.debug(f"[Job] no settlement period ends on {today}")
        return None
    return _run(
        session_factory, "settlements",
        lambda db: SettlementService(db).generate_settlements(*period)
    )


def promote_adult_profiles(session_factory: SessionFactory, today: Optional[date] = None) -> int:
    promoted = _run(
        session_factory, JOB_PROMOTE_ADULTS,
        lambda db: MembershipService(db).promote_adult_profiles(today)
    )
    count = len(promoted or [])
    logger.info(f"[Job] age promotion: {count} profiles promoted")
    return count


def register_jobs(backend: ISchedulerBackend, session_factory: SessionFactory, config=None) -> None:
    """注册所有后台任务"""
    config = config or default_settings

    backend.add_job(
        JOB_EXPIRE_APPROVALS, lambda: expire_pending_approvals(session_factory),
        "interval", minutes=config.EXPIRY_SWEEP_MINUTES,
    )
    backend.add_job(
        JOB_SUSPENSION_SWEEP, lambda: sweep_suspended_memberships(session_factory),
        "interval", minutes=config.SUSPENSION_SWEEP_MINUTES,
    )
    backend.add_job(
        JOB_COMPLETE_FINISHED, lambda: complete_finished_reservations(session_factory),
        "interval", minutes=config.COMPLETION_SWEEP_MINUTES,
    )
    backend.add_job(
        JOB_SETTLEMENT_MID_MONTH, lambda: generate_periodic_settlements(session_factory),
        "cron", cron_expression="0 0 15 * *",
    )
    backend.add_job(
        JOB_SETTLEMENT_MONTH_END, lambda: generate_periodic_settlements(session_factory),
        "cron", day="last", hour=0, minute=0,
    )
    backend.add_job(
        JOB_PROMOTE_ADULTS, lambda: promote_adult_profiles(session_factory),
        "cron", cron_expression="10 0 * * *",
    )
    logger.info("Background jobs registered")
