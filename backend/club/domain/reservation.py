"""
club/domain/reservation.py

Reservation 领域实体
封装 ORM 模型，所有状态变更经由状态机
"""
from datetime import datetime
from typing import Optional
import logging

from clubcore.engine.state_machine import (
    StateMachine, StateMachineConfig, StateTransition, TransitionNotAllowed
)
from club.errors import InvalidTransitionError
from club.models.ontology import Reservation, ReservationStatus, TERMINAL_STATUSES

logger = logging.getLogger(__name__)

S = ReservationStatus


# ============== 状态机配置 ==============

RESERVATION_MACHINE = StateMachineConfig(
    name="Reservation",
    states=[s.value for s in ReservationStatus],
    transitions=[
        StateTransition.of(S.PENDING_APPROVAL.value, S.CONFIRMED.value, "approve"),
        StateTransition.of(S.PENDING_APPROVAL.value, S.REJECTED.value, "reject"),
        StateTransition.of(S.PENDING_APPROVAL.value, S.EXPIRED.value, "expire"),
        StateTransition.of([S.PENDING_APPROVAL.value, S.CONFIRMED.value], S.CANCELLED.value, "cancel"),
        StateTransition.of([S.PENDING_APPROVAL.value, S.CONFIRMED.value], S.SYSTEM_CANCELLED.value, "system_cancel"),
        StateTransition.of(S.CONFIRMED.value, S.IN_PROGRESS.value, "start"),
        StateTransition.of([S.CONFIRMED.value, S.IN_PROGRESS.value], S.COMPLETED.value, "complete"),
    ],
    final_states=frozenset(s.value for s in TERMINAL_STATUSES),
)


def initial_status(requires_approval: bool) -> ReservationStatus:
    """新预约的初始状态"""
    return S.PENDING_APPROVAL if requires_approval else S.CONFIRMED


# ============== Reservation 领域实体 ==============

class ReservationEntity:
    """
    Reservation 领域实体

    只修改内存中的 ORM 对象，提交由服务层负责。
    """

    def __init__(self, orm_model: Reservation):
        self._orm_model = orm_model
        self._state_machine = StateMachine(RESERVATION_MACHINE, orm_model.status.value)

    @property
    def model(self) -> Reservation:
        return self._orm_model

    @property
    def status(self) -> ReservationStatus:
        return ReservationStatus(self._state_machine.current_state)

    @property
    def is_terminal(self) -> bool:
        return self._state_machine.is_final

    def can(self, trigger: str) -> bool:
        return self._state_machine.can_fire(trigger)

    def _fire(self, trigger: str) -> ReservationStatus:
        try:
            new_state = self._state_machine.fire(trigger)
        except TransitionNotAllowed as e:
            target = RESERVATION_MACHINE_TARGETS.get(trigger)
            raise InvalidTransitionError(
                f"La reserva está en estado '{e.current_state}' y no admite esta acción",
                current=e.current_state, target=target
            ) from e
        self._orm_model.status = ReservationStatus(new_state)
        self._orm_model.updated_at = datetime.utcnow()
        return self._orm_model.status

    # ============== 业务方法 ==============

    def approve(self, approver_id: int, at: Optional[datetime] = None):
        self._fire("approve")
        self._orm_model.approved_by_id = approver_id
        self._orm_model.approved_at = at or datetime.utcnow()

    def reject(self, reason: str, at: Optional[datetime] = None):
        self._fire("reject")
        self._orm_model.cancellation_reason = reason
        self._orm_model.cancelled_at = at or datetime.utcnow()

    def expire(self, reason: str, at: Optional[datetime] = None):
        self._fire("expire")
        self._orm_model.cancellation_reason = reason
        self._orm_model.cancelled_at = at or datetime.utcnow()

    def cancel(self, reason: str, at: Optional[datetime] = None):
        self._fire("cancel")
        self._orm_model.cancellation_reason = reason
        self._orm_model.cancelled_at = at or datetime.utcnow()

    def system_cancel(self, reason: str, at: Optional[datetime] = None):
        if not reason:
            raise ValueError("La cancelación del sistema requiere un motivo")
        self._fire("system_cancel")
        self._orm_model.cancellation_reason = reason
        self._orm_model.cancelled_at = at or datetime.utcnow()

    def start(self):
        self._fire("start")

    def complete(self, at: Optional[datetime] = None):
        self._fire("complete")
        self._orm_model.completed_at = at or datetime.utcnow()


RESERVATION_MACHINE_TARGETS = {t.trigger: t.to_state for t in RESERVATION_MACHINE.transitions}


__all__ = [
    "RESERVATION_MACHINE",
    "ReservationEntity",
    "initial_status",
]
