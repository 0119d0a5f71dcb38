"""领域实体"""
from club.domain.reservation import ReservationEntity, RESERVATION_MACHINE, initial_status

__all__ = ["ReservationEntity", "RESERVATION_MACHINE", "initial_status"]
