# Ontology Models
from club.models.ontology import (
    Unit, Membership, MemberProfile, ProfilePermission, Staff, StaffScheduleOverride,
    Service, Resource, Reservation, Payment, StaffSettlement, Notification
)

__all__ = [
    'Unit', 'Membership', 'MemberProfile', 'ProfilePermission', 'Staff', 'StaffScheduleOverride',
    'Service', 'Resource', 'Reservation', 'Payment', 'StaffSettlement', 'Notification'
]
