# Business Services
from club.services.availability_service import AvailabilityService
from club.services.permission_service import PermissionService
from club.services.reservation_service import ReservationService
from club.services.membership_service import MembershipService
from club.services.settlement_service import SettlementService
from club.services.notification_service import NotificationService
from club.services.payment_ledger import PaymentLedger

__all__ = [
    'AvailabilityService', 'PermissionService', 'ReservationService',
    'MembershipService', 'SettlementService', 'NotificationService', 'PaymentLedger'
]
