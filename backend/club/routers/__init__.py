# API Routers
from club.routers import availability, reservations, memberships, settlements, payments

__all__ = ['availability', 'reservations', 'memberships', 'settlements', 'payments']
