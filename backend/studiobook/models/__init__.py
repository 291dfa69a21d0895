"""
Database models for the studio booking core.

- Tenancy: Studio, StaffMember, Profile
- Clients and their bookable services
- Credit lots and the credit usage ledger
- Bookings and booking requests
- Queued notifications
"""

from .booking import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingRequest,
    BookingRequestStatus,
    BookingStatus,
)
from .client import Client
from .credit import ClientPackage, CreditUsage, CreditUsageReason, LotStatus
from .notification import NotificationType, ScheduledNotification, ScheduledNotificationStatus
from .service import Service
from .studio import BookingModel, Profile, ProfileRole, StaffMember, StaffType, Studio

__all__ = [
    "ALLOWED_TRANSITIONS",
    "BLOCKING_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingModel",
    "BookingRequest",
    "BookingRequestStatus",
    "BookingStatus",
    "Client",
    "ClientPackage",
    "CreditUsage",
    "CreditUsageReason",
    "LotStatus",
    "NotificationType",
    "Profile",
    "ProfileRole",
    "ScheduledNotification",
    "ScheduledNotificationStatus",
    "Service",
    "StaffMember",
    "StaffType",
    "Studio",
]
