# backend/studiobook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Every service built for
one request shares that request's session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.availability_service import AvailabilityService
from ...services.booking_request_service import BookingRequestService
from ...services.booking_service import BookingService
from ...services.credit_service import CreditService
from ...services.notification_service import NotificationService
from ...services.studio_membership_service import StudioMembershipService
from .database import get_db


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_membership_service(db: Session = Depends(get_db)) -> StudioMembershipService:
    return StudioMembershipService(db)


def get_credit_service(db: Session = Depends(get_db)) -> CreditService:
    return CreditService(db)


def get_availability_service(
    db: Session = Depends(get_db),
    membership_service: StudioMembershipService = Depends(get_membership_service),
) -> AvailabilityService:
    return AvailabilityService(db, membership_service=membership_service)


def get_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        notification_service: Notification service for confirmations and reminders

    Returns:
        BookingService instance
    """
    return BookingService(db, notification_service)


def get_booking_request_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRequestService:
    return BookingRequestService(
        db,
        booking_service=booking_service,
        notification_service=booking_service.notification_service,
    )
