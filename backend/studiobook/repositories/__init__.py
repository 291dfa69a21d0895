# backend/studiobook/repositories/__init__.py
"""
Repository Pattern Implementation

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from studiobook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_credit_repository(db)
    lots = repository.get_eligible_lots(client_id, now)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .booking_request_repository import BookingRequestRepository
from .client_repository import ClientRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .credit_repository import CreditRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .service_repository import ServiceRepository
from .studio_repository import ProfileInfo, StudioRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "BookingRequestRepository",
    "ClientRepository",
    "ConflictCheckerRepository",
    "CreditRepository",
    "NotificationRepository",
    "ProfileInfo",
    "RepositoryFactory",
    "ServiceRepository",
    "StudioRepository",
]
