# backend/studiobook/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_client_id, get_current_staff_id
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_request_service,
    get_booking_service,
    get_credit_service,
    get_membership_service,
    get_notification_service,
)

__all__ = [
    # Auth
    "get_current_client_id",
    "get_current_staff_id",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_request_service",
    "get_booking_service",
    "get_credit_service",
    "get_membership_service",
    "get_notification_service",
]
