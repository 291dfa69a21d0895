# backend/studiobook/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import booking_requests, bookings, credits, staff, studio

__all__ = [
    "booking_requests",
    "bookings",
    "credits",
    "staff",
    "studio",
]
