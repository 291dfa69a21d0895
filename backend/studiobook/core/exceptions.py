# backend/studiobook/core/exceptions.py
"""
Domain-specific exceptions for the studio booking core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found (or is outside the caller's tenant)."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when the caller is not identified."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        # Storage error text stays in the logs.
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": "An error occurred processing your request",
                "code": self.code,
                "details": {},
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking overlaps an existing booking for the same trainer."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is already booked. Please choose another time.",
            code="BOOKING_CONFLICT",
            details=details or {},
        )


class InsufficientCreditsException(ValidationException):
    """Raised when a client cannot cover the credits a service requires."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            message=(
                f"Insufficient credits. You have {available} credits but need {required}."
            ),
            code="INSUFFICIENT_CREDITS",
            details={"required": required, "available": available},
        )


class OutsideOpeningHoursException(ValidationException):
    """Raised when a requested slot falls outside the studio's opening hours."""

    def __init__(self, reason: str):
        super().__init__(message=reason, code="OUTSIDE_OPENING_HOURS")


class CancellationWindowException(ValidationException):
    """Raised when a late cancellation is attempted and the studio has no refund tiers."""

    def __init__(self, window_hours: float):
        window_display = int(window_hours) if float(window_hours).is_integer() else window_hours
        super().__init__(
            message=f"Cannot cancel within {window_display} hours of scheduled time",
            code="WITHIN_WINDOW_NO_POLICY",
            details={"cancellation_window_hours": window_hours},
        )


class InvalidStatusTransitionException(BusinessRuleException):
    """Raised when a booking is moved to a status its current status does not allow."""

    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Cannot change booking from {current} to {target}",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current, "target_status": target},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
