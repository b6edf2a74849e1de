# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the coaching platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Each subclass pins the HTTP status it maps to; routes convert them
with ``to_http_exception()``.
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
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"WWW-Authenticate": "Bearer"}
        return exc


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class BookingTransitionException(BusinessRuleException):
    """Raised when a booking request cannot move to the requested status."""

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot move booking request from {current} to {target}",
            code="INVALID_BOOKING_TRANSITION",
            details={"current_status": current, "target_status": target},
        )


class BookingExpiredException(BusinessRuleException):
    """Raised when a booking request passed one of its lifecycle deadlines."""

    def __init__(self, message: str, *, booking_request_id: str):
        super().__init__(
            message=message,
            code="BOOKING_EXPIRED",
            details={"booking_request_id": booking_request_id},
        )


class PaymentVerificationException(BusinessRuleException):
    """Raised when a Stripe payment does not back the booking it claims to pay for."""

    def __init__(self, message: str, *, payment_intent_id: str):
        super().__init__(
            message=message,
            code="PAYMENT_NOT_VERIFIED",
            details={"payment_intent_id": payment_intent_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
